"""
Flask extensions initialization.
Extensions are initialized here and then initialized with the app in app.py.

The API is JSON-only: unauthenticated requests get a 401 body instead of a
redirect, and browser clients fetch a CSRF token from /csrf-token.
"""

from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect

login_manager = LoginManager()
login_manager.session_protection = 'strong'

csrf = CSRFProtect()


@login_manager.user_loader
def load_user(user_id):
    """
    Load user by ID for Flask-Login.

    Args:
        user_id: The user ID from the session cookie

    Returns:
        User object, or None if the ID is unknown or malformed
    """
    from models.user import get_user_by_id, User

    if not str(user_id).isdigit():
        return None
    user_dict = get_user_by_id(int(user_id))
    return User(user_dict) if user_dict else None


@login_manager.unauthorized_handler
def unauthorized():
    """Return JSON 401 instead of redirecting to a login page."""
    from utils.api_response import api_error
    from utils.messages import MESSAGES

    return api_error(MESSAGES['login_required'], status=401, code='login_required')
