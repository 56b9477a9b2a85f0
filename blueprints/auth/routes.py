"""
Authentication routes: login, logout, registration, current user.
JSON endpoints backed by Flask-Login sessions.
"""

from flask import request, Blueprint
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import generate_csrf

from models.user import (
    User,
    get_user_by_id,
    get_user_by_username,
    create_user,
    update_last_login,
    check_password,
)
from utils.api_response import api_success, api_error
from utils.messages import MESSAGES
from utils.validators import validate_email, validate_phone, validate_password, sanitize_input

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/csrf-token')
def csrf_token():
    """Issue a CSRF token for JSON clients."""
    return api_success(data={'csrf_token': generate_csrf()})


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Sign in with username and password.

    Request body:
        username: Username
        password: Password
        remember: Keep the session after the browser closes (optional)
    """
    data = request.get_json(silent=True) or {}
    username = sanitize_input(data.get('username'), 80)
    password = data.get('password') or ''

    user_dict = get_user_by_username(username) if username else None

    if user_dict is None or not check_password(user_dict, password):
        return api_error(MESSAGES['invalid_credentials'], status=401, code='invalid_credentials')

    if not user_dict.get('active'):
        return api_error(MESSAGES['account_disabled'], status=403, code='account_disabled')

    user = User(user_dict)
    login_user(user, remember=bool(data.get('remember')))
    update_last_login(user.id)

    return api_success(
        data=user.to_dict(),
        message=MESSAGES['login_success'].format(name=user.full_name or user.username)
    )


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Sign out current user."""
    logout_user()
    return api_success(message=MESSAGES['logout_success'])


@auth_bp.route('/register', methods=['POST'])
def register():
    """
    Create a customer account and sign it in.

    Request body:
        username, email, password, full_name (optional), phone (optional)
    """
    data = request.get_json(silent=True) or {}
    username = sanitize_input(data.get('username'), 80)
    email = sanitize_input(data.get('email'), 120)
    phone = sanitize_input(data.get('phone'), 20) or None
    full_name = sanitize_input(data.get('full_name'), 120) or None

    if not username:
        return api_error('Username is required', 400)
    if not validate_email(email):
        return api_error('Invalid email format', 400)
    if phone and not validate_phone(phone):
        return api_error(MESSAGES['invalid_phone'], 400)

    valid, error = validate_password(data.get('password'))
    if not valid:
        return api_error(error, 400)

    try:
        user_id = create_user(username, email, data['password'], full_name=full_name,
                              role_name='customer', phone=phone)
    except ValueError as e:
        return api_error(str(e), 409)

    user = User(get_user_by_id(user_id))
    login_user(user)

    return api_success(data=user.to_dict(), message=MESSAGES['user_created'], status=201)


@auth_bp.route('/me')
@login_required
def me():
    """Current user profile."""
    return api_success(data=current_user.to_dict())
