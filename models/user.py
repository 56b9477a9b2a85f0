"""
User model and data access functions.
Handles user authentication, account creation, and Flask-Login integration.
"""

from werkzeug.security import generate_password_hash, check_password_hash

from database import get_db


class User:
    """
    User class for Flask-Login integration.
    Wraps database row dictionary with required Flask-Login properties.
    """

    def __init__(self, user_dict):
        """
        Initialize User from database row.

        Args:
            user_dict: Dictionary with user data from database
        """
        self.id = user_dict['id']
        self.username = user_dict['username']
        self.email = user_dict['email']
        self.full_name = user_dict['full_name']
        self.phone = user_dict.get('phone')
        self.role_id = user_dict['role_id']
        self.role_name = user_dict.get('role_name')
        self.active = user_dict['active']
        self.created_at = user_dict['created_at']
        self.last_login = user_dict.get('last_login')

    @property
    def is_authenticated(self):
        """Required by Flask-Login."""
        return True

    @property
    def is_active(self):
        """Required by Flask-Login."""
        return self.active == 1

    @property
    def is_anonymous(self):
        """Required by Flask-Login."""
        return False

    @property
    def is_admin(self):
        return self.role_name == 'admin'

    def get_id(self):
        """Required by Flask-Login. Returns user ID as unicode string."""
        return str(self.id)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'full_name': self.full_name,
            'phone': self.phone,
            'role': self.role_name,
        }


_USER_SELECT = '''
    SELECT u.*, r.name as role_name, r.display_name as role_display_name
    FROM users u
    LEFT JOIN roles r ON u.role_id = r.id
'''


def get_user_by_id(user_id: int) -> dict:
    """
    Get user by ID.

    Args:
        user_id: User ID

    Returns:
        User dict or None if not found
    """
    db = get_db()
    row = db.execute(_USER_SELECT + ' WHERE u.id = ?', (user_id,)).fetchone()
    return dict(row) if row else None


def get_user_by_username(username: str) -> dict:
    """
    Get user by username.

    Args:
        username: Username to search for

    Returns:
        User dict or None if not found
    """
    db = get_db()
    row = db.execute(_USER_SELECT + ' WHERE u.username = ?', (username,)).fetchone()
    return dict(row) if row else None


def get_user_by_email(email: str) -> dict:
    """Get user by email, or None."""
    db = get_db()
    row = db.execute(_USER_SELECT + ' WHERE u.email = ?', (email,)).fetchone()
    return dict(row) if row else None


def get_role_id(role_name: str) -> int:
    """
    Resolve a role name to its ID.

    Raises:
        ValueError: If the role does not exist
    """
    db = get_db()
    row = db.execute('SELECT id FROM roles WHERE name = ?', (role_name,)).fetchone()
    if not row:
        raise ValueError(f"Unknown role '{role_name}'")
    return row['id']


def create_user(username: str, email: str, password: str, full_name: str = None,
                role_name: str = 'customer', phone: str = None) -> int:
    """
    Create new user with hashed password.

    Args:
        username: Unique username
        email: Unique email
        password: Plain text password (will be hashed)
        full_name: User's full name
        role_name: 'admin' or 'customer'
        phone: Contact phone

    Returns:
        New user ID

    Raises:
        ValueError: If username or email already exists, or role is unknown
    """
    if get_user_by_username(username):
        raise ValueError(f"Username '{username}' already exists")
    if get_user_by_email(email):
        raise ValueError(f"Email '{email}' already exists")

    db = get_db()
    role_id = get_role_id(role_name)

    cursor = db.cursor()
    cursor.execute('''
        INSERT INTO users (username, email, password_hash, full_name, phone, role_id)
        VALUES (?, ?, ?, ?, ?, ?)
    ''', (username, email, generate_password_hash(password), full_name, phone, role_id))

    db.commit()
    return cursor.lastrowid


def update_last_login(user_id: int) -> None:
    """
    Update last login timestamp.

    Args:
        user_id: User ID
    """
    db = get_db()
    db.execute('''
        UPDATE users SET last_login = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (user_id,))
    db.commit()


def check_password(user_dict: dict, password: str) -> bool:
    """
    Verify password against stored hash.

    Args:
        user_dict: User dictionary with password_hash
        password: Plain text password to check

    Returns:
        True if password matches
    """
    return check_password_hash(user_dict['password_hash'], password)
