"""
Input validation helper functions.
Provides validation for common input types.
"""

import re
from datetime import datetime


def validate_email(email: str) -> bool:
    """
    Validate email format.

    Args:
        email: Email address to validate

    Returns:
        True if valid email format
    """
    if not email:
        return False

    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def validate_phone(phone: str) -> bool:
    """
    Validate Indian mobile number format.
    Accepts: +91 XXXXX XXXXX, 91XXXXXXXXXX, XXXXXXXXXX

    Args:
        phone: Phone number to validate

    Returns:
        True if valid phone format
    """
    if not phone:
        return False

    cleaned = re.sub(r'[\s\-\(\)]', '', phone)

    patterns = [
        r'^\+91[6-9][0-9]{9}$',
        r'^91[6-9][0-9]{9}$',
        r'^[6-9][0-9]{9}$'
    ]

    return any(bool(re.match(pattern, cleaned)) for pattern in patterns)


def validate_password(password: str, min_length: int = 6) -> tuple:
    """
    Validate password strength.

    Args:
        password: Password to validate
        min_length: Minimum password length

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not password:
        return False, 'Password is required'

    if len(password) < min_length:
        return False, f'Password must be at least {min_length} characters'

    return True, ''


def validate_date_format(date_str: str) -> bool:
    """
    Validate date is in YYYY-MM-DD format.

    Args:
        date_str: Date string to validate

    Returns:
        True if valid format
    """
    try:
        datetime.strptime(date_str, '%Y-%m-%d')
        return True
    except (ValueError, TypeError):
        return False


def validate_positive_integer(value, field_name: str, allow_zero: bool = False) -> tuple:
    """
    Validate a whole number from JSON or query input.

    Args:
        value: Raw value (int or numeric string)
        field_name: Name used in the error message
        allow_zero: Accept 0 as well

    Returns:
        Tuple of (is_valid, parsed_value, error_message)
    """
    if isinstance(value, bool):
        return False, None, f'{field_name} must be a whole number'
    if isinstance(value, float) and not value.is_integer():
        return False, None, f'{field_name} must be a whole number'
    try:
        number = int(value)
    except (TypeError, ValueError):
        return False, None, f'{field_name} must be a whole number'

    minimum = 0 if allow_zero else 1
    if number < minimum:
        return False, None, f'{field_name} must be at least {minimum}'
    return True, number, ''


def parse_tray_numbers(value) -> list:
    """
    Parse tray numbers from a list or a comma-separated string.

    Args:
        value: List of ints/strings, or '1,2,3'

    Returns:
        List of ints in the order given (duplicates preserved for the caller to reject)

    Raises:
        ValueError: If any entry is not a whole number
    """
    if value is None or value == '':
        return []

    if isinstance(value, str):
        items = [part.strip() for part in value.split(',') if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        items = list(value)
    else:
        raise ValueError(f"Invalid tray list: {value!r}")

    numbers = []
    for item in items:
        if isinstance(item, bool):
            raise ValueError(f"Invalid tray number: {item!r}")
        try:
            numbers.append(int(item))
        except (TypeError, ValueError):
            raise ValueError(f"Invalid tray number: {item!r}")
        if isinstance(item, float) and not item.is_integer():
            raise ValueError(f"Invalid tray number: {item!r}")
    return numbers


def format_tray_numbers(numbers) -> str:
    """Serialize tray numbers as an ascending comma-separated string."""
    return ','.join(str(n) for n in sorted(numbers))


def sanitize_input(text: str, max_length: int = None) -> str:
    """
    Sanitize text input by trimming and limiting length.

    Args:
        text: Text to sanitize
        max_length: Maximum length (optional)

    Returns:
        Sanitized text
    """
    if not text:
        return ''

    sanitized = text.strip()

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized
