"""
Centralized user-facing messages.
"""

MESSAGES = {
    # Success messages
    'login_success': 'Welcome {name}',
    'logout_success': 'Signed out',
    'reservation_created': 'Booking created',
    'reservation_cancelled': 'Booking cancelled, credit of Rs {amount} issued',
    'payment_completed': 'Payment confirmed',
    'payment_failed': 'Payment marked as failed',
    'payment_unverified': 'Payment confirmation must come from the payment gateway',
    'override_saved': 'Calendar updated',
    'override_deleted': 'Calendar exception removed',
    'sweep_done': '{count} unpaid bookings expired',
    'user_created': 'User created',

    # Error messages
    'invalid_credentials': 'Invalid username or password',
    'account_disabled': 'Account is disabled',
    'login_required': 'Please sign in to continue',
    'permission_denied': 'You do not have permission for this action',
    'date_required': 'Date is required',
    'invalid_date': 'Invalid date, expected YYYY-MM-DD',
    'invalid_date_range': 'End date must not be before start date',
    'date_range_too_long': 'Date range cannot exceed {days} days',
    'trays_required': 'Tray count or tray numbers are required',
    'invalid_tray_count': 'Tray count must be a positive whole number',
    'dishes_required': 'At least one dish is required',
    'contact_required': 'Customer name and phone are required',
    'invalid_phone': 'Invalid phone number',
    'invalid_delivery_method': 'Invalid delivery method',
    'json_required': 'A JSON body is required',
    'username_exists': 'Username already exists',
    'email_exists': 'Email already exists',
    'conflict_retry_exhausted': 'Trays were taken while booking, please try again',
    'not_found': 'Resource not found',
    'server_error': 'Internal server error',
}


def get_message(key: str, **kwargs) -> str:
    """
    Get message with optional formatting.

    Args:
        key: Message key
        **kwargs: Format parameters

    Returns:
        Formatted message or key if not found
    """
    message = MESSAGES.get(key, key)
    if kwargs:
        return message.format(**kwargs)
    return message
