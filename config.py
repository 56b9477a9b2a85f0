"""
Flask application configuration classes.
Provides configuration for development, production, and testing environments.
"""

import os
from datetime import timedelta


class Config:
    """Base configuration class with common settings."""

    # Secret key for session management and CSRF protection
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database configuration
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or 'instance/traydry.db'
    DATABASE_TIMEOUT = float(os.environ.get('DATABASE_TIMEOUT', 5.0))

    # Transient lock errors are retried this many times before giving up
    STORAGE_RETRY_ATTEMPTS = int(os.environ.get('STORAGE_RETRY_ATTEMPTS', 3))
    STORAGE_RETRY_BACKOFF = float(os.environ.get('STORAGE_RETRY_BACKOFF', 0.05))

    # Security settings
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = 3600  # CSRF token expires after 1 hour
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = False  # Set to True in production with HTTPS
    PERMANENT_SESSION_LIFETIME = timedelta(
        hours=int(os.environ.get('SESSION_TIMEOUT_HOURS', 8))
    )

    # Timezone
    TIMEZONE = 'Asia/Kolkata'

    # Tray pool: admin grid size vs. what a customer may buy in one booking
    TRAY_POOL_CAPACITY = int(os.environ.get('TRAY_POOL_CAPACITY', 50))
    MAX_TRAYS_PER_RESERVATION = int(os.environ.get('MAX_TRAYS_PER_RESERVATION', 24))

    # Calendar policy (weekday numbers follow date.weekday(): Monday=0)
    OFF_WEEKDAY = 6        # Sunday
    SPECIAL_WEEKDAY = 5    # Saturday, delivered on Monday
    SPECIAL_WEEKDAY_MIN_TRAYS = 6
    ORDER_CUTOFF_TIME = '13:00'  # same-day orders accepted until 1 PM

    # 'MM-DD' entries repeat every year, 'YYYY-MM-DD' entries are one-off
    FIXED_HOLIDAYS = [
        '01-26',  # Republic Day
        '08-15',  # Independence Day
        '10-02',  # Gandhi Jayanti
        '12-25',  # Christmas
        '2025-03-14',  # Holi
        '2025-03-31',  # Eid-ul-Fitr
        '2025-04-10',  # Mahavir Jayanti
        '2025-04-14',  # Ambedkar Jayanti
        '2025-04-18',  # Good Friday
        '2025-05-01',  # May Day
        '2025-06-07',  # Eid-ul-Adha
        '2025-08-27',  # Janmashtami
        '2025-10-20',  # Dussehra
        '2025-11-01',  # Diwali
        '2025-11-05',  # Guru Nanak Jayanti
    ]

    # Pending reservations keep their trays only while the customer pays
    PAYMENT_HOLD_MINUTES = int(os.environ.get('PAYMENT_HOLD_MINUTES', 15))

    # Shared secret for signed payment callbacks (HMAC-SHA256 over
    # 'reservation_id|payment_reference'). Unset: only admins confirm payments.
    PAYMENT_GATEWAY_SECRET = os.environ.get('PAYMENT_GATEWAY_SECRET')

    # Pricing (whole rupees)
    TRAY_PRICE_THRESHOLD = 6
    TRAY_PRICE_BELOW_THRESHOLD = 350
    TRAY_PRICE_AT_OR_ABOVE_THRESHOLD = 300
    PACKING_COST_PER_PACKET = 10
    VACUUM_PACKING_PRICE = 25
    VACUUM_PACKING_PRICE_BULK = 20
    VACUUM_PACKING_BULK_THRESHOLD = 10
    FREEZE_DRIED_PRICE_PER_GRAM = 2
    FREEZE_DRIED_MIN_GRAMS = 50
    VACUUM_PACKING_ITEMS = [
        'chicken', 'mutton', 'fish', 'prawn', 'meat', 'biryani', 'pulao', 'rice'
    ]

    # Cancellation credit policy
    CANCELLATION_CREDIT_RATIO = 0.5
    CANCELLATION_CREDIT_VALIDITY_MONTHS = 6

    # Application settings
    APP_NAME = 'TrayDry'
    APP_VERSION = '1.0.0'


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    TESTING = False
    SESSION_COOKIE_SECURE = False
    WTF_CSRF_SSL_STRICT = False


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', 'true').lower() == 'true'
    WTF_CSRF_SSL_STRICT = SESSION_COOKIE_SECURE

    SECRET_KEY = os.environ.get('SECRET_KEY') or Config.SECRET_KEY
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or Config.DATABASE_PATH

    # URL scheme preference (follows SESSION_COOKIE_SECURE setting)
    PREFERRED_URL_SCHEME = 'https' if SESSION_COOKIE_SECURE else 'http'

    @classmethod
    def validate(cls) -> None:
        """Validate that required production environment variables are set."""
        secret_key = os.environ.get('SECRET_KEY')
        if not secret_key:
            raise ValueError("SECRET_KEY environment variable must be set in production")
        if len(secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters in production")
        if not os.environ.get('DATABASE_PATH'):
            raise ValueError("DATABASE_PATH environment variable must be set in production")


class TestConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    DEBUG = True
    WTF_CSRF_ENABLED = False  # Disable CSRF for tests
    DATABASE_PATH = os.environ.get('DATABASE_PATH', ':memory:')
    SECRET_KEY = 'test-secret-key'
    STORAGE_RETRY_BACKOFF = 0.01
    PAYMENT_GATEWAY_SECRET = 'test-gateway-secret'


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'test': TestConfig,
    'default': DevelopmentConfig
}
