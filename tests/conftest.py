"""
Pytest configuration and fixtures.
Ensures tests use an isolated test database, not the production database.
"""

import os
import pytest
import tempfile
from datetime import date, timedelta

# Set test database path BEFORE importing app
# This ensures all tests use an isolated database
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), 'traydry_test.db')
os.environ['DATABASE_PATH'] = TEST_DB_PATH

CUSTOMER_PASSWORD = 'secret123'


@pytest.fixture(scope='session', autouse=True)
def setup_test_environment():
    """Set up test environment before any tests run."""
    # Ensure test database path is set
    os.environ['DATABASE_PATH'] = TEST_DB_PATH
    os.environ['FLASK_ENV'] = 'test'

    yield

    # Cleanup: remove test database after all tests
    for suffix in ('', '-wal', '-shm'):
        path = TEST_DB_PATH + suffix
        if os.path.exists(path):
            try:
                os.remove(path)
            except PermissionError:
                pass  # Windows may have file locked


@pytest.fixture
def app():
    """Create test application with isolated database."""
    from app import create_app
    from database import init_db

    # Ensure test database path
    os.environ['DATABASE_PATH'] = TEST_DB_PATH

    app = create_app('test')
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False
    app.config['DATABASE_PATH'] = TEST_DB_PATH

    with app.app_context():
        init_db()
        yield app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def authenticated_client(app, client):
    """Create test client logged in as the seeded admin."""
    client.post('/login', json={'username': 'admin', 'password': 'admin123'})
    return client


# =============================================================================
# USERS
# =============================================================================

@pytest.fixture
def make_user(app):
    """Factory creating users; returns the new user ID."""
    from models.user import create_user

    def _make_user(username, role='customer', phone='9876543210'):
        return create_user(
            username=username,
            email=f'{username}@example.com',
            password=CUSTOMER_PASSWORD,
            full_name=username.title(),
            role_name=role,
            phone=phone
        )

    return _make_user


@pytest.fixture
def admin_id(app):
    """ID of the seeded admin user."""
    from models.user import get_user_by_username
    return get_user_by_username('admin')['id']


@pytest.fixture
def customer_id(make_user):
    return make_user('asha')


@pytest.fixture
def other_customer_id(make_user):
    return make_user('ravi')


@pytest.fixture
def customer_client(client, customer_id):
    """Test client logged in as a customer."""
    client.post('/login', json={'username': 'asha', 'password': CUSTOMER_PASSWORD})
    return client


# =============================================================================
# DATES
# =============================================================================

@pytest.fixture
def date_factory(app):
    """
    Factory returning bookable future dates.

    date_factory(weekday) gives the first date at least `weeks_ahead` weeks
    out falling on that weekday (Monday=0) and not on a configured holiday.
    """
    holidays = set(app.config['FIXED_HOLIDAYS'])

    def _is_holiday(d):
        return d.isoformat() in holidays or d.strftime('%m-%d') in holidays

    def _pick(weekday=0, weeks_ahead=4):
        candidate = date.today() + timedelta(weeks=weeks_ahead)
        while candidate.weekday() != weekday or _is_holiday(candidate):
            candidate += timedelta(days=1)
        return candidate.isoformat()

    return _pick


@pytest.fixture
def weekday_date(date_factory):
    """A bookable Tuesday."""
    return date_factory(1)


@pytest.fixture
def saturday_date(date_factory):
    return date_factory(5)


@pytest.fixture
def sunday_date(date_factory):
    return date_factory(6)


# =============================================================================
# RESERVATIONS
# =============================================================================

@pytest.fixture
def paid_reservation(app):
    """Factory creating a reservation for explicit trays and marking it paid."""
    from models.reservation import create_reservation, mark_payment_completed

    def _paid(owner_id, reservation_date, trays, dish='Dal', **kwargs):
        reservation = create_reservation(
            owner_id=owner_id,
            reservation_date=reservation_date,
            tray_numbers=trays,
            dish_lines={dish: len(trays)},
            **kwargs
        )
        return mark_payment_completed(reservation['id'], payment_reference='pay_test')

    return _paid


def age_reservation(reservation_id, minutes):
    """Move a reservation's created_at into the past."""
    from database import get_db

    db = get_db()
    db.execute(
        "UPDATE reservations SET created_at = datetime('now', ?) WHERE id = ?",
        (f'-{int(minutes)} minutes', reservation_id)
    )
    db.commit()


@pytest.fixture
def age(app):
    """Fixture form of age_reservation for tests."""
    return age_reservation
