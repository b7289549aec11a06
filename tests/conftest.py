"""
Pytest configuration and fixtures.
Ensures tests use an isolated test database, not the production database.
"""

import os
import pytest
import tempfile
from datetime import date, datetime, timedelta

# Set test database path BEFORE importing app
# This ensures all tests use an isolated database
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), f'coworking_test_{os.getpid()}.db')
os.environ['DATABASE_PATH'] = TEST_DB_PATH


@pytest.fixture(scope='session', autouse=True)
def setup_test_environment():
    """Set up test environment before any tests run."""
    os.environ['DATABASE_PATH'] = TEST_DB_PATH
    os.environ['FLASK_ENV'] = 'test'

    yield

    # Cleanup: remove test database (and WAL side files) after all tests
    for suffix in ('', '-wal', '-shm'):
        path = TEST_DB_PATH + suffix
        if os.path.exists(path):
            try:
                os.remove(path)
            except PermissionError:
                pass  # Windows may have file locked


@pytest.fixture
def app():
    """Create test application with a freshly initialized database."""
    from app import create_app
    from database import init_db

    os.environ['DATABASE_PATH'] = TEST_DB_PATH

    app = create_app('test')
    app.config['TESTING'] = True
    app.config['DATABASE_PATH'] = TEST_DB_PATH

    with app.app_context():
        init_db()
        yield app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def member_id(app):
    """An active member."""
    from models.member import create_member
    return create_member('Amina', 'Benali', email='amina@example.com', phone='0551234567')


@pytest.fixture
def space_a(app):
    """Meeting room with hourly 500.00 and daily 3000.00 (minor units)."""
    from models.space import create_space
    return create_space(
        'Salle A', 'meeting_room', capacity=6,
        hourly_rate=50000, daily_rate=300000
    )


@pytest.fixture
def future_day():
    """A date comfortably in the future."""
    return date.today() + timedelta(days=30)


@pytest.fixture
def at(future_day):
    """Build naive local datetimes on future_day: at(9) -> 09:00, at(9, days=1) -> next day 09:00."""
    def _at(hour: int, minute: int = 0, days: int = 0) -> datetime:
        day = future_day + timedelta(days=days)
        return datetime(day.year, day.month, day.day, hour, minute)
    return _at
