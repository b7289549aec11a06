"""
Database connection management.
Handles connection setup, write transactions, lock retries, and teardown.
"""

import logging
import sqlite3
import time
from contextlib import contextmanager
from functools import wraps

from flask import g, current_app

logger = logging.getLogger(__name__)


def get_db():
    """
    Get the per-context database connection with row factory.

    Returns:
        sqlite3.Connection: Database connection object
    """
    if 'db' not in g:
        db_path = current_app.config.get('DATABASE_PATH', 'instance/coworking.db')
        g.db = sqlite3.connect(
            db_path,
            timeout=current_app.config.get('DATABASE_TIMEOUT', 10),
            detect_types=sqlite3.PARSE_DECLTYPES
        )
        g.db.row_factory = sqlite3.Row
        # Enable foreign key constraints
        g.db.execute('PRAGMA foreign_keys = ON')
        # Enable WAL mode for better concurrency
        g.db.execute('PRAGMA journal_mode = WAL')
    return g.db


def close_db(e=None):
    """
    Close database connection.

    Args:
        e: Exception if any (from Flask teardown context)
    """
    db = g.pop('db', None)
    if db is not None:
        db.close()


@contextmanager
def immediate_transaction():
    """
    Run a block inside a BEGIN IMMEDIATE transaction.

    The reserved lock is taken before the first read, so a check followed
    by a write inside the block cannot interleave with another writer.
    Commits on success, rolls back on any exception and re-raises it.

    Yields:
        sqlite3.Cursor: Cursor bound to the open transaction
    """
    db = get_db()
    if db.in_transaction:
        # Flush implicit transactions opened by earlier statements
        db.commit()

    cursor = db.cursor()
    cursor.execute('BEGIN IMMEDIATE')
    try:
        yield cursor
    except Exception:
        db.rollback()
        raise
    else:
        db.commit()


def is_lock_error(error: Exception) -> bool:
    """Tell whether an sqlite error is lock contention rather than a real failure."""
    if not isinstance(error, sqlite3.OperationalError):
        return False
    message = str(error).lower()
    return 'locked' in message or 'busy' in message


def retry_on_lock(func):
    """
    Retry a whole transactional operation when SQLite reports lock contention.

    Only storage contention is retried, up to LOCK_RETRY_ATTEMPTS attempts.
    Domain errors propagate on the first attempt.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        attempts = max(1, int(current_app.config.get('LOCK_RETRY_ATTEMPTS', 3)))
        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except sqlite3.OperationalError as e:
                if not is_lock_error(e) or attempt == attempts:
                    raise
                logger.warning(
                    f"[DB] {func.__name__} hit lock contention "
                    f"(attempt {attempt}/{attempts}): {e}"
                )
                time.sleep(0.05 * attempt)
    return wrapper


def init_db():
    """
    Initialize database: drop existing tables, create new schema, insert seed data.
    WARNING: This will delete all existing data!
    """
    from database.schema import drop_tables, create_tables, create_indexes
    from database.seed import seed_database

    db = get_db()

    # Drop existing tables (in reverse order of dependencies)
    drop_tables(db)

    # Create all tables
    create_tables(db)

    # Create indexes
    create_indexes(db)

    # Insert seed data
    seed_database(db, promo_codes=current_app.config.get('PROMO_CODES'))

    db.commit()
    logger.info("Database initialized successfully")


def init_schema():
    """Create an empty schema without seed data."""
    from database.schema import drop_tables, create_tables, create_indexes

    db = get_db()
    drop_tables(db)
    create_tables(db)
    create_indexes(db)
    db.commit()
