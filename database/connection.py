"""
Database connection management.
Handles per-request connections, write transactions, retries, and initialization.
"""

import logging
import random
import sqlite3
import time
from contextlib import contextmanager
from functools import wraps

from flask import g, current_app

from models.errors import StorageUnavailable

logger = logging.getLogger(__name__)

TRANSIENT_ERROR_MARKERS = ('database is locked', 'database is busy', 'database table is locked')


def get_db():
    """
    Get thread-safe database connection with row factory.

    Returns:
        sqlite3.Connection: Database connection object
    """
    if 'db' not in g:
        db_path = current_app.config.get('DATABASE_PATH', 'instance/traydry.db')
        g.db = sqlite3.connect(
            db_path,
            timeout=current_app.config.get('DATABASE_TIMEOUT', 5.0)
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
    g.pop('tx_depth', None)
    if db is not None:
        db.close()


@contextmanager
def transaction():
    """
    Run a block inside a write transaction.

    The outermost call issues BEGIN IMMEDIATE, which takes SQLite's write
    lock up front so that the read-validate-insert sequence inside the block
    cannot interleave with another writer. Nested calls join the outer
    transaction; only the outermost one commits or rolls back.

    Yields:
        sqlite3.Connection: The request connection
    """
    db = get_db()
    depth = g.get('tx_depth', 0)

    if depth:
        g.tx_depth = depth + 1
        try:
            yield db
        finally:
            g.tx_depth = depth
        return

    if db.in_transaction:
        # Flush implicit transactions opened by stray DML
        db.commit()

    db.execute('BEGIN IMMEDIATE')
    g.tx_depth = 1
    try:
        yield db
    except BaseException:
        db.rollback()
        raise
    else:
        db.commit()
    finally:
        g.tx_depth = 0


def is_transient_error(error: Exception) -> bool:
    """Check whether a sqlite error is a lock/busy condition worth retrying."""
    if not isinstance(error, sqlite3.OperationalError):
        return False
    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_ERROR_MARKERS)


def storage_retry(func):
    """
    Retry a storage operation on transient lock errors.

    Attempts and base backoff come from STORAGE_RETRY_ATTEMPTS and
    STORAGE_RETRY_BACKOFF. Exhaustion raises StorageUnavailable. Calls made
    from inside an open transaction are not retried on their own; the
    outermost decorated call retries the whole unit of work.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        if g.get('tx_depth', 0):
            return func(*args, **kwargs)

        attempts = max(1, current_app.config.get('STORAGE_RETRY_ATTEMPTS', 3))
        backoff = current_app.config.get('STORAGE_RETRY_BACKOFF', 0.05)

        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except sqlite3.OperationalError as e:
                if not is_transient_error(e):
                    raise

                db = g.get('db')
                if db is not None and db.in_transaction:
                    db.rollback()

                if attempt == attempts:
                    logger.error(f"[Storage] {func.__name__} failed after {attempts} attempts: {e}")
                    raise StorageUnavailable(
                        f"Storage unavailable, please retry shortly ({func.__name__})"
                    ) from e

                delay = backoff * (2 ** (attempt - 1)) * (0.6 + 0.4 * random.random())
                logger.warning(
                    f"[Storage] {func.__name__} attempt {attempt}/{attempts} hit '{e}', "
                    f"retrying in {delay:.3f}s"
                )
                time.sleep(delay)

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
    seed_database(db)

    db.commit()
    logger.info("Database initialized")
