"""
Database package for the tray booking service.

This package provides modular database operations:
- connection: Connection management, write transactions, lock retries
- schema: Table creation and indexes
- seed: Initial seed data

For convenience, the common functions are re-exported from this module.
"""

from database.connection import (
    get_db,
    close_db,
    init_db,
    transaction,
    storage_retry,
    is_transient_error,
)
from database.schema import drop_tables, create_tables, create_indexes
from database.seed import seed_database

__all__ = [
    # Connection
    'get_db',
    'close_db',
    'init_db',
    'transaction',
    'storage_retry',
    'is_transient_error',
    # Schema
    'drop_tables',
    'create_tables',
    'create_indexes',
    # Seed
    'seed_database',
]
