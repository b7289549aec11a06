"""
Database package for the Coworking Reservation & Billing Core.

This package provides modular database operations:
- connection: Connection management (get_db, close_db, init_db) and
  write-transaction helpers (immediate_transaction, retry_on_lock)
- schema: Table creation and indexes
- seed: Initial seed data
"""

from database.connection import (
    get_db,
    close_db,
    init_db,
    init_schema,
    immediate_transaction,
    retry_on_lock,
    is_lock_error,
)
from database.schema import drop_tables, create_tables, create_indexes
from database.seed import seed_database

__all__ = [
    # Connection
    'get_db',
    'close_db',
    'init_db',
    'init_schema',
    'immediate_transaction',
    'retry_on_lock',
    'is_lock_error',
    # Schema
    'drop_tables',
    'create_tables',
    'create_indexes',
    # Seed
    'seed_database',
]
