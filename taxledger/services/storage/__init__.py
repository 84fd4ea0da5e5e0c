"""
Storage Services Package

Provides the abstract record store interface and two implementations:
SQLAlchemy (SQLite by default) and in-memory.
"""

from taxledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
    StorageInterface,
)
from taxledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
    InMemoryStorage,
)
from taxledger.services.storage.sql import (
    SQLAuditStorage,
    SQLRecordStore,
    SQLStorage,
    create_db_engine,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RecordStoreInterface",
    "StorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
    "InMemoryStorage",
    # SQL implementation
    "SQLAuditStorage",
    "SQLRecordStore",
    "SQLStorage",
    "create_db_engine",
]
