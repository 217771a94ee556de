"""
Storage Services Package

Provides the abstract record-store interface and its implementations:
Google Sheets for the shared deployment, in-memory for tests and local runs.
"""

from budget_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    ProjectKey,
    RecordStoreInterface,
    StorageError,
)
from budget_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
)
from budget_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ProjectKey",
    "RecordStoreInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
]
