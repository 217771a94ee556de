"""Services package."""

from budget_ledger.services.photos import (
    CloudinaryPhotoStorage,
    InlinePhotoStorage,
    PhotoStorageError,
    PhotoStorageInterface,
    PhotoUploadError,
    UnsupportedPhotoError,
)
from budget_ledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryAuditStorage,
    InMemoryRecordStore,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)

__all__ = [
    # Photo services
    "CloudinaryPhotoStorage",
    "InlinePhotoStorage",
    "PhotoStorageError",
    "PhotoStorageInterface",
    "PhotoUploadError",
    "UnsupportedPhotoError",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
    "NotFoundError",
    "RecordStoreInterface",
    "StorageError",
]
