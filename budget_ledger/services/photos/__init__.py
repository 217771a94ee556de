"""Photo attachment storage package."""

from budget_ledger.services.photos.photo_storage import (
    CloudinaryPhotoStorage,
    InlinePhotoStorage,
    PhotoStorageError,
    PhotoStorageInterface,
    PhotoUploadError,
    UnsupportedPhotoError,
)

__all__ = [
    "CloudinaryPhotoStorage",
    "InlinePhotoStorage",
    "PhotoStorageError",
    "PhotoStorageInterface",
    "PhotoUploadError",
    "UnsupportedPhotoError",
]
