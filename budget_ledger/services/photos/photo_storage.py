"""
Photo Attachment Storage

Project submissions may carry site photos as base64 payloads with a MIME
type. Something has to turn those into stable, retrievable URLs before
the URLs are written onto the project line.

Two implementations:
- InlinePhotoStorage: the URL *is* the data URI. No external service,
  fine for tests and small deployments, heavy for spreadsheet cells.
- CloudinaryPhotoStorage: uploads to Cloudinary and returns the secure URL.

Both check MIME type and size before doing anything.
"""

import hashlib
from abc import ABC, abstractmethod
from typing import Optional

import cloudinary
import cloudinary.uploader
from tenacity import retry, stop_after_attempt, wait_exponential

from budget_ledger.config import get_settings
from budget_ledger.models.records import PhotoAttachment


class PhotoStorageError(Exception):
    """Base exception for photo persistence errors."""
    pass


class UnsupportedPhotoError(PhotoStorageError):
    """Photo has a MIME type we do not accept, or is too large."""
    pass


class PhotoUploadError(PhotoStorageError):
    """Failed to persist a photo."""
    pass


class PhotoStorageInterface(ABC):
    """Turns photo attachments into retrievable URLs."""

    def __init__(
        self,
        allowed_types: Optional[list[str]] = None,
        max_bytes: Optional[int] = None,
    ):
        if allowed_types is None or max_bytes is None:
            app = get_settings().app
            allowed_types = allowed_types or app.supported_photo_types_list
            max_bytes = max_bytes or app.max_photo_size_bytes
        self._allowed_types = [t.lower() for t in allowed_types]
        self._max_bytes = max_bytes

    def check(self, photo: PhotoAttachment) -> bytes:
        """
        Validate one attachment and return its decoded bytes.

        Raises:
            UnsupportedPhotoError: wrong type, bad base64 or too large
        """
        if photo.type.lower() not in self._allowed_types:
            raise UnsupportedPhotoError(
                f"Unsupported photo type: {photo.type}. Allowed: {self._allowed_types}"
            )
        try:
            raw = photo.decoded()
        except ValueError as e:
            raise UnsupportedPhotoError(str(e))
        if len(raw) > self._max_bytes:
            raise UnsupportedPhotoError(
                f"Photo is {len(raw)} bytes, limit is {self._max_bytes}"
            )
        return raw

    @abstractmethod
    async def store(self, project_name: str, photos: list[PhotoAttachment]) -> list[str]:
        """
        Persist photos for a project.

        Returns:
            One URL per photo, in input order
        """
        pass


class InlinePhotoStorage(PhotoStorageInterface):
    """Keeps photos inline as data URIs."""

    async def store(self, project_name: str, photos: list[PhotoAttachment]) -> list[str]:
        urls = []
        for photo in photos:
            self.check(photo)
            urls.append(photo.as_data_uri())
        return urls


class CloudinaryPhotoStorage(PhotoStorageInterface):
    """Uploads photos to Cloudinary."""

    def __init__(
        self,
        allowed_types: Optional[list[str]] = None,
        max_bytes: Optional[int] = None,
    ):
        super().__init__(allowed_types, max_bytes)
        self._settings = get_settings().cloudinary
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def _public_id(self, project_name: str, raw: bytes) -> str:
        """
        Content-addressed public ID, so re-submitting the same photo
        overwrites instead of duplicating.

        Format: {name_hash}/{content_hash}
        """
        name_hash = hashlib.md5(project_name.encode("utf-8")).hexdigest()[:8]
        content_hash = hashlib.sha256(raw).hexdigest()[:16]
        return f"{name_hash}/{content_hash}"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _upload(self, photo: PhotoAttachment, public_id: str) -> str:
        result = cloudinary.uploader.upload(
            photo.as_data_uri(),
            public_id=public_id,
            folder=self._settings.folder,
            resource_type="image",
            overwrite=True,
        )
        url = result.get("secure_url", result.get("url", ""))
        if not url:
            raise PhotoUploadError("No URL returned from Cloudinary")
        return url

    async def store(self, project_name: str, photos: list[PhotoAttachment]) -> list[str]:
        self._configure()
        urls = []
        for photo in photos:
            raw = self.check(photo)
            try:
                urls.append(self._upload(photo, self._public_id(project_name, raw)))
            except PhotoUploadError:
                raise
            except Exception as e:
                raise PhotoUploadError(f"Cloudinary upload failed: {e}")
        return urls
