"""Tests for photo attachment storage."""

import asyncio
import base64

import cloudinary
import cloudinary.uploader
import pytest
from tenacity import wait_none

from budget_ledger.models.records import PhotoAttachment
from budget_ledger.services.photos import (
    CloudinaryPhotoStorage,
    InlinePhotoStorage,
    PhotoUploadError,
    UnsupportedPhotoError,
)


JPEG = base64.b64encode(b"\xff\xd8\xff\xe0 site photo").decode()


def photo(data=JPEG, mime="image/jpeg"):
    return PhotoAttachment(data=data, type=mime)


class TestInlinePhotoStorage:
    """Tests for data-URI photo storage."""

    def test_store_returns_data_uris(self):
        """Test that each photo becomes its data URI, in order."""
        storage = InlinePhotoStorage(allowed_types=["image/jpeg", "image/png"], max_bytes=1024)
        png = base64.b64encode(b"png bytes").decode()
        urls = asyncio.run(storage.store("Road Repair", [photo(), photo(png, "image/png")]))
        assert urls == [f"data:image/jpeg;base64,{JPEG}", f"data:image/png;base64,{png}"]

    def test_browser_data_uri_is_accepted(self):
        """Test that a full data URI as sent by a browser is not double-wrapped."""
        storage = InlinePhotoStorage(allowed_types=["image/jpeg"], max_bytes=1024)
        urls = asyncio.run(storage.store("Road Repair", [photo(f"data:image/jpeg;base64,{JPEG}")]))
        assert urls == [f"data:image/jpeg;base64,{JPEG}"]

    def test_unsupported_type(self):
        """Test that a disallowed MIME type is rejected."""
        storage = InlinePhotoStorage(allowed_types=["image/jpeg"], max_bytes=1024)
        with pytest.raises(UnsupportedPhotoError, match="Unsupported photo type"):
            storage.check(photo(mime="application/pdf"))

    def test_too_large(self):
        """Test that a photo over the size limit is rejected."""
        storage = InlinePhotoStorage(allowed_types=["image/jpeg"], max_bytes=4)
        with pytest.raises(UnsupportedPhotoError, match="limit is 4"):
            storage.check(photo())

    def test_bad_base64(self):
        """Test that malformed base64 is rejected."""
        storage = InlinePhotoStorage(allowed_types=["image/jpeg"], max_bytes=1024)
        with pytest.raises(UnsupportedPhotoError, match="not valid base64"):
            storage.check(photo("not*base64"))

    def test_limits_default_to_app_settings(self):
        """Test that limits come from AppSettings when not given."""
        storage = InlinePhotoStorage()
        storage.check(photo(mime="image/webp"))
        with pytest.raises(UnsupportedPhotoError):
            storage.check(photo(mime="image/gif"))


@pytest.fixture
def cloudinary_env(monkeypatch):
    monkeypatch.setenv("CLOUDINARY_CLOUD_NAME", "ledger-test")
    monkeypatch.setenv("CLOUDINARY_API_KEY", "key")
    monkeypatch.setenv("CLOUDINARY_API_SECRET", "secret")
    monkeypatch.setenv("CLOUDINARY_FOLDER", "site_photos")
    monkeypatch.setattr(cloudinary, "config", lambda **kwargs: None)
    monkeypatch.setattr(CloudinaryPhotoStorage._upload.retry, "wait", wait_none())


class TestCloudinaryPhotoStorage:
    """Tests for Cloudinary uploads with the SDK call faked."""

    def test_upload(self, cloudinary_env, monkeypatch):
        """Test that photos are uploaded under content-addressed IDs."""
        calls = []

        def fake_upload(file, **kwargs):
            calls.append((file, kwargs))
            return {"secure_url": f"https://res.cloudinary.com/{kwargs['public_id']}.jpg"}

        monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)
        storage = CloudinaryPhotoStorage(allowed_types=["image/jpeg"], max_bytes=1024)

        first = asyncio.run(storage.store("Road Repair", [photo()]))
        again = asyncio.run(storage.store("Road Repair", [photo()]))

        assert first == again
        assert first[0].startswith("https://res.cloudinary.com/")
        file, kwargs = calls[0]
        assert file == f"data:image/jpeg;base64,{JPEG}"
        assert kwargs["folder"] == "site_photos"
        assert kwargs["overwrite"] is True

    def test_same_photo_different_project(self, cloudinary_env):
        """Test that public IDs differ per project."""
        storage = CloudinaryPhotoStorage(allowed_types=["image/jpeg"], max_bytes=1024)
        raw = photo().decoded()
        assert storage._public_id("Road Repair", raw) != storage._public_id("Bridge", raw)

    def test_upload_failure(self, cloudinary_env, monkeypatch):
        """Test that SDK failures are retried and then wrapped."""
        attempts = []

        def failing_upload(file, **kwargs):
            attempts.append(file)
            raise RuntimeError("quota exceeded")

        monkeypatch.setattr(cloudinary.uploader, "upload", failing_upload)
        storage = CloudinaryPhotoStorage(allowed_types=["image/jpeg"], max_bytes=1024)

        with pytest.raises(PhotoUploadError, match="quota exceeded"):
            asyncio.run(storage.store("Road Repair", [photo()]))
        assert len(attempts) == 3

    def test_missing_url(self, cloudinary_env, monkeypatch):
        """Test that a response without a URL is an upload error."""
        monkeypatch.setattr(cloudinary.uploader, "upload", lambda file, **kwargs: {})
        storage = CloudinaryPhotoStorage(allowed_types=["image/jpeg"], max_bytes=1024)

        with pytest.raises(PhotoUploadError, match="No URL"):
            asyncio.run(storage.store("Road Repair", [photo()]))

    def test_rejected_before_upload(self, cloudinary_env, monkeypatch):
        """Test that invalid photos never reach the SDK."""
        calls = []
        monkeypatch.setattr(cloudinary.uploader, "upload", lambda file, **kwargs: calls.append(file))
        storage = CloudinaryPhotoStorage(allowed_types=["image/png"], max_bytes=1024)

        with pytest.raises(UnsupportedPhotoError):
            asyncio.run(storage.store("Road Repair", [photo()]))
        assert calls == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
