"""Storage backends for upload bytes.

Both backends share one contract:

- ``store_upload(content, key)`` writes bytes under a content-derived key
  and returns the canonical URL plus an ETag (if the backend has one).
- ``url_for(upload)`` returns the URL a client should use, which for
  secure uploads on object storage is a short-lived signed URL.
- ``rollback_upload(key)`` is a best-effort delete used when the metadata
  commit fails after the bytes were written.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, final, override

from django.core.files.base import ContentFile
from django.core.files.storage import FileSystemStorage
from storages.backends.s3 import S3Storage

from server.apps.uploads.exceptions import StorageError

if TYPE_CHECKING:
    from server.apps.uploads.models import Upload

logger = logging.getLogger(__name__)

_DEFAULT_SIGNED_URL_EXPIRY = 300


@dataclass(frozen=True, slots=True)
class StoredObject:
    """Result of writing upload bytes to a backend."""

    key: str
    url: str
    etag: str = ''


class UploadStore(Protocol):
    """Capabilities the upload pipeline needs from a backend."""

    def store_upload(self, content: bytes, key: str) -> StoredObject:
        """Persist bytes under a key."""

    def url_for(self, upload: 'Upload') -> str:
        """Return the access URL for a stored upload."""

    def rollback_upload(self, key: str) -> None:
        """Delete bytes written for a failed metadata commit."""


def _rollback(storage: Any, key: str) -> None:
    try:
        logger.warning('Rolling back upload, deleting file: %s', key)
        storage.delete(key)
        logger.info('Successfully rolled back file upload: %s', key)
    except Exception:
        # Best-effort: the orphaned object can be cleaned up later
        logger.exception(
            'Failed to rollback upload, orphaned file: %s',
            key,
        )


@final
class LocalUploadStore(FileSystemStorage):
    """Filesystem backend writing under MEDIA_ROOT-style locations."""

    def store_upload(self, content: bytes, key: str) -> StoredObject:
        """Write bytes to disk unless the key already exists.

        Keys are content-addressed, so an existing file holds the same
        bytes and is left as it is.

        Args:
            content: Bytes to persist.
            key: Relative storage path.

        Returns:
            Stored object with the public URL (no ETag).

        Raises:
            StorageError: If the file cannot be written.
        """
        try:
            if self.exists(key):
                logger.info('File already stored, reusing: %s', key)
                saved_name = key
            else:
                logger.info('Writing file to local storage: %s', key)
                saved_name = self.save(key, ContentFile(content))
        except OSError as error:
            logger.exception('Failed to write file to local storage: %s', key)
            raise StorageError(key, str(error)) from error

        return StoredObject(key=saved_name, url=self.url(saved_name))

    def url_for(self, upload: 'Upload') -> str:
        """Local uploads are served from their stored URL.

        Args:
            upload: Stored upload.

        Returns:
            Stored URL.
        """
        return upload.url

    def rollback_upload(self, key: str) -> None:
        """Best-effort delete of a written file.

        Args:
            key: Storage path of file to delete.
        """
        _rollback(self, key)


@final
class S3UploadStore(S3Storage):
    """S3-compatible backend for uploads.

    Extends django-storages S3Storage with:
    - ETag reporting for stored objects
    - Signed URLs for secure uploads
    - Enhanced error logging
    """

    signed_url_expiry: int = _DEFAULT_SIGNED_URL_EXPIRY

    def __init__(self, **settings: Any) -> None:
        """Create the backend.

        Args:
            settings: django-storages options, plus an optional
                ``signed_url_expiry`` in seconds.
        """
        self.signed_url_expiry = settings.pop(
            'signed_url_expiry',
            _DEFAULT_SIGNED_URL_EXPIRY,
        )
        super().__init__(**settings)

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save file to S3 with error handling and logging.

        Args:
            name: Storage path for the file.
            content: File content (file-like object).
            max_length: Optional maximum length for the filename.

        Returns:
            Actual storage path used.

        Raises:
            Exception: If S3 upload fails.
        """
        try:
            logger.info('Uploading file to storage: %s', name)
            saved_name = super().save(name, content, max_length)
            logger.info('Successfully uploaded file: %s', saved_name)
        except Exception:
            logger.exception('Failed to upload file to storage: %s', name)
            raise
        else:
            return saved_name

    def store_upload(self, content: bytes, key: str) -> StoredObject:
        """Upload bytes and report the provider ETag.

        Args:
            content: Bytes to persist.
            key: Object key.

        Returns:
            Stored object with canonical URL and ETag.

        Raises:
            StorageError: If the upload or the ETag lookup fails.
        """
        try:
            saved_name = self.save(key, ContentFile(content))
            etag = self.bucket.Object(saved_name).e_tag or ''
        except Exception as error:
            raise StorageError(key, str(error)) from error

        return StoredObject(
            key=saved_name,
            url=self.url(saved_name),
            etag=etag.strip('"'),
        )

    def url_for(self, upload: 'Upload') -> str:
        """Return the canonical URL, or a signed one for secure uploads.

        Args:
            upload: Stored upload.

        Returns:
            URL to hand to the client.
        """
        if not upload.secure:
            return upload.url
        return self.signed_url(upload.storage_key)

    def signed_url(self, key: str, expire: int | None = None) -> str:
        """Generate a time-limited presigned GET URL.

        Args:
            key: Object key.
            expire: Lifetime in seconds (defaults to signed_url_expiry).

        Returns:
            Presigned URL.
        """
        return self.bucket.meta.client.generate_presigned_url(
            'get_object',
            Params={'Bucket': self.bucket_name, 'Key': key},
            ExpiresIn=expire or self.signed_url_expiry,
        )

    def rollback_upload(self, key: str) -> None:
        """Best-effort delete of an uploaded object.

        Args:
            key: Storage path of file to delete.
        """
        _rollback(self, key)
