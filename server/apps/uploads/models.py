"""Database models for uploads app."""

from pathlib import Path
from typing import Final, final, override

from django.contrib.auth import get_user_model
from django.db import models

User = get_user_model()

# Constants for field max lengths
_SHA256_MAX_LENGTH: Final = 64  # SHA256 hex length
_EXTENSION_MAX_LENGTH: Final = 10
_FILENAME_MAX_LENGTH: Final = 1000
_URL_MAX_LENGTH: Final = 500
_ETAG_MAX_LENGTH: Final = 255


@final
class Upload(models.Model):
    """Deduplicated artifact stored through an upload store.

    One row per distinct stored byte sequence. ``sha256`` and
    ``filesize`` describe the bytes at rest, which may differ from what
    the client sent when the pipeline re-encoded an image.
    """

    # First principal that created the artifact
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_uploads',
    )

    sha256 = models.CharField(
        max_length=_SHA256_MAX_LENGTH,
        unique=True,
        help_text='SHA256 of the stored bytes',
    )

    filesize = models.BigIntegerField(
        help_text='Stored size in bytes',
    )

    extension = models.CharField(
        max_length=_EXTENSION_MAX_LENGTH,
        blank=True,
        help_text='Extension of the stored format, without dot',
    )

    original_filename = models.CharField(
        max_length=_FILENAME_MAX_LENGTH,
        help_text='Client filename, corrected to the stored format',
    )

    # Pixel dimensions (images only)
    width = models.PositiveIntegerField(null=True, blank=True)
    height = models.PositiveIntegerField(null=True, blank=True)

    storage_key = models.CharField(
        max_length=_URL_MAX_LENGTH,
        help_text='Key of the object in the upload store',
    )

    url = models.CharField(
        max_length=_URL_MAX_LENGTH,
        help_text='Canonical (unsigned) URL returned by the store',
    )

    etag = models.CharField(
        max_length=_ETAG_MAX_LENGTH,
        blank=True,
        default='',
    )

    secure = models.BooleanField(
        default=False,
        help_text='Access requires authentication or a signed URL',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Upload'  # type: ignore[mutable-override]
        verbose_name_plural = 'Uploads'  # type: ignore[mutable-override]
        ordering = ['-created_at']

        indexes = [
            # Deduplication lookups match hash and length together
            models.Index(
                fields=['sha256', 'filesize'],
                name='uploads_fingerprint_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.original_filename} ({self.sha256[:12]})'

    @property
    def is_image(self) -> bool:
        """Whether the artifact has pixel dimensions."""
        return self.width is not None and self.height is not None

    def get_url_extension(self) -> str:
        """Extract extension from the stored URL.

        Example: '/uploads/original/ab/abcd.png' -> '.png'

        Returns:
            Suffix including the dot, or empty string.
        """
        return Path(self.url).suffix


@final
class UserUpload(models.Model):
    """Ownership link between a user and an upload.

    A user may hold several links to the same upload: one is created
    for every successful pipeline call, including deduplicated ones.
    """

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='user_uploads',
        db_index=True,
    )

    upload = models.ForeignKey(
        Upload,
        on_delete=models.CASCADE,
        related_name='user_uploads',
        db_index=True,
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'User Upload'  # type: ignore[mutable-override]
        verbose_name_plural = 'User Uploads'  # type: ignore[mutable-override]
        ordering = ['-created_at']

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user.username}:{self.upload_id}'
