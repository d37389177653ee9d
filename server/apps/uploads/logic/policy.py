"""Immutable snapshot of the upload policy settings."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Final, Literal, Self

from django.conf import settings

CropMode = Literal['fill', 'contain']

_ALLOW_ALL: Final = '*'
_NO_JPEG_CONVERSION_QUALITY: Final = 100


@dataclass(frozen=True, slots=True)
class CropTarget:
    """Fixed target box for crop-eligible upload types."""

    width: int
    height: int
    mode: CropMode = 'contain'


def parse_authorized_extensions(raw_value: str) -> frozenset[str]:
    """Parse a pipe separated allow-list.

    Example: '.webp|.BIN| txt' -> {'webp', 'bin', 'txt'}

    Args:
        raw_value: Allow-list as configured.

    Returns:
        Lowercase extensions without dots.
    """
    extensions = (
        part.strip().lstrip('.').lower()
        for part in raw_value.split('|')
    )
    return frozenset(ext for ext in extensions if ext)


@dataclass(frozen=True, slots=True)
class UploadPolicy:  # noqa: WPS230
    """Configuration the pipeline reads during one invocation.

    Built once with ``from_settings`` and passed down explicitly, so a
    settings change mid-request cannot produce a mixed decision.
    """

    authorized_extensions: frozenset[str] = frozenset(
        ('jpg', 'jpeg', 'png', 'gif'),
    )
    max_image_size_kb: int = 4096
    max_attachment_size_kb: int = 4096
    max_image_megapixels: int = 40
    quantize_png: bool = True
    png_to_jpg_quality: int = 95
    jpeg_min_savings_percent: int = 15
    jpeg_min_savings_bytes: int = 25000
    jpeg_min_pixels: int = 1280 * 720
    crop_targets: Mapping[str, CropTarget] = field(
        default_factory=lambda: MappingProxyType({}),
    )
    secure_media: bool = False
    login_required: bool = False
    prevent_anons_from_downloading_files: bool = False

    @classmethod
    def from_settings(cls) -> Self:
        """Capture current Django settings.

        Returns:
            Policy with every value resolved.
        """
        crop_targets = {
            upload_type: CropTarget(*target)
            for upload_type, target in settings.UPLOADS_CROP_TARGETS.items()
        }
        return cls(
            authorized_extensions=parse_authorized_extensions(
                settings.UPLOADS_AUTHORIZED_EXTENSIONS,
            ),
            max_image_size_kb=settings.UPLOADS_MAX_IMAGE_SIZE_KB,
            max_attachment_size_kb=settings.UPLOADS_MAX_ATTACHMENT_SIZE_KB,
            max_image_megapixels=settings.UPLOADS_MAX_IMAGE_MEGAPIXELS,
            quantize_png=settings.UPLOADS_QUANTIZE_PNG,
            png_to_jpg_quality=settings.UPLOADS_PNG_TO_JPG_QUALITY,
            jpeg_min_savings_percent=settings.UPLOADS_JPEG_MIN_SAVINGS_PERCENT,
            jpeg_min_savings_bytes=settings.UPLOADS_JPEG_MIN_SAVINGS_BYTES,
            jpeg_min_pixels=settings.UPLOADS_JPEG_MIN_PIXELS,
            crop_targets=MappingProxyType(crop_targets),
            secure_media=settings.UPLOADS_SECURE_MEDIA,
            login_required=settings.UPLOADS_LOGIN_REQUIRED,
            prevent_anons_from_downloading_files=(
                settings.UPLOADS_PREVENT_ANONS_FROM_DOWNLOADING_FILES
            ),
        )

    @property
    def allows_all_extensions(self) -> bool:
        """Whether the allow-list is the '*' wildcard."""
        return _ALLOW_ALL in self.authorized_extensions

    @property
    def jpeg_conversion_enabled(self) -> bool:
        """Whether PNG to JPEG conversion may run at all."""
        return self.png_to_jpg_quality < _NO_JPEG_CONVERSION_QUALITY

    def is_extension_authorized(self, extension: str) -> bool:
        """Check an extension against the allow-list.

        Args:
            extension: Extension without dot.

        Returns:
            True if the extension may be stored.
        """
        if self.allows_all_extensions:
            return True
        return extension.lower() in self.authorized_extensions

    def max_size_bytes(self, is_image: bool) -> int:
        """Size ceiling for an image or an attachment.

        Args:
            is_image: Whether the upload is an image.

        Returns:
            Maximum allowed size in bytes.
        """
        size_kb = (
            self.max_image_size_kb if is_image
            else self.max_attachment_size_kb
        )
        return size_kb * 1024

    def crop_target_for(self, upload_type: str | None) -> CropTarget | None:
        """Look up the crop target for an upload type.

        Args:
            upload_type: Usage context, may be None.

        Returns:
            Target box, or None when the type is not crop-eligible.
        """
        if upload_type is None:
            return None
        return self.crop_targets.get(upload_type)
