"""Resolve the true type of an upload and validate it.

The declared filename is only a hint. For raster images the byte
signature wins: a coercible format hiding under a foreign extension
gets its filename corrected, a non-coercible one keeps the declared
extension and is handled as a plain attachment.
"""

import logging
from dataclasses import dataclass
from typing import Final

from django.core.exceptions import ValidationError

from server.apps.uploads.infrastructure.images import (
    RASTER_EXTENSIONS,
    ImageInfo,
    is_decodable,
    probe_image,
)
from server.apps.uploads.infrastructure.metadata import (
    clean_filename,
    get_file_extension,
    replace_extension,
)
from server.apps.uploads.logic.options import ProcessingOptions
from server.apps.uploads.logic.policy import UploadPolicy

logger = logging.getLogger(__name__)

_SVG_EXTENSION: Final = 'svg'
_PIXELS_PER_MEGAPIXEL: Final = 1_000_000


@dataclass(frozen=True, slots=True)
class ResolvedType:
    """Outcome of type resolution.

    Attributes:
        filename: Cleaned filename, corrected to the sniffed format.
        extension: Extension the upload is stored with.
        image_info: Header facts for raster images handled as images.
        is_svg: Whether the upload is an SVG document.
    """

    filename: str
    extension: str
    image_info: ImageInfo | None = None
    is_svg: bool = False

    @property
    def is_image(self) -> bool:
        """Whether the upload is handled as an image."""
        return self.image_info is not None or self.is_svg


def _resolve(content: bytes, filename: str) -> ResolvedType:
    declared = get_file_extension(filename)
    image_info = probe_image(content)

    if image_info is not None:
        image_format = image_info.image_format
        if declared in image_format.aliases:
            return ResolvedType(filename, image_format.extension, image_info)
        if image_format.coercible:
            corrected = replace_extension(
                filename,
                image_format.filename_suffix,
            )
            logger.info(
                'Correcting filename from sniffed type %s: %s -> %s',
                image_info.format,
                filename,
                corrected,
            )
            return ResolvedType(corrected, image_format.extension, image_info)
        logger.debug(
            'Keeping declared extension %r for non-coercible %s',
            declared,
            image_info.format,
        )
        return ResolvedType(filename, declared)

    if declared == _SVG_EXTENSION:
        return ResolvedType(filename, declared, is_svg=True)

    if declared in RASTER_EXTENSIONS:
        raise ValidationError(
            f'{filename} is not a valid image',
            code='undecodable_image',
        )

    return ResolvedType(filename, declared)


def _validate_size(
    resolved: ResolvedType,
    size: int,
    policy: UploadPolicy,
) -> None:
    max_size = policy.max_size_bytes(resolved.is_image)
    if size > max_size:
        raise ValidationError(
            f'{resolved.filename} is too large '
            f'({size} bytes, maximum is {max_size} bytes)',
            code='too_large',
        )

    image_info = resolved.image_info
    max_pixels = policy.max_image_megapixels * _PIXELS_PER_MEGAPIXEL
    if image_info is not None and image_info.pixels > max_pixels:
        raise ValidationError(
            f'{resolved.filename} has too many pixels '
            f'({image_info.width}x{image_info.height})',
            code='too_many_pixels',
        )


def _validate_extension(
    resolved: ResolvedType,
    options: ProcessingOptions,
    policy: UploadPolicy,
) -> None:
    if options.for_admin_context:
        return

    extension = get_file_extension(resolved.filename)
    if not policy.is_extension_authorized(extension):
        authorized = ', '.join(sorted(policy.authorized_extensions))
        raise ValidationError(
            f'Sorry, {resolved.filename} has an extension that is not '
            f'allowed (allowed: {authorized})',
            code='extension_not_allowed',
        )


def classify_upload(
    content: bytes,
    filename: str,
    options: ProcessingOptions,
    policy: UploadPolicy,
) -> ResolvedType:
    """Resolve and validate the type of an upload.

    Runs before any transformation or storage I/O.

    Args:
        content: Raw upload bytes.
        filename: Declared filename.
        options: Processing options of the request.
        policy: Policy snapshot.

    Returns:
        Resolved filename, extension and image facts.

    Raises:
        ValidationError: If the upload is empty, too large, not a valid
            image while claiming to be one, or has an extension that is
            not allowed.
    """
    cleaned = clean_filename(filename)
    if not content:
        raise ValidationError(
            f'{cleaned} is empty',
            code='empty',
        )

    resolved = _resolve(content, cleaned)
    _validate_size(resolved, len(content), policy)
    # Header checks do not read pixel data; truncated bodies fail here
    if resolved.image_info is not None and not is_decodable(content):
        raise ValidationError(
            f'{resolved.filename} is not a valid image',
            code='undecodable_image',
        )
    _validate_extension(resolved, options, policy)
    return resolved
