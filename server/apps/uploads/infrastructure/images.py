"""Image codec operations backed by Pillow.

Everything here works on ``bytes`` in and ``bytes`` out so the pipeline
can keep the last good buffer whenever a step fails.
"""

import io
import logging
import struct
import warnings
from dataclasses import dataclass
from typing import Final

from django.core.exceptions import ValidationError
from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

_WHITE: Final = (255, 255, 255)
_EXIF_ORIENTATION_TAG: Final = 0x0112
_DEFAULT_JPEG_QUALITY: Final = 90
_PALETTE_COLORS: Final = 256
_PNG_SAFE_MODES: Final = frozenset(('1', 'L', 'LA', 'P', 'RGB', 'RGBA', 'I'))
_ALPHA_MODES: Final = frozenset(('RGBA', 'LA', 'PA', 'La', 'RGBa'))

# Errors Pillow raises for truncated or otherwise broken input
_DECODE_ERRORS: Final = (
    UnidentifiedImageError,
    OSError,
    ValueError,
    SyntaxError,
    EOFError,
    struct.error,
)


@dataclass(frozen=True, slots=True)
class ImageFormat:
    """How the pipeline treats one raster format.

    Attributes:
        extension: Canonical extension stored on the upload.
        filename_suffix: Suffix used when a filename is corrected.
        aliases: Extensions that already name this format.
        coercible: Whether a mismatching filename is corrected.
        convert_to: Pillow format the bytes are re-encoded into, if
            this format is not served as-is.
    """

    extension: str
    filename_suffix: str
    aliases: frozenset[str]
    coercible: bool = True
    convert_to: str | None = None


IMAGE_FORMATS: Final = {
    'PNG': ImageFormat('png', 'png', frozenset(('png',))),
    'JPEG': ImageFormat('jpeg', 'jpg', frozenset(('jpg', 'jpeg', 'jpe'))),
    'GIF': ImageFormat('gif', 'gif', frozenset(('gif',))),
    'ICO': ImageFormat('ico', 'ico', frozenset(('ico',))),
    'BMP': ImageFormat('bmp', 'bmp', frozenset(('bmp',)), convert_to='PNG'),
    'TIFF': ImageFormat(
        'tiff', 'tiff', frozenset(('tif', 'tiff')), convert_to='PNG',
    ),
    'WEBP': ImageFormat('webp', 'webp', frozenset(('webp',)), coercible=False),
}

# Extensions that claim to be raster images
RASTER_EXTENSIONS: Final = frozenset(
    alias
    for image_format in IMAGE_FORMATS.values()
    for alias in image_format.aliases
)


@dataclass(frozen=True, slots=True)
class ImageInfo:
    """Facts read from an image header."""

    format: str
    width: int
    height: int
    frames: int = 1
    has_alpha: bool = False

    @property
    def pixels(self) -> int:
        """Total pixel count."""
        return self.width * self.height

    @property
    def animated(self) -> bool:
        """Whether the image has more than one frame."""
        return self.frames > 1

    @property
    def image_format(self) -> ImageFormat:
        """Pipeline treatment of this format."""
        return IMAGE_FORMATS[self.format]


def _open(content: bytes) -> Image.Image:
    return Image.open(io.BytesIO(content))


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in _ALPHA_MODES or 'transparency' in image.info


def probe_image(content: bytes) -> ImageInfo | None:
    """Sniff image type and dimensions from bytes.

    Args:
        content: Candidate image bytes.

    Returns:
        ImageInfo for supported raster formats, None when the bytes are
        not a (supported) image or cannot be decoded.

    Raises:
        ValidationError: If the image is a decompression bomb.
    """
    try:
        with warnings.catch_warnings():
            warnings.simplefilter('error', Image.DecompressionBombWarning)
            with _open(content) as image:
                image.verify()
            with _open(content) as image:
                image_format = image.format
                width, height = image.size
                frames = getattr(image, 'n_frames', 1)
                has_alpha = _has_alpha(image)
    except (Image.DecompressionBombError, Image.DecompressionBombWarning) as error:
        raise ValidationError(
            'Image has too many pixels',
            code='too_many_pixels',
        ) from error
    except _DECODE_ERRORS:
        return None

    if image_format not in IMAGE_FORMATS:
        logger.debug('Ignoring unsupported image format: %s', image_format)
        return None

    return ImageInfo(
        format=image_format,
        width=int(width),
        height=int(height),
        frames=int(frames),
        has_alpha=has_alpha,
    )


def is_decodable(content: bytes) -> bool:
    """Check that bytes fully decode as an image.

    Args:
        content: Image bytes.

    Returns:
        True if every pixel could be read.
    """
    try:
        with _open(content) as image:
            image.load()
    except _DECODE_ERRORS:
        return False
    return True


def _save(image: Image.Image, image_format: str, **params: object) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=image_format, **params)
    return buffer.getvalue()


def _save_params(image_format: str) -> dict[str, object]:
    if image_format == 'JPEG':
        return {'quality': _DEFAULT_JPEG_QUALITY, 'optimize': True}
    if image_format == 'PNG':
        return {'optimize': True}
    return {}


def _png_compatible(image: Image.Image) -> Image.Image:
    if image.mode in _PNG_SAFE_MODES:
        return image
    return image.convert('RGBA' if _has_alpha(image) else 'RGB')


def quantize_png(content: bytes) -> bytes:
    """Reduce a PNG to an indexed palette.

    Args:
        content: PNG bytes.

    Returns:
        Palette PNG bytes (may be larger than the input).
    """
    with _open(content) as image:
        image.load()
        if _has_alpha(image):
            source = image.convert('RGBA')
            method = Image.Quantize.FASTOCTREE
        else:
            source = image.convert('RGB')
            method = Image.Quantize.MEDIANCUT
        quantized = source.quantize(colors=_PALETTE_COLORS, method=method)
    return _save(quantized, 'PNG', optimize=True)


def encode_jpeg(content: bytes, quality: int) -> bytes:
    """Re-encode an image as JPEG.

    Transparent pixels are flattened onto a white background.

    Args:
        content: Source image bytes.
        quality: JPEG quality (1-95).

    Returns:
        JPEG bytes.
    """
    with _open(content) as image:
        image.load()
        if _has_alpha(image):
            rgba = image.convert('RGBA')
            flattened = Image.new('RGB', rgba.size, _WHITE)
            flattened.paste(rgba, mask=rgba.getchannel('A'))
        else:
            flattened = image.convert('RGB')
    return _save(flattened, 'JPEG', quality=quality, optimize=True)


def convert_image(content: bytes, target_format: str) -> bytes:
    """Re-encode an image into another format.

    Args:
        content: Source image bytes.
        target_format: Pillow format name (e.g. 'PNG').

    Returns:
        Encoded bytes in the target format.
    """
    with _open(content) as image:
        image.load()
        if target_format == 'PNG':
            converted = _png_compatible(image)
        else:
            converted = image.convert('RGB')
        return _save(converted, target_format, **_save_params(target_format))


def crop_image(
    content: bytes,
    width: int,
    height: int,
    mode: str,
) -> bytes:
    """Resize an image to a target box, keeping its format.

    ``fill`` center-crops to exactly ``width`` x ``height``;
    ``contain`` shrinks to fit inside the box and never enlarges.

    Args:
        content: Source image bytes.
        width: Target width in pixels.
        height: Target height in pixels.
        mode: 'fill' or 'contain'.

    Returns:
        Resized image bytes (the input when nothing had to change).
    """
    with _open(content) as image:
        image_format = image.format
        image.load()
        if mode == 'contain' and image.width <= width and image.height <= height:
            return content
        if mode == 'fill' and image.size == (width, height):
            return content

        working = image.convert('RGBA') if image.mode == 'P' else image
        if mode == 'fill':
            resized = ImageOps.fit(
                working,
                (width, height),
                method=Image.Resampling.LANCZOS,
            )
        else:
            resized = working.copy()
            resized.thumbnail((width, height), Image.Resampling.LANCZOS)

    if image_format == 'JPEG' and resized.mode != 'RGB':
        resized = resized.convert('RGB')
    return _save(resized, image_format, **_save_params(image_format))


def apply_exif_orientation(content: bytes) -> bytes:
    """Rotate JPEG pixels according to the EXIF orientation tag.

    Args:
        content: JPEG bytes.

    Returns:
        Upright JPEG bytes without the orientation tag, or the input
        when no rotation is needed.
    """
    with _open(content) as image:
        orientation = image.getexif().get(_EXIF_ORIENTATION_TAG, 1)
        if orientation == 1:
            return content
        upright = ImageOps.exif_transpose(image)
    return _save(upright, 'JPEG', **_save_params('JPEG'))
