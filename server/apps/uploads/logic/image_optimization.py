"""Decide whether and how to re-encode an uploaded image.

Steps run in this order, each on the output of the previous one:

1. required format conversion (formats not served as-is, e.g. BMP)
2. EXIF orientation for JPEGs
3. crop/resize for crop-eligible upload types
4. palette quantization for PNGs
5. PNG to JPEG conversion when it saves enough

Steps 2-5 are optional optimizations: they are skipped for pasted
images (unless forced), theme assets and animated images. Every step
returns a ``StepResult``; a failed step keeps the last good image.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final

from server.apps.uploads.exceptions import TransformationError
from server.apps.uploads.infrastructure import images
from server.apps.uploads.infrastructure.metadata import (
    get_file_extension,
    replace_extension,
)
from server.apps.uploads.logic.options import ProcessingOptions
from server.apps.uploads.logic.policy import UploadPolicy

logger = logging.getLogger(__name__)

_PNG: Final = 'PNG'
_JPEG: Final = 'JPEG'
_PERCENT: Final = 100


@dataclass(frozen=True, slots=True)
class ImageState:
    """An image buffer together with what is known about it."""

    content: bytes
    info: images.ImageInfo
    filename: str

    @property
    def extension(self) -> str:
        """Extension matching the encoded format."""
        return self.info.image_format.extension


@dataclass(frozen=True, slots=True)
class StepResult:
    """Outcome of one transformation step."""

    state: ImageState
    error: TransformationError | None = None

    @property
    def ok(self) -> bool:
        """Whether the step completed without error."""
        return self.error is None


@dataclass(frozen=True, slots=True)
class TransformedImage:
    """Final image plus the steps that failed along the way."""

    state: ImageState
    errors: tuple[TransformationError, ...] = ()


_Step = Callable[[ImageState, ProcessingOptions, UploadPolicy], ImageState]


def _reencoded(state: ImageState, content: bytes) -> ImageState:
    info = images.probe_image(content)
    if info is None or not images.is_decodable(content):
        raise TransformationError('decode', 'encoder produced unreadable bytes')

    filename = state.filename
    image_format = info.image_format
    if get_file_extension(filename) not in image_format.aliases:
        filename = replace_extension(filename, image_format.filename_suffix)
    return ImageState(content=content, info=info, filename=filename)


def _run_step(
    name: str,
    step: _Step,
    state: ImageState,
    options: ProcessingOptions,
    policy: UploadPolicy,
) -> StepResult:
    try:
        return StepResult(state=step(state, options, policy))
    except TransformationError as error:
        failure = error
    except Exception as error:  # noqa: B902
        # Codec errors come in many shapes; all of them are non-fatal here
        failure = TransformationError(name, str(error) or type(error).__name__)

    logger.warning(
        'Image step %s failed for %s, keeping previous bytes: %s',
        name,
        state.filename,
        failure.reason,
    )
    return StepResult(state=state, error=failure)


def convert_required_format(
    state: ImageState,
    options: ProcessingOptions,
    policy: UploadPolicy,
) -> ImageState:
    """Re-encode formats that are never served as-is."""
    target = state.info.image_format.convert_to
    if target is None:
        return state

    logger.info('Converting %s to %s: %s', state.info.format, target, state.filename)
    return _reencoded(state, images.convert_image(state.content, target))


def fix_orientation(
    state: ImageState,
    options: ProcessingOptions,
    policy: UploadPolicy,
) -> ImageState:
    """Apply the EXIF orientation of JPEGs to the pixels."""
    if state.info.format != _JPEG:
        return state

    upright = images.apply_exif_orientation(state.content)
    if upright is state.content:
        return state
    return _reencoded(state, upright)


def crop(
    state: ImageState,
    options: ProcessingOptions,
    policy: UploadPolicy,
) -> ImageState:
    """Resize crop-eligible upload types to their target box."""
    target = policy.crop_target_for(options.type)
    if target is None:
        return state

    cropped = images.crop_image(
        state.content,
        target.width,
        target.height,
        target.mode,
    )
    if cropped is state.content:
        return state

    logger.info(
        'Cropped %s for %s to %dx%d (%s)',
        state.filename,
        options.type,
        target.width,
        target.height,
        target.mode,
    )
    return _reencoded(state, cropped)


def quantize(
    state: ImageState,
    options: ProcessingOptions,
    policy: UploadPolicy,
) -> ImageState:
    """Reduce PNGs to a palette when that makes them smaller."""
    if state.info.format != _PNG or not policy.quantize_png:
        return state

    quantized = images.quantize_png(state.content)
    if len(quantized) >= len(state.content):
        logger.debug('Quantization did not shrink %s', state.filename)
        return state

    if not images.is_decodable(quantized):
        raise TransformationError('quantize', 'quantized PNG does not decode')

    logger.info(
        'Quantized %s: %d -> %d bytes',
        state.filename,
        len(state.content),
        len(quantized),
    )
    return _reencoded(state, quantized)


def should_convert_to_jpeg(
    state: ImageState,
    options: ProcessingOptions,
    policy: UploadPolicy,
) -> bool:
    """Whether a PNG is a candidate for JPEG conversion.

    Pasted PNGs always are; other PNGs only above a pixel count.
    """
    if state.info.format != _PNG or not policy.jpeg_conversion_enabled:
        return False
    if options.pasted:
        return True
    return state.info.pixels > policy.jpeg_min_pixels


def jpeg_savings_qualify(
    original_size: int,
    jpeg_size: int,
    policy: UploadPolicy,
) -> bool:
    """Check both savings thresholds (inclusive).

    Example: 2297 -> 1600 bytes saves 30% but only 697 bytes, which
    fails a 25000 byte minimum.

    Args:
        original_size: Size of the current bytes.
        jpeg_size: Size of the JPEG candidate.
        policy: Policy snapshot.

    Returns:
        True if relative and absolute savings both reach their minimum.
    """
    if original_size <= 0:
        return False
    saved = original_size - jpeg_size
    saved_percent = saved * _PERCENT / original_size
    return (
        saved_percent >= policy.jpeg_min_savings_percent
        and saved >= policy.jpeg_min_savings_bytes
    )


def convert_to_jpeg(
    state: ImageState,
    options: ProcessingOptions,
    policy: UploadPolicy,
) -> ImageState:
    """Replace a PNG by a JPEG when the savings qualify."""
    if not should_convert_to_jpeg(state, options, policy):
        return state

    jpeg = images.encode_jpeg(state.content, policy.png_to_jpg_quality)
    if not jpeg_savings_qualify(len(state.content), len(jpeg), policy):
        logger.info(
            'Keeping PNG for %s, JPEG savings too small (%d -> %d bytes)',
            state.filename,
            len(state.content),
            len(jpeg),
        )
        return state

    logger.info(
        'Converted %s to JPEG: %d -> %d bytes',
        state.filename,
        len(state.content),
        len(jpeg),
    )
    return _reencoded(state, jpeg)


_OPTIMIZATION_STEPS: Final[tuple[tuple[str, _Step], ...]] = (
    ('fix_orientation', fix_orientation),
    ('crop', crop),
    ('quantize', quantize),
    ('convert_to_jpeg', convert_to_jpeg),
)


def should_optimize(
    info: images.ImageInfo,
    options: ProcessingOptions,
) -> bool:
    """Whether the optional optimization steps run.

    Args:
        info: Image header facts.
        options: Processing options.

    Returns:
        False for pasted images (unless forced), theme assets and
        animated images.
    """
    if options.pasted and not options.force_optimize:
        return False
    if options.for_theme:
        return False
    return not info.animated


def optimize_image(
    content: bytes,
    info: images.ImageInfo,
    filename: str,
    options: ProcessingOptions,
    policy: UploadPolicy,
) -> TransformedImage:
    """Run the image transformation steps.

    Args:
        content: Validated image bytes.
        info: Header facts of ``content``.
        filename: Resolved filename.
        options: Processing options.
        policy: Policy snapshot.

    Returns:
        Final image state and the errors of failed steps.
    """
    steps = [('convert_required_format', convert_required_format)]
    if should_optimize(info, options):
        steps.extend(_OPTIMIZATION_STEPS)
    else:
        logger.debug('Skipping optimization for %s', filename)

    state = ImageState(content=content, info=info, filename=filename)
    errors: list[TransformationError] = []
    for name, step in steps:
        step_result = _run_step(name, step, state, options, policy)
        state = step_result.state
        if not step_result.ok:
            errors.append(step_result.error)

    return TransformedImage(state=state, errors=tuple(errors))

