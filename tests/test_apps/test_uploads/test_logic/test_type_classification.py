"""Tests for upload type resolution and validation."""

import io

import pytest
from django.core.exceptions import ValidationError
from PIL import Image

from server.apps.uploads.logic.options import ProcessingOptions
from server.apps.uploads.logic.policy import UploadPolicy
from server.apps.uploads.logic.type_classification import classify_upload

_DEFAULT_OPTIONS = ProcessingOptions()


def _error_code(exc_info: pytest.ExceptionInfo[ValidationError]) -> str:
    return exc_info.value.code


def test_matching_extension(small_png, policy):
    """Test that a correctly named PNG is kept as it is."""
    resolved = classify_upload(small_png, 'logo.png', _DEFAULT_OPTIONS, policy)

    assert resolved.filename == 'logo.png'
    assert resolved.extension == 'png'
    assert resolved.is_image
    assert resolved.image_info.width == 64


def test_png_under_foreign_extension(small_png):
    """Test that the sniffed type corrects the filename."""
    policy = UploadPolicy(authorized_extensions=frozenset(('png', 'bin')))

    resolved = classify_upload(small_png, 'png_as.bin', _DEFAULT_OPTIONS, policy)

    assert resolved.filename == 'png_as.png'
    assert resolved.extension == 'png'


def test_jpeg_named_png(small_jpeg, policy):
    """Test JPEG bytes declared as PNG."""
    resolved = classify_upload(
        small_jpeg,
        'should_be_jpeg.png',
        _DEFAULT_OPTIONS,
        policy,
    )

    assert resolved.filename == 'should_be_jpeg.jpg'
    assert resolved.extension == 'jpeg'


def test_jpeg_alias_is_kept(small_jpeg, policy):
    """Test that 'jpg' and 'jpeg' both name JPEG."""
    resolved = classify_upload(small_jpeg, 'photo.jpg', _DEFAULT_OPTIONS, policy)

    assert resolved.filename == 'photo.jpg'
    assert resolved.extension == 'jpeg'


def test_non_coercible_format_keeps_declared_extension(small_webp):
    """Test that WEBP under a foreign extension stays an attachment."""
    policy = UploadPolicy(authorized_extensions=frozenset(('webp', 'bin')))

    resolved = classify_upload(
        small_webp,
        'webp_as.bin',
        _DEFAULT_OPTIONS,
        policy,
    )

    assert resolved.filename == 'webp_as.bin'
    assert resolved.extension == 'bin'
    assert not resolved.is_image


def test_svg(svg_with_onload, policy):
    """Test SVG detection by extension."""
    resolved = classify_upload(
        svg_with_onload,
        'image.svg',
        _DEFAULT_OPTIONS,
        policy,
    )

    assert resolved.is_svg
    assert resolved.is_image
    assert resolved.image_info is None


def test_attachment(pdf_content, policy):
    """Test that non-image uploads pass through."""
    resolved = classify_upload(pdf_content, 'doc.pdf', _DEFAULT_OPTIONS, policy)

    assert resolved.extension == 'pdf'
    assert not resolved.is_image


def test_filename_is_cleaned(policy):
    """Test control characters are removed before anything else."""
    resolved = classify_upload(b'hello', 'utf-8\n.txt', _DEFAULT_OPTIONS, policy)

    assert resolved.filename == 'utf-8.txt'


def test_undecodable_image(policy):
    """Test that bytes claiming to be an image must decode."""
    with pytest.raises(ValidationError) as exc_info:
        classify_upload(b'not a png', 'broken.png', _DEFAULT_OPTIONS, policy)

    assert _error_code(exc_info) == 'undecodable_image'


def test_empty_upload(policy):
    """Test that empty content is rejected."""
    with pytest.raises(ValidationError) as exc_info:
        classify_upload(b'', 'empty.txt', _DEFAULT_OPTIONS, policy)

    assert _error_code(exc_info) == 'empty'


def test_attachment_too_large():
    """Test the attachment size ceiling."""
    policy = UploadPolicy(
        authorized_extensions=frozenset(('txt',)),
        max_attachment_size_kb=1,
    )

    with pytest.raises(ValidationError) as exc_info:
        classify_upload(b'x' * 1025, 'big.txt', _DEFAULT_OPTIONS, policy)

    assert _error_code(exc_info) == 'too_large'


def test_attachment_at_size_limit():
    """Test that exactly the ceiling is accepted."""
    policy = UploadPolicy(
        authorized_extensions=frozenset(('txt',)),
        max_attachment_size_kb=1,
    )

    resolved = classify_upload(b'x' * 1024, 'big.txt', _DEFAULT_OPTIONS, policy)

    assert resolved.extension == 'txt'


def test_image_uses_image_ceiling(small_png):
    """Test images are checked against their own ceiling."""
    policy = UploadPolicy(max_image_size_kb=0, max_attachment_size_kb=4096)

    with pytest.raises(ValidationError) as exc_info:
        classify_upload(small_png, 'logo.png', _DEFAULT_OPTIONS, policy)

    assert _error_code(exc_info) == 'too_large'


def test_too_many_pixels(small_png):
    """Test the megapixel ceiling."""
    policy = UploadPolicy(max_image_megapixels=0)

    with pytest.raises(ValidationError) as exc_info:
        classify_upload(small_png, 'logo.png', _DEFAULT_OPTIONS, policy)

    assert _error_code(exc_info) == 'too_many_pixels'


def test_extension_not_allowed(policy):
    """Test the allow-list."""
    with pytest.raises(ValidationError) as exc_info:
        classify_upload(b'MZ', 'tool.exe', _DEFAULT_OPTIONS, policy)

    assert _error_code(exc_info) == 'extension_not_allowed'
    assert 'tool.exe' in exc_info.value.message


def test_allow_list_checks_corrected_extension(small_png):
    """Test that the corrected filename is what gets validated."""
    policy = UploadPolicy(authorized_extensions=frozenset(('bin',)))

    with pytest.raises(ValidationError) as exc_info:
        classify_upload(small_png, 'png_as.bin', _DEFAULT_OPTIONS, policy)

    assert _error_code(exc_info) == 'extension_not_allowed'


@pytest.mark.parametrize('options', [
    ProcessingOptions(for_site_setting=True),
    ProcessingOptions(for_theme=True),
])
def test_admin_context_bypasses_allow_list(small_png, options):
    """Test that site settings and themes skip the allow-list."""
    policy = UploadPolicy(authorized_extensions=frozenset(('jpg',)))

    resolved = classify_upload(small_png, 'logo.png', options, policy)

    assert resolved.extension == 'png'


def test_admin_context_still_checks_size(small_png):
    """Test that admin context does not bypass size limits."""
    policy = UploadPolicy(max_image_size_kb=0)

    with pytest.raises(ValidationError):
        classify_upload(
            small_png,
            'logo.png',
            ProcessingOptions(for_site_setting=True),
            policy,
        )


def test_truncated_jpeg(policy):
    """Test that a JPEG whose body is cut off is rejected."""
    buffer = io.BytesIO()
    Image.effect_noise((200, 200), 64).convert('RGB').save(buffer, format='JPEG')
    content = buffer.getvalue()

    with pytest.raises(ValidationError) as exc_info:
        classify_upload(
            content[:len(content) // 2],
            'photo.jpg',
            _DEFAULT_OPTIONS,
            policy,
        )

    assert _error_code(exc_info) == 'undecodable_image'


def test_dotfile_png(small_png, policy):
    """Test that '.png' carrying PNG bytes keeps its name."""
    resolved = classify_upload(small_png, '.png', _DEFAULT_OPTIONS, policy)

    assert resolved.filename == '.png'
    assert resolved.extension == 'png'
