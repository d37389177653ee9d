"""Shared fixtures for uploads app tests."""

import io
import random
from collections.abc import Callable

import boto3
import pytest
from django.contrib.auth import get_user_model
from moto import mock_aws
from PIL import Image

from server.apps.uploads.infrastructure.storage import (
    LocalUploadStore,
    S3UploadStore,
)
from server.apps.uploads.logic.policy import CropTarget, UploadPolicy

User = get_user_model()

_TEST_BUCKET = 'uploads'


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for ownership tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def mock_s3():
    """Mock S3 service with uploads bucket.

    Yields:
        boto3 S3 resource with uploads bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=_TEST_BUCKET)
        yield conn


@pytest.fixture
def s3_store(mock_s3):
    """S3 upload store talking to the mocked bucket.

    Returns:
        S3UploadStore instance.
    """
    return S3UploadStore(
        bucket_name=_TEST_BUCKET,
        access_key='testing',
        secret_key='testing',
        region_name='us-east-1',
        signature_version='s3v4',
        file_overwrite=True,
        querystring_auth=False,
        default_acl=None,
        signed_url_expiry=60,
    )


@pytest.fixture
def local_store(tmp_path):
    """Local upload store writing into a temporary directory.

    Returns:
        LocalUploadStore instance.
    """
    return LocalUploadStore(
        location=str(tmp_path / 'media'),
        base_url='/uploads/',
    )


@pytest.fixture
def policy():
    """Policy allowing common image and attachment extensions.

    Returns:
        UploadPolicy instance.
    """
    return UploadPolicy(
        authorized_extensions=frozenset(
            ('jpg', 'jpeg', 'png', 'gif', 'txt', 'pdf', 'svg'),
        ),
        crop_targets={
            'avatar': CropTarget(240, 240, 'fill'),
            'custom_emoji': CropTarget(100, 100, 'contain'),
        },
    )


def encode_image(image: Image.Image, image_format: str, **params) -> bytes:
    """Encode a Pillow image to bytes."""
    buffer = io.BytesIO()
    image.save(buffer, format=image_format, **params)
    return buffer.getvalue()


@pytest.fixture
def noise_image() -> Callable[..., Image.Image]:
    """Factory for deterministic random-noise images.

    Noise does not compress, which makes PNG sizes predictable.

    Returns:
        Callable (width, height, mode='RGB', seed=0) -> Image.
    """
    def factory(
        width: int,
        height: int,
        mode: str = 'RGB',
        seed: int = 0,
    ) -> Image.Image:
        channels = len(mode)
        noise = random.Random(seed).randbytes(width * height * channels)
        return Image.frombytes(mode, (width, height), noise)

    return factory


@pytest.fixture
def noise_png(noise_image) -> Callable[..., bytes]:
    """Factory for random-noise PNG bytes.

    Returns:
        Callable (width, height, seed=0) -> PNG bytes.
    """
    def factory(width: int, height: int, seed: int = 0) -> bytes:
        return encode_image(noise_image(width, height, seed=seed), 'PNG')

    return factory


@pytest.fixture
def small_png() -> bytes:
    """Small gradient PNG (64x48).

    Returns:
        PNG bytes.
    """
    image = Image.new('RGB', (64, 48))
    image.putdata([
        (x * 4, y * 5, (x + y) % 256)
        for y in range(48)
        for x in range(64)
    ])
    return encode_image(image, 'PNG')


@pytest.fixture
def small_jpeg() -> bytes:
    """Small JPEG photo stand-in (80x60).

    Returns:
        JPEG bytes.
    """
    return encode_image(Image.new('RGB', (80, 60), (200, 30, 30)), 'JPEG')


@pytest.fixture
def small_webp() -> bytes:
    """Small WEBP image (32x32).

    Returns:
        WEBP bytes.
    """
    return encode_image(Image.new('RGB', (32, 32), (10, 120, 200)), 'WEBP')


@pytest.fixture
def svg_with_onload() -> bytes:
    """SVG document carrying an onload event handler.

    Returns:
        SVG bytes.
    """
    return (
        b'<?xml version="1.0" encoding="UTF-8"?>\n'
        b'<svg xmlns="http://www.w3.org/2000/svg" width="200px" '
        b'height="200px" onload="alert(location)">\n'
        b'</svg>\n'
    )


@pytest.fixture
def pdf_content() -> bytes:
    """Minimal PDF-looking bytes.

    Returns:
        PDF bytes.
    """
    return (
        b'%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\n'
        b'trailer\n<< /Root 1 0 R >>\n%%EOF\n'
    )
