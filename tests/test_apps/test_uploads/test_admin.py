"""Tests for uploads admin helpers."""

import pytest
from django.contrib.admin.sites import AdminSite

from server.apps.uploads.admin import UploadAdmin, _format_bytes
from server.apps.uploads.models import Upload


@pytest.mark.parametrize(('size_bytes', 'expected'), [
    (512, '512 B'),
    (1536, '1.5 KB'),
    (5 * 1024 * 1024, '5.0 MB'),
    (3 * 1024 * 1024 * 1024, '3.0 GB'),
])
def test_format_bytes(size_bytes, expected):
    """Test human-readable sizes."""
    assert _format_bytes(size_bytes) == expected


def test_upload_admin_displays():
    """Test size and dimension columns."""
    upload_admin = UploadAdmin(Upload, AdminSite())
    image = Upload(filesize=2048, width=64, height=48)
    attachment = Upload(filesize=10)

    assert upload_admin.size_display(image) == '2.0 KB'
    assert upload_admin.dimensions_display(image) == '64x48'
    assert upload_admin.dimensions_display(attachment) == '-'
