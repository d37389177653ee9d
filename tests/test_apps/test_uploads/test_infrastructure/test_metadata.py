"""Tests for fingerprinting and filename utilities."""

import hashlib

import pytest
from django.core.exceptions import ValidationError

from server.apps.uploads.infrastructure.metadata import (
    Fingerprint,
    build_storage_key,
    calculate_checksum,
    clean_filename,
    fingerprint,
    get_file_extension,
    replace_extension,
)


def test_calculate_checksum():
    """Test SHA256 checksum calculation."""
    checksum = calculate_checksum(b'test content')

    # Should be 64 character hex string
    assert len(checksum) == 64
    assert all(c in '0123456789abcdef' for c in checksum)
    assert checksum == hashlib.sha256(b'test content').hexdigest()


def test_calculate_checksum_spans_chunks():
    """Test checksum of content larger than one chunk."""
    content = bytes(range(256)) * 100  # 25600 bytes, several chunks

    assert calculate_checksum(content) == hashlib.sha256(content).hexdigest()


def test_fingerprint_is_deterministic():
    """Test that identical bytes give identical fingerprints."""
    first = fingerprint(b'same bytes')
    second = fingerprint(b'same bytes')

    assert first == second
    assert first.size == len(b'same bytes')
    assert fingerprint(b'other bytes') != first


def test_clean_filename_removes_control_characters():
    """Test that non-printable characters are dropped."""
    assert clean_filename('utf-8\n.txt') == 'utf-8.txt'
    assert clean_filename('tab\tname.pdf') == 'tabname.pdf'


def test_clean_filename_strips_directories():
    """Test that only the last path component is kept."""
    assert clean_filename('../../etc/passwd') == 'passwd'
    assert clean_filename('C:\\Users\\me\\photo.png') == 'photo.png'


def test_clean_filename_empty():
    """Test that an empty filename is rejected."""
    with pytest.raises(ValidationError, match='cannot be empty'):
        clean_filename('\n\r')


def test_get_file_extension():
    """Test extension extraction."""
    assert get_file_extension('document.PDF') == 'pdf'
    assert get_file_extension('archive.tar.gz') == 'gz'
    assert get_file_extension('no_extension') == ''
    assert get_file_extension('file.verylongextension') == 'verylongex'


def test_replace_extension():
    """Test extension replacement keeps the base name."""
    assert replace_extension('png_as.bin', 'png') == 'png_as.png'
    assert replace_extension('should_be_jpeg.png', 'jpg') == 'should_be_jpeg.jpg'
    assert replace_extension('noext', 'png') == 'noext.png'


def test_build_storage_key():
    """Test content-addressed storage keys."""
    upload_fingerprint = Fingerprint(sha256='ab' + 'c' * 62, size=10)

    key = build_storage_key(upload_fingerprint, 'png')

    assert key == f'original/ab/{upload_fingerprint.sha256}.png'


def test_build_storage_key_without_extension():
    """Test storage key for extension-less uploads."""
    upload_fingerprint = Fingerprint(sha256='ff' * 32, size=10)

    assert build_storage_key(upload_fingerprint, '').endswith('ff' * 32)


def test_dotfile_is_all_extension():
    """Test that a bare dotfile name is treated as its extension."""
    assert get_file_extension('.png') == 'png'
    assert get_file_extension('.PNG') == 'png'
    assert replace_extension('.png', 'png') == '.png'
    assert replace_extension('.bin', 'png') == '.png'
