"""Content fingerprinting and filename utilities for uploads."""

import hashlib
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Final

from django.core.exceptions import ValidationError

_CHUNK_SIZE: Final = 8192  # 8KB chunks for checksum calculation
_MAX_EXTENSION_LENGTH: Final = 10


@dataclass(frozen=True, slots=True)
class Fingerprint:
    """Content hash plus byte length identifying stored bytes."""

    sha256: str
    size: int


def calculate_checksum(content: bytes) -> str:
    """Calculate SHA256 checksum of upload bytes.

    Hashes in chunks so the digest loop matches the streaming case.

    Args:
        content: Bytes to checksum.

    Returns:
        Hex-encoded SHA256 hash string.
    """
    sha256_hash = hashlib.sha256()
    view = memoryview(content)
    for offset in range(0, len(view), _CHUNK_SIZE):
        sha256_hash.update(view[offset:offset + _CHUNK_SIZE])
    return sha256_hash.hexdigest()


def fingerprint(content: bytes) -> Fingerprint:
    """Compute the deduplication fingerprint of upload bytes.

    Args:
        content: Bytes that will be (or already are) at rest.

    Returns:
        Fingerprint of the content.
    """
    return Fingerprint(sha256=calculate_checksum(content), size=len(content))


def clean_filename(filename: str) -> str:
    """Drop non-printable characters from a client filename.

    Example: 'utf-8\\n.txt' -> 'utf-8.txt'

    Args:
        filename: Declared filename.

    Returns:
        Printable filename without directory components.

    Raises:
        ValidationError: If nothing printable remains.
    """
    printable = ''.join(char for char in filename if char.isprintable())
    cleaned = PurePosixPath(printable.replace('\\', '/')).name.strip()
    if not cleaned:
        raise ValidationError(
            'Filename cannot be empty',
            code='invalid_filename',
        )
    return cleaned


def _split_extension(filename: str) -> tuple[str, str]:
    # A bare dotfile such as '.png' is all extension
    stem, dot, suffix = PurePosixPath(filename).name.rpartition('.')
    if not dot:
        return suffix, ''
    return stem, suffix


def get_file_extension(filename: str) -> str:
    """Get file extension from filename.

    Args:
        filename: Filename (e.g., 'document.PDF' or '.png').

    Returns:
        Extension without dot, lowercase, at most 10 characters
        (e.g., 'pdf'). Returns empty string if no extension.
    """
    _, extension = _split_extension(filename)
    return extension.lower()[:_MAX_EXTENSION_LENGTH]


def replace_extension(filename: str, extension: str) -> str:
    """Swap the extension of a filename, keeping the base name.

    Example: ('png_as.bin', 'png') -> 'png_as.png',
    ('.bin', 'png') -> '.png'

    Args:
        filename: Filename to rewrite.
        extension: New extension without dot.

    Returns:
        Filename with the new extension.
    """
    stem, _ = _split_extension(filename)
    return f'{stem}.{extension}'


def build_storage_key(upload_fingerprint: Fingerprint, extension: str) -> str:
    """Derive the storage key from stored content.

    Example: 'original/ab/abcd...ef.png'

    Args:
        upload_fingerprint: Fingerprint of the stored bytes.
        extension: Stored extension without dot (may be empty).

    Returns:
        Content-addressed storage key.
    """
    sha256 = upload_fingerprint.sha256
    suffix = f'.{extension}' if extension else ''
    return f'original/{sha256[:2]}/{sha256}{suffix}'
