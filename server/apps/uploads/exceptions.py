"""Exceptions for uploads app.

Validation failures use ``django.core.exceptions.ValidationError``;
the classes below cover the remaining pipeline failure kinds.
"""


class TransformationError(Exception):
    """Raised when an optional image transformation step fails.

    The pipeline absorbs it and keeps the last good bytes.
    """

    def __init__(self, step: str, reason: str) -> None:
        """Initialize TransformationError.

        Args:
            step: Name of the failed transformation step.
            reason: Human readable cause.
        """
        self.step = step
        self.reason = reason
        super().__init__(f'Transformation step {step!r} failed: {reason}')


class StorageError(Exception):
    """Raised when the storage backend cannot persist upload bytes."""

    def __init__(self, key: str, reason: str) -> None:
        """Initialize StorageError.

        Args:
            key: Storage key that was being written.
            reason: Human readable cause.
        """
        self.key = key
        self.reason = reason
        super().__init__(f'Failed to store {key}: {reason}')


class ConcurrencyConflict(Exception):  # noqa: N818
    """Raised when another request inserted the same content first."""

    def __init__(self, sha256: str) -> None:
        """Initialize ConcurrencyConflict.

        Args:
            sha256: Content hash that collided on insert.
        """
        self.sha256 = sha256
        super().__init__(f'Upload with sha256 {sha256} already exists')
