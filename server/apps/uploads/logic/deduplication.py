"""Content-addressed deduplication of uploads.

``Upload.sha256`` is unique in the database. Concurrent requests for the
same content race on insert; the loser gets ``ConcurrencyConflict`` and
falls back to linking the winner instead of taking a lock up front.
"""

import logging
from typing import Any

from django.db import IntegrityError, transaction

from server.apps.uploads.exceptions import ConcurrencyConflict
from server.apps.uploads.infrastructure.metadata import Fingerprint
from server.apps.uploads.models import Upload, UserUpload

logger = logging.getLogger(__name__)


def find_existing_upload(upload_fingerprint: Fingerprint) -> Upload | None:
    """Look up an upload with exactly this content.

    Args:
        upload_fingerprint: Hash and length of the stored bytes.

    Returns:
        Matching Upload, or None on a miss.
    """
    return Upload.objects.filter(
        sha256=upload_fingerprint.sha256,
        filesize=upload_fingerprint.size,
    ).first()


def insert_upload(**fields: Any) -> Upload:
    """Insert a new upload row.

    Runs in its own savepoint so a uniqueness violation leaves any
    surrounding transaction usable.

    Args:
        fields: Upload model fields, ``sha256`` included.

    Returns:
        Created Upload instance.

    Raises:
        ConcurrencyConflict: If an upload with the same sha256 exists.
        IntegrityError: For any other constraint violation.
    """
    sha256 = fields['sha256']
    try:
        with transaction.atomic():
            return Upload.objects.create(**fields)
    except IntegrityError as error:
        if Upload.objects.filter(sha256=sha256).exists():
            logger.info('Lost insert race for upload %s', sha256)
            raise ConcurrencyConflict(sha256) from error
        raise


def link_owner(user_id: int, upload: Upload) -> UserUpload:
    """Record that a user holds an upload.

    Every call creates a new link, also for repeated uploads.

    Args:
        user_id: ID of the owning user.
        upload: Upload being linked.

    Returns:
        Created UserUpload instance.
    """
    user_upload = UserUpload.objects.create(user_id=user_id, upload=upload)
    logger.info(
        'Linked upload %d to user %d (link ID: %d)',
        upload.id,
        user_id,
        user_upload.id,
    )
    return user_upload
