"""Upload pipeline: validate, transform, deduplicate, store, commit."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, cast

from django.core.files.storage import storages
from django.db import transaction

from server.apps.uploads.exceptions import ConcurrencyConflict
from server.apps.uploads.infrastructure.metadata import (
    Fingerprint,
    build_storage_key,
    fingerprint,
)
from server.apps.uploads.infrastructure.svg import sanitize_svg
from server.apps.uploads.logic.deduplication import (
    find_existing_upload,
    insert_upload,
    link_owner,
)
from server.apps.uploads.logic.image_optimization import optimize_image
from server.apps.uploads.logic.options import UploadRequest
from server.apps.uploads.logic.policy import UploadPolicy
from server.apps.uploads.logic.security import is_secure
from server.apps.uploads.logic.type_classification import (
    ResolvedType,
    classify_upload,
)
from server.apps.uploads.models import Upload, UserUpload

if TYPE_CHECKING:
    from server.apps.uploads.infrastructure.storage import UploadStore

logger = logging.getLogger(__name__)

_UPLOADS_STORAGE_ALIAS = 'uploads'


@dataclass(frozen=True, slots=True)
class UploadResult:
    """Outcome of a successful pipeline run.

    Attributes:
        upload: New or previously stored upload.
        user_upload: Ownership link created by this call.
        created: False when the call was deduplicated.
    """

    upload: Upload
    user_upload: UserUpload
    created: bool


@dataclass(frozen=True, slots=True)
class _PreparedContent:
    content: bytes
    filename: str
    extension: str
    width: int | None = None
    height: int | None = None


def get_upload_store() -> 'UploadStore':
    """Get the configured upload storage backend.

    Returns:
        Backend registered under the ``uploads`` storage alias.
    """
    return cast('UploadStore', storages[_UPLOADS_STORAGE_ALIAS])


def get_upload_url(upload: Upload, store: 'UploadStore | None' = None) -> str:
    """Get the URL a client should use to fetch an upload.

    Args:
        upload: Stored upload.
        store: Backend override, defaults to the configured one.

    Returns:
        Canonical URL, or a signed URL for secure uploads on
        object storage.
    """
    return (store or get_upload_store()).url_for(upload)


def _prepare(
    upload_request: UploadRequest,
    resolved: ResolvedType,
    policy: UploadPolicy,
) -> _PreparedContent:
    if resolved.is_svg:
        return _PreparedContent(
            content=sanitize_svg(upload_request.content),
            filename=resolved.filename,
            extension=resolved.extension,
        )

    if resolved.image_info is None:
        return _PreparedContent(
            content=upload_request.content,
            filename=resolved.filename,
            extension=resolved.extension,
        )

    transformed = optimize_image(
        upload_request.content,
        resolved.image_info,
        resolved.filename,
        upload_request.options,
        policy,
    )
    state = transformed.state
    return _PreparedContent(
        content=state.content,
        filename=state.filename,
        extension=state.extension,
        width=state.info.width,
        height=state.info.height,
    )


def _reuse(upload: Upload, user_id: int) -> UploadResult:
    logger.info(
        'Reusing existing upload %d (%s) for user %d',
        upload.id,
        upload.sha256,
        user_id,
    )
    return UploadResult(
        upload=upload,
        user_upload=link_owner(user_id, upload),
        created=False,
    )


def _commit(  # noqa: WPS211
    upload_request: UploadRequest,
    prepared: _PreparedContent,
    stored_fingerprint: Fingerprint,
    secure: bool,
    store: 'UploadStore',
) -> UploadResult:
    key = build_storage_key(stored_fingerprint, prepared.extension)

    # Step 1: Upload to storage first (StorageError propagates)
    stored = store.store_upload(prepared.content, key)

    # Step 2: Create database records (in transaction)
    try:
        with transaction.atomic():
            upload = insert_upload(
                user_id=upload_request.user_id,
                sha256=stored_fingerprint.sha256,
                filesize=stored_fingerprint.size,
                extension=prepared.extension,
                original_filename=prepared.filename,
                width=prepared.width,
                height=prepared.height,
                storage_key=stored.key,
                url=stored.url,
                etag=stored.etag,
                secure=secure,
            )
            user_upload = link_owner(upload_request.user_id, upload)
    except ConcurrencyConflict:
        winner = find_existing_upload(stored_fingerprint)
        if winner is None:
            raise
        if winner.storage_key != stored.key:
            store.rollback_upload(stored.key)
        return _reuse(winner, upload_request.user_id)
    except Exception:
        logger.exception(
            'Database transaction failed, rolling back storage upload: %s',
            stored.key,
        )
        if not Upload.objects.filter(storage_key=stored.key).exists():
            store.rollback_upload(stored.key)
        raise

    logger.info(
        'Upload record created: %s (ID: %d, secure: %s)',
        stored.key,
        upload.id,
        secure,
    )
    return UploadResult(upload=upload, user_upload=user_upload, created=True)


def create_upload(
    upload_request: UploadRequest,
    policy: UploadPolicy | None = None,
    store: 'UploadStore | None' = None,
) -> UploadResult:
    """Run an upload through the full pipeline.

    Order of work:
    1. resolve and validate the type (no I/O happens before this passes)
    2. fingerprint the raw bytes; attachments are deduplicated right away
    3. sanitize SVGs or transform raster images
    4. fingerprint the final bytes and deduplicate against them
    5. classify access, store the bytes, then commit metadata

    Args:
        upload_request: Bytes, filename, owner and options.
        policy: Policy snapshot, read from settings when omitted.
        store: Storage backend, the ``uploads`` alias when omitted.

    Returns:
        UploadResult with the upload and the new ownership link.

    Raises:
        ValidationError: If the upload is rejected.
        StorageError: If the backend cannot persist the bytes.
    """
    policy = policy or UploadPolicy.from_settings()
    store = store or get_upload_store()
    options = upload_request.options

    resolved = classify_upload(
        upload_request.content,
        upload_request.filename,
        options,
        policy,
    )
    logger.info(
        'Processing upload %s (%d bytes, extension: %s) for user %d',
        resolved.filename,
        len(upload_request.content),
        resolved.extension,
        upload_request.user_id,
    )

    raw_fingerprint = fingerprint(upload_request.content)
    if not resolved.is_image:
        existing = find_existing_upload(raw_fingerprint)
        if existing is not None:
            return _reuse(existing, upload_request.user_id)

    prepared = _prepare(upload_request, resolved, policy)
    stored_fingerprint = fingerprint(prepared.content)
    if resolved.is_image:
        existing = find_existing_upload(stored_fingerprint)
        if existing is not None:
            return _reuse(existing, upload_request.user_id)

    secure = is_secure(options, policy, is_image=resolved.is_image)
    return _commit(upload_request, prepared, stored_fingerprint, secure, store)
