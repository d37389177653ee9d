"""Django storage configuration for uploaded artifacts.

This module configures where upload bytes end up:
- Local filesystem under MEDIA_ROOT for development
- S3-compatible object storage (AWS S3, MinIO, Cloudflare R2) for production

The ``uploads`` alias is what the upload pipeline resolves at runtime.
"""

from typing import Any, Final

from server.settings.components import config
from server.settings.components.common import MEDIA_ROOT, MEDIA_URL

UPLOADS_STORE: Final = config('UPLOADS_STORE', default='local')

_LOCAL_UPLOADS_STORAGE: Final[dict[str, Any]] = {
    'BACKEND': 'server.apps.uploads.infrastructure.storage.LocalUploadStore',
    'OPTIONS': {
        'location': MEDIA_ROOT,
        'base_url': MEDIA_URL,
    },
}

_S3_UPLOADS_STORAGE: Final[dict[str, Any]] = {
    'BACKEND': 'server.apps.uploads.infrastructure.storage.S3UploadStore',
    'OPTIONS': {
        'bucket_name': config('AWS_STORAGE_BUCKET_NAME', default='uploads'),
        'access_key': config('AWS_ACCESS_KEY_ID', default=None),
        'secret_key': config('AWS_SECRET_ACCESS_KEY', default=None),
        'endpoint_url': config(
            'AWS_S3_ENDPOINT_URL',
            default=None,
        ),
        'region_name': config(
            'AWS_S3_REGION_NAME',
            default='us-east-1',
        ),
        'signature_version': 's3v4',
        'file_overwrite': True,  # Keys are content-addressed
        'querystring_auth': False,  # Only secure uploads get signed URLs
        'default_acl': None,  # Inherit bucket ACL
        'signed_url_expiry': config(
            'UPLOADS_SIGNED_URL_EXPIRY',
            cast=int,
            default=300,
        ),
    },
}

STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'uploads': (
        _S3_UPLOADS_STORAGE if UPLOADS_STORE == 's3'
        else _LOCAL_UPLOADS_STORAGE
    ),
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
