"""Management command to ingest a file from disk through the pipeline."""

import logging
from pathlib import Path
from typing import Any

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from server.apps.uploads.exceptions import StorageError
from server.apps.uploads.logic.options import (
    ProcessingOptions,
    UploadRequest,
    UploadType,
)
from server.apps.uploads.logic.upload_creator import (
    create_upload,
    get_upload_url,
)

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Create an upload for a user from a local file."""

    help = 'Ingest a local file as an upload owned by a user'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument('path', type=Path, help='File to ingest')
        parser.add_argument(
            '--user-id',
            type=int,
            required=True,
            help='ID of the owning user',
        )
        parser.add_argument(
            '--filename',
            default=None,
            help='Declared filename (default: name of the file on disk)',
        )
        parser.add_argument(
            '--type',
            choices=UploadType.values,
            default=None,
            help='Usage context of the upload',
        )
        for flag in (
            'for-site-setting',
            'for-theme',
            'for-private-message',
            'pasted',
            'force-optimize',
        ):
            parser.add_argument(f'--{flag}', action='store_true')

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the import command.

        Args:
            args: Positional arguments (unused).
            options: Command options.

        Raises:
            CommandError: If the file is missing or the upload is rejected.
        """
        path: Path = options['path']
        if not path.is_file():
            raise CommandError(f'File not found: {path}')

        upload_request = UploadRequest(
            content=path.read_bytes(),
            filename=options['filename'] or path.name,
            user_id=options['user_id'],
            options=ProcessingOptions(
                for_site_setting=options['for_site_setting'],
                for_theme=options['for_theme'],
                for_private_message=options['for_private_message'],
                pasted=options['pasted'],
                force_optimize=options['force_optimize'],
                type=options['type'],
            ),
        )

        try:
            result = create_upload(upload_request)
        except ValidationError as exc:
            raise CommandError(f'Upload rejected: {"; ".join(exc.messages)}') from exc
        except StorageError as exc:
            logger.exception('Failed to store %s', path)
            raise CommandError(str(exc)) from exc

        upload = result.upload
        status = 'Created' if result.created else 'Reused'
        self.stdout.write(
            self.style.SUCCESS(
                f'{status} upload {upload.id}: {upload.original_filename} '
                f'({upload.filesize} bytes, secure: {upload.secure}) '
                f'-> {get_upload_url(upload)}',
            ),
        )
