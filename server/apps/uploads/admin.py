"""Django admin configuration for uploads app."""

from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest

from server.apps.uploads.models import Upload, UserUpload


def _format_bytes(size_bytes: int) -> str:
    """Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Formatted size string (e.g., '1.5 MB', '234 KB').
    """
    if size_bytes < 1024:
        return f'{size_bytes} B'
    if size_bytes < 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / 1024:.1f} KB'
    if size_bytes < 1024 * 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / (1024 * 1024):.1f} MB'
    return f'{size_bytes / (1024 * 1024 * 1024):.1f} GB'


class UserUploadInline(admin.TabularInline):  # type: ignore[type-arg]
    """Ownership links shown on the upload page."""

    model = UserUpload
    extra = 0
    readonly_fields = ['user', 'created_at']


@admin.register(Upload)
class UploadAdmin(admin.ModelAdmin[Upload]):
    """Admin interface for Upload model."""

    list_display = [
        'original_filename',
        'extension',
        'size_display',
        'dimensions_display',
        'secure',
        'created_at',
    ]

    list_filter = [
        'secure',
        'extension',
        'created_at',
    ]

    search_fields = [
        'original_filename',
        'sha256',
        'url',
    ]

    # Stored bytes are immutable; only the access flag may change
    readonly_fields = [
        'user',
        'sha256',
        'filesize',
        'extension',
        'original_filename',
        'width',
        'height',
        'storage_key',
        'url',
        'etag',
        'created_at',
    ]

    fieldsets = (
        ('Upload Information', {
            'fields': ('original_filename', 'extension', 'user'),
        }),
        ('Content', {
            'fields': ('sha256', 'filesize', 'width', 'height'),
        }),
        ('Storage', {
            'fields': ('storage_key', 'url', 'etag', 'secure'),
        }),
        ('Timestamps', {
            'fields': ('created_at',),
        }),
    )

    inlines = [UserUploadInline]

    def size_display(self, obj: Upload) -> str:
        """Display file size in human-readable format.

        Args:
            obj: Upload instance.

        Returns:
            Formatted size string.
        """
        return _format_bytes(obj.filesize)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def dimensions_display(self, obj: Upload) -> str:
        """Display pixel dimensions of images.

        Args:
            obj: Upload instance.

        Returns:
            'WIDTHxHEIGHT' for images, '-' otherwise.
        """
        if not obj.is_image:
            return '-'
        return f'{obj.width}x{obj.height}'
    dimensions_display.short_description = 'Dimensions'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[Upload]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('user')


@admin.register(UserUpload)
class UserUploadAdmin(admin.ModelAdmin[UserUpload]):
    """Admin interface for UserUpload model."""

    list_display = [
        'user',
        'upload',
        'created_at',
    ]

    list_filter = [
        'user',
        'created_at',
    ]

    search_fields = [
        'user__username',
        'upload__original_filename',
        'upload__sha256',
    ]

    readonly_fields = ['user', 'upload', 'created_at']

    def get_queryset(self, request: HttpRequest) -> QuerySet[UserUpload]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('user', 'upload')
