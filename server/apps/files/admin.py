"""Django admin configuration for files app."""

from typing import Any

from django.conf import settings
from django.contrib import admin
from django.http import HttpRequest
from django.utils.html import format_html

from server.apps.files.logic.instance_operations import (
    reload_provider_if_changed,
)
from server.apps.files.models import (
    GlobalPolicy,
    InstanceConfig,
    StoredFile,
    UserQuota,
)


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


@admin.register(StoredFile)
class StoredFileAdmin(admin.ModelAdmin):
    """Admin interface for StoredFile model.

    Records are read-only: deleting one here would leave the object in
    the storage provider, so files are removed through the API.
    """

    list_display = [
        'file_name',
        'file_id',
        'owner_id',
        'size_display',
        'mime_type',
        'uploaded_at',
        'delete_at',
        'download_count',
    ]

    list_filter = [
        'mime_type',
        'server_id',
        'uploaded_at',
    ]

    search_fields = [
        'file_id',
        'file_name',
        'owner_id',
    ]

    readonly_fields = [
        'file_id',
        'mime_type',
        'size',
        'owner_id',
        'server_id',
        'uploaded_at',
        'download_count',
        'last_access',
        'delete_at',
    ]

    fieldsets = (
        ('File Information', {
            'fields': ('file_id', 'file_name', 'description', 'owner_id'),
        }),
        ('Metadata', {
            'fields': ('size', 'mime_type', 'server_id'),
        }),
        ('Timestamps', {
            'fields': (
                'uploaded_at',
                'last_access',
                'download_count',
                'delete_at',
            ),
        }),
    )

    def size_display(self, obj: StoredFile) -> str:
        """Display file size in human-readable format.

        Args:
            obj: StoredFile instance.

        Returns:
            Formatted size string.
        """
        return _format_bytes(obj.size)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def has_delete_permission(
        self,
        request: HttpRequest,
        obj: StoredFile | None = None,
    ) -> bool:
        """Disallow deletes that would orphan the stored object."""
        return False


@admin.register(UserQuota)
class UserQuotaAdmin(admin.ModelAdmin):
    """Admin interface for UserQuota model."""

    list_display = [
        'user_id',
        'quota_display',
        'used_display',
        'file_count',
        'percentage_display',
        'status_display',
    ]

    search_fields = [
        'user_id',
    ]

    readonly_fields = [
        'user_id',
        'used_space',
        'file_count',
        'created_at',
    ]

    fieldsets = (
        ('User', {
            'fields': ('user_id', 'created_at'),
        }),
        ('Quota Settings', {
            'fields': ('total_space',),
        }),
        ('Current Usage', {
            'fields': ('used_space', 'file_count'),
        }),
    )

    def quota_display(self, obj: UserQuota) -> str:
        """Display quota in human-readable format."""
        return _format_bytes(obj.total_space)
    quota_display.short_description = 'Quota'  # type: ignore[attr-defined]

    def used_display(self, obj: UserQuota) -> str:
        """Display used bytes in human-readable format."""
        return _format_bytes(obj.used_space)
    used_display.short_description = 'Used'  # type: ignore[attr-defined]

    def percentage_display(self, obj: UserQuota) -> str:
        """Display percentage of quota used.

        Args:
            obj: UserQuota instance.

        Returns:
            Percentage string.
        """
        if obj.total_space == 0:
            return '0%'
        percentage = (obj.used_space / obj.total_space) * 100
        return f'{percentage:.1f}%'
    percentage_display.short_description = '%'  # type: ignore[attr-defined]

    def status_display(self, obj: UserQuota) -> str:
        """Display status indicator based on usage.

        Args:
            obj: UserQuota instance.

        Returns:
            HTML formatted status indicator.
        """
        if obj.total_space == 0:
            percentage = 0.0
        else:
            percentage = (obj.used_space / obj.total_space) * 100

        if percentage >= 100:
            color = '#dc3545'  # Red - over quota
            status = 'Over Quota'
        elif percentage >= 90:
            color = '#ffc107'  # Yellow - warning
            status = 'Warning'
        else:
            color = '#28a745'  # Green - ok
            status = 'OK'

        return format_html(
            '<span style="color: {color}; font-weight: bold;">'
            '{status}</span>',
            color=color,
            status=status,
        )
    status_display.short_description = 'Status'  # type: ignore[attr-defined]


@admin.register(GlobalPolicy)
class GlobalPolicyAdmin(admin.ModelAdmin):
    """Admin interface for the singleton GlobalPolicy row.

    Saving reloads the policy snapshot through the post_save signal.
    """

    list_display = [
        '__str__',
        'max_upload_display',
        'temp_file_lifetime',
        'default_quota_display',
        'updated_at',
    ]

    readonly_fields = ['updated_at']

    fieldsets = (
        ('Uploads', {
            'fields': (
                'allowed_mime_types',
                'max_upload_size',
                'chunk_size',
            ),
        }),
        ('Lifecycle', {
            'fields': ('temp_file_lifetime', 'default_user_quota'),
        }),
        ('Metadata', {
            'fields': ('updated_at',),
        }),
    )

    def max_upload_display(self, obj: GlobalPolicy) -> str:
        """Display upload limit in human-readable format."""
        return _format_bytes(obj.max_upload_size)
    max_upload_display.short_description = 'Max upload'  # type: ignore[attr-defined]

    def default_quota_display(self, obj: GlobalPolicy) -> str:
        """Display default quota in human-readable format."""
        return _format_bytes(obj.default_user_quota)
    default_quota_display.short_description = 'Default quota'  # type: ignore[attr-defined]

    def has_add_permission(self, request: HttpRequest) -> bool:
        """Allow a single row only."""
        return not GlobalPolicy.objects.exists()

    def has_delete_permission(
        self,
        request: HttpRequest,
        obj: GlobalPolicy | None = None,
    ) -> bool:
        """The policy row is never removed."""
        return False


@admin.register(InstanceConfig)
class InstanceConfigAdmin(admin.ModelAdmin):
    """Admin interface for InstanceConfig model."""

    list_display = [
        'server_id',
        'server_name',
        'provider',
        'server_url',
        'updated_at',
    ]

    list_filter = [
        'provider',
    ]

    readonly_fields = ['updated_at']

    def save_model(
        self,
        request: HttpRequest,
        obj: InstanceConfig,
        form: Any,
        change: bool,
    ) -> None:
        """Save the row and swap the provider if this server changed it.

        Args:
            request: HTTP request.
            obj: InstanceConfig being saved.
            form: Admin form.
            change: Whether an existing row is edited.
        """
        previous = InstanceConfig.objects.filter(pk=obj.pk).first()
        super().save_model(request, obj, form, change)

        if previous is not None and obj.server_id == settings.SERVER_ID:
            reload_provider_if_changed(previous.provider, obj.provider)
