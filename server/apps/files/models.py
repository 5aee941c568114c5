"""Database models for files app."""

import uuid
from datetime import datetime
from typing import Any, ClassVar, Final, final, override

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone

# Constants for field max lengths
_FILE_ID_MAX_LENGTH: Final = 255
_MIME_TYPE_MAX_LENGTH: Final = 255
_FILE_NAME_MAX_LENGTH: Final = 1024
_SERVER_ID_MAX_LENGTH: Final = 128
_PROVIDER_MAX_LENGTH: Final = 32

# Singleton primary key for GlobalPolicy
_POLICY_PK: Final = 1


class StoredFileQuerySet(models.QuerySet['StoredFile']):
    """Indexed queries over file metadata."""

    def expired(self, now: datetime | None = None) -> 'StoredFileQuerySet':
        """Temporary files whose deletion time has passed.

        Args:
            now: Reference time (defaults to current time).

        Returns:
            QuerySet ordered by deletion time, oldest first.
        """
        cutoff = now or timezone.now()
        return self.filter(
            delete_at__isnull=False,
            delete_at__lte=cutoff,
        ).order_by('delete_at')

    def owned_by(self, user_id: uuid.UUID) -> 'StoredFileQuerySet':
        """Permanent files owned by a user."""
        return self.filter(owner_id=user_id)


@final
class StoredFile(models.Model):
    """Metadata of a file stored in the active storage provider.

    A file is either temporary (no owner, ``delete_at`` set, reclaimed
    by the expiry sweep) or permanent (owned, no ``delete_at``, counted
    against the owner's quota). The check constraint below makes any
    other combination impossible.
    """

    # Identifier assigned by the storage provider
    file_id = models.CharField(
        max_length=_FILE_ID_MAX_LENGTH,
        primary_key=True,
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
    )

    size = models.BigIntegerField(
        help_text='File size in bytes',
    )

    owner_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text='Owner of a permanent file; empty for temporary files',
    )

    description = models.TextField(
        null=True,
        blank=True,
    )

    file_name = models.CharField(
        max_length=_FILE_NAME_MAX_LENGTH,
    )

    server_id = models.CharField(
        max_length=_SERVER_ID_MAX_LENGTH,
        help_text='Broker instance that received the upload',
    )

    # Timestamps and access statistics
    uploaded_at = models.DateTimeField(default=timezone.now)
    download_count = models.BigIntegerField(default=0)
    last_access = models.DateTimeField(default=timezone.now)

    delete_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text='Expiry time of a temporary file',
    )

    objects = StoredFileQuerySet.as_manager()

    class Meta:
        """Model metadata."""

        verbose_name = 'Stored file'  # type: ignore[mutable-override]
        verbose_name_plural = 'Stored files'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-uploaded_at']

        indexes: ClassVar[list[models.Index]] = [
            models.Index(
                fields=['owner_id', '-uploaded_at'],
                name='files_owner_recent_idx',
            ),
        ]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            # Temporary-anonymous XOR permanent-owned
            models.CheckConstraint(
                condition=(
                    models.Q(owner_id__isnull=True, delete_at__isnull=False) |
                    models.Q(owner_id__isnull=False, delete_at__isnull=True)
                ),
                name='files_temporary_xor_permanent',
            ),
            models.CheckConstraint(
                condition=models.Q(size__gte=0),
                name='files_size_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.file_name} ({self.file_id})'

    @property
    def is_temporary(self) -> bool:
        """Whether the file is anonymous and scheduled for expiry."""
        return self.owner_id is None

    def register_download(self) -> None:
        """Atomically count a download and refresh the access time."""
        now = timezone.now()
        StoredFile.objects.filter(pk=self.pk).update(
            download_count=F('download_count') + 1,
            last_access=now,
        )
        self.refresh_from_db(fields=['download_count', 'last_access'])


@final
class UserQuota(models.Model):
    """Storage quota for a user.

    Tracks the user's allotted space, used space and number of
    permanent files. Temporary files never count against a quota.

    ``used_space <= total_space`` is checked by the upload logic before
    space is reserved; the database only guarantees non-negative values.
    """

    user_id = models.UUIDField(
        primary_key=True,
    )

    file_count = models.BigIntegerField(
        default=0,
        help_text='Number of permanent files owned by the user',
    )

    total_space = models.BigIntegerField(
        help_text='Storage quota limit in bytes',
    )

    used_space = models.BigIntegerField(
        default=0,
        help_text='Currently used storage in bytes',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'User Quota'  # type: ignore[mutable-override]
        verbose_name_plural = 'User Quotas'  # type: ignore[mutable-override]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.CheckConstraint(
                condition=models.Q(total_space__gte=0),
                name='quota_total_space_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(used_space__gte=0),
                name='quota_used_space_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(file_count__gte=0),
                name='quota_file_count_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}: {self.used_space}/{self.total_space}'

    def available_space(self) -> int:
        """Get available storage space.

        Returns:
            Available bytes (never negative).
        """
        available = self.total_space - self.used_space
        return max(0, available)


def _default_mime_types() -> list[str]:
    return list(settings.POLICY_DEFAULT_MIME_TYPES)


@final
class GlobalPolicy(models.Model):
    """Process-wide upload policy shared by every broker instance.

    Stored as a single row. Saving it reloads the in-memory policy
    snapshot (see ``signals.py``).
    """

    allowed_mime_types = models.JSONField(
        default=_default_mime_types,
        help_text='List of MIME types accepted for upload',
    )

    max_upload_size = models.BigIntegerField(
        help_text='Maximum upload size in bytes',
    )

    temp_file_lifetime = models.BigIntegerField(
        help_text='Lifetime of temporary files in seconds',
    )

    default_user_quota = models.BigIntegerField(
        help_text='Quota assigned to newly registered users, in bytes',
    )

    chunk_size = models.BigIntegerField(
        help_text='Preferred transfer chunk size advertised to clients',
    )

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Global policy'  # type: ignore[mutable-override]
        verbose_name_plural = 'Global policy'  # type: ignore[mutable-override]

    @override
    def __str__(self) -> str:
        """String representation."""
        return (
            f'max {self.max_upload_size} bytes, '
            f'{len(self.allowed_mime_types)} MIME types'
        )

    @override
    def save(self, *args: Any, **kwargs: Any) -> None:
        """Force the singleton primary key and drop blank MIME types."""
        self.pk = _POLICY_PK
        self.sanitize()
        super().save(*args, **kwargs)

    def sanitize(self) -> None:
        """Remove blank entries from the MIME type list."""
        self.allowed_mime_types = [
            mime.strip()
            for mime in self.allowed_mime_types
            if mime and mime.strip()
        ]

    @classmethod
    def load(cls) -> 'GlobalPolicy':
        """Get the policy row, creating it from settings on first use.

        Returns:
            The single GlobalPolicy instance.
        """
        policy, _ = cls.objects.get_or_create(
            pk=_POLICY_PK,
            defaults={
                'allowed_mime_types': _default_mime_types(),
                'max_upload_size': settings.POLICY_DEFAULT_MAX_UPLOAD_SIZE,
                'temp_file_lifetime': settings.POLICY_DEFAULT_TEMP_FILE_LIFETIME,
                'default_user_quota': settings.POLICY_DEFAULT_USER_QUOTA,
                'chunk_size': settings.POLICY_DEFAULT_CHUNK_SIZE,
            },
        )
        return policy


@final
class InstanceConfig(models.Model):
    """Per-instance configuration: which storage provider is active."""

    class Provider(models.TextChoices):
        """Storage providers the broker can upload to."""

        S3 = 's3', 'S3-compatible'
        GDRIVE = 'gdrive', 'Google Drive'

    server_id = models.CharField(
        max_length=_SERVER_ID_MAX_LENGTH,
        primary_key=True,
    )

    provider = models.CharField(
        max_length=_PROVIDER_MAX_LENGTH,
        choices=Provider.choices,
        default=Provider.S3,
    )

    server_name = models.CharField(
        max_length=_FILE_NAME_MAX_LENGTH,
        blank=True,
        default='',
    )

    server_url = models.URLField(
        max_length=_FILE_NAME_MAX_LENGTH,
        blank=True,
        default='',
    )

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Instance configuration'  # type: ignore[mutable-override]
        verbose_name_plural = 'Instance configurations'  # type: ignore[mutable-override]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.server_id} ({self.provider})'

    @classmethod
    def for_this_server(cls) -> 'InstanceConfig':
        """Get this server's row, creating it from settings on first use.

        Returns:
            InstanceConfig for ``settings.SERVER_ID``.
        """
        instance, _ = cls.objects.get_or_create(
            server_id=settings.SERVER_ID,
            defaults={
                'provider': settings.STORAGE_PROVIDER,
                'server_name': settings.SERVER_NAME,
                'server_url': settings.SERVER_URL,
            },
        )
        return instance
