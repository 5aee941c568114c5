"""In-memory snapshot of the global upload policy.

The policy is read on every upload but changes only through the
administrative path, so it is cached as an immutable snapshot and
replaced wholesale when the ``GlobalPolicy`` row is saved.

A save reloads the snapshot of the process that handled it through the
post_save signal. Other worker processes compare the row's
``updated_at`` with their snapshot at most every
``CONFIG_REFRESH_INTERVAL`` seconds and reload when it moved.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.conf import settings

from server.apps.files.models import GlobalPolicy

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_snapshot: 'PolicySnapshot | None' = None
_checked_at = 0.0


@dataclass(frozen=True, slots=True)
class PolicySnapshot:
    """Immutable view of ``GlobalPolicy``."""

    allowed_mime_types: frozenset[str]
    max_upload_size: int
    temp_file_lifetime: int
    default_user_quota: int
    chunk_size: int
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, policy: GlobalPolicy) -> 'PolicySnapshot':
        """Build a snapshot from the policy row."""
        return cls(
            allowed_mime_types=frozenset(policy.allowed_mime_types),
            max_upload_size=policy.max_upload_size,
            temp_file_lifetime=policy.temp_file_lifetime,
            default_user_quota=policy.default_user_quota,
            chunk_size=policy.chunk_size,
            updated_at=policy.updated_at,
        )

    @property
    def temp_file_ttl(self) -> timedelta:
        """Lifetime of temporary files."""
        return timedelta(seconds=self.temp_file_lifetime)

    def allows_mime_type(self, mime_type: str) -> bool:
        """Check the declared MIME type against the allow-list."""
        return mime_type in self.allowed_mime_types


def current_policy() -> PolicySnapshot:
    """Get the active policy snapshot, loading it on first use.

    Returns:
        PolicySnapshot shared by all requests until the next reload.
    """
    with _lock:
        snapshot = _snapshot
        check_due = snapshot is not None and _refresh_due()
    if snapshot is None:
        return reload_policy()

    if check_due and _stored_version() != snapshot.updated_at:
        logger.info('Upload policy changed by another process')
        return reload_policy()
    return snapshot


def reload_policy() -> PolicySnapshot:
    """Re-read the policy row and swap the snapshot.

    Returns:
        The new snapshot.
    """
    global _snapshot, _checked_at  # noqa: WPS420

    snapshot = PolicySnapshot.from_model(GlobalPolicy.load())
    with _lock:
        _snapshot = snapshot
        _checked_at = time.monotonic()

    logger.info(
        'Upload policy loaded: max_size=%d, temp_file_lifetime=%ds, %d MIME types',
        snapshot.max_upload_size,
        snapshot.temp_file_lifetime,
        len(snapshot.allowed_mime_types),
    )
    return snapshot


def reset_policy() -> None:
    """Drop the cached snapshot; the next read reloads it."""
    global _snapshot  # noqa: WPS420

    with _lock:
        _snapshot = None


def _refresh_due() -> bool:
    # Caller holds _lock
    global _checked_at  # noqa: WPS420

    interval = settings.CONFIG_REFRESH_INTERVAL
    now = time.monotonic()
    if interval <= 0 or now - _checked_at < interval:
        return False
    _checked_at = now
    return True


def _stored_version() -> datetime | None:
    return GlobalPolicy.objects.values_list('updated_at', flat=True).first()
