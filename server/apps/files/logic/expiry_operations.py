"""Business logic for the expiry sweep of temporary files."""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from django.utils import timezone

from server.apps.files.exceptions import NotFoundError
from server.apps.files.infrastructure.handle import provider_handle
from server.apps.files.infrastructure.providers import StorageProvider
from server.apps.files.logic.quota_operations import release_space
from server.apps.files.models import StoredFile

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SweepResult:
    """Outcome of one sweep.

    ``deleted_count`` counts files removed from both the provider and
    the metadata store. ``errors`` describes every failed step; they
    are diagnostics, nothing is rolled back.
    """

    deleted_count: int = 0
    errors: list[str] = field(default_factory=list)


def find_expired_files(
    now: datetime | None = None,
    batch_size: int | None = None,
) -> list[StoredFile]:
    """List files whose deletion time has passed.

    Args:
        now: Reference time (defaults to current time).
        batch_size: Maximum number of files to return.

    Returns:
        Expired files, oldest deletion time first.
    """
    expired = StoredFile.objects.expired(now or timezone.now())
    if batch_size is not None:
        expired = expired[:batch_size]
    return list(expired)


def sweep_expired_files(
    now: datetime | None = None,
    batch_size: int | None = None,
) -> SweepResult:
    """Delete expired files from the provider and the metadata store.

    Every file is processed independently and the sweep never stops
    early: a failing step is recorded in ``errors`` and the sweep moves
    on to the next file. A file whose provider delete succeeded but
    whose metadata delete failed stays recorded and is reported.

    Args:
        now: Reference time (defaults to current time).
        batch_size: Maximum number of files to process.

    Returns:
        SweepResult with the number of deleted files and the errors.
    """
    result = SweepResult()
    expired_files = find_expired_files(now, batch_size)

    logger.info('Expiry sweep started: %d expired files', len(expired_files))
    if not expired_files:
        return result

    provider = provider_handle.current()
    for stored_file in expired_files:
        if _sweep_file(stored_file, provider, result):
            result.deleted_count += 1

    logger.info(
        'Expiry sweep finished: %d deleted, %d errors',
        result.deleted_count,
        len(result.errors),
    )
    return result


def _sweep_file(
    stored_file: StoredFile,
    provider: StorageProvider,
    result: SweepResult,
) -> bool:
    file_id = stored_file.file_id

    try:
        provider.delete(file_id)
    except NotFoundError:
        # Already gone remotely; still reclaim the record
        logger.warning('Expired file missing from storage: %s', file_id)
    except Exception as error:
        logger.exception('Failed to delete expired file from storage: %s', file_id)
        result.errors.append(
            f'Error deleting file {file_id} from storage: {error}',
        )
        return False

    try:
        deleted, _ = StoredFile.objects.filter(pk=file_id).delete()
    except Exception as error:
        logger.exception('Failed to delete metadata of expired file: %s', file_id)
        result.errors.append(
            f'Error deleting metadata for file {file_id}: {error}',
        )
        return False

    if not deleted:
        logger.info('Expired file already removed concurrently: %s', file_id)
        return False

    if stored_file.owner_id is not None:
        try:
            release_space(stored_file.owner_id, stored_file.size)
        except Exception as error:
            logger.exception('Failed to release quota for file: %s', file_id)
            result.errors.append(
                f'Error updating user quota for file {file_id}: {error}',
            )

    logger.info('Expired file deleted: %s (%s)', stored_file.file_name, file_id)
    return True
