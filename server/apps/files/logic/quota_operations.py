"""Business logic for storage quota operations."""

import logging
import uuid

from django.db import IntegrityError, transaction
from django.db.models import F

from server.apps.files.exceptions import (
    InsufficientStorageError,
    MalformedRequestError,
    NotFoundError,
)
from server.apps.files.logic.policy import current_policy
from server.apps.files.models import UserQuota

# Field name constants to avoid string literal over-use
_USED_SPACE_FIELD = 'used_space'  # noqa: WPS226
_FILE_COUNT_FIELD = 'file_count'  # noqa: WPS226

logger = logging.getLogger(__name__)


def create_quota(user_id: uuid.UUID) -> UserQuota:
    """Register a user with the default quota of the current policy.

    Args:
        user_id: New user's id.

    Returns:
        Created UserQuota instance.

    Raises:
        MalformedRequestError: If the user is already registered.
    """
    total_space = current_policy().default_user_quota
    try:
        with transaction.atomic():
            quota = UserQuota.objects.create(
                user_id=user_id,
                total_space=total_space,
            )
    except IntegrityError as error:
        raise MalformedRequestError(
            f'User already registered: {user_id}',
        ) from error

    logger.info('Created quota for user %s: %d bytes', user_id, total_space)
    return quota


def get_quota(user_id: uuid.UUID) -> UserQuota:
    """Get a user's quota.

    Args:
        user_id: User to look up.

    Returns:
        UserQuota instance for the user.

    Raises:
        NotFoundError: If the user is not registered.
    """
    try:
        return UserQuota.objects.get(user_id=user_id)
    except UserQuota.DoesNotExist as error:
        raise NotFoundError(f'User not found: {user_id}') from error


def update_quota(user_id: uuid.UUID, total_space: int) -> UserQuota:
    """Change the space allotted to a user.

    Usage is not touched: lowering the total below current usage
    blocks further permanent uploads until files are deleted.

    Args:
        user_id: User to update.
        total_space: New quota limit in bytes.

    Returns:
        Updated UserQuota instance.

    Raises:
        MalformedRequestError: If the total is negative.
        NotFoundError: If the user is not registered.
    """
    if total_space < 0:
        raise MalformedRequestError('Total space cannot be negative')

    quota = get_quota(user_id)
    quota.total_space = total_space
    quota.save(update_fields=['total_space'])

    logger.info('Updated quota for user %s: %d bytes', user_id, total_space)
    return quota


def delete_quota(user_id: uuid.UUID) -> UserQuota:
    """Unregister a user.

    Args:
        user_id: User to remove.

    Returns:
        The deleted UserQuota instance.

    Raises:
        NotFoundError: If the user is not registered.
    """
    quota = get_quota(user_id)
    quota.delete()
    logger.info('Deleted quota for user %s', user_id)
    return quota


def reserve_space(user_id: uuid.UUID, size: int) -> None:
    """Atomically claim space and a file slot for a permanent upload.

    The check and the increment are one conditional UPDATE, so
    concurrent uploads by the same user cannot both pass the check
    against the same stale usage.

    Args:
        user_id: Owner of the upload.
        size: Bytes to reserve.

    Raises:
        NotFoundError: If the user is not registered.
        InsufficientStorageError: If the upload would exceed the quota.
    """
    with transaction.atomic():
        updated = UserQuota.objects.filter(
            user_id=user_id,
            used_space__lte=F('total_space') - size,
        ).update(
            used_space=F(_USED_SPACE_FIELD) + size,
            file_count=F(_FILE_COUNT_FIELD) + 1,
        )

    if updated:
        logger.debug('Reserved %d bytes for user %s', size, user_id)
        return

    quota = get_quota(user_id)
    logger.warning(
        'Quota exceeded for user %s: need %d, have %d available',
        user_id,
        size,
        quota.available_space(),
    )
    raise InsufficientStorageError(
        total_space=quota.total_space,
        used_space=quota.used_space,
        required_space=size,
    )


def release_space(user_id: uuid.UUID, size: int) -> None:
    """Atomically give back space and a file slot.

    Prevents negative values by clamping to 0.

    Args:
        user_id: Owner of the removed file.
        size: Bytes to release.
    """
    with transaction.atomic():
        # Lock the row so the clamp sees the current values
        try:
            quota = UserQuota.objects.select_for_update().get(user_id=user_id)
        except UserQuota.DoesNotExist:
            # No quota exists, nothing to release
            logger.debug(
                'No quota exists for user %s, skipping release',
                user_id,
            )
            return

        quota.used_space = max(0, quota.used_space - size)
        quota.file_count = max(0, quota.file_count - 1)
        quota.save(update_fields=[_USED_SPACE_FIELD, _FILE_COUNT_FIELD])

    logger.debug(
        'Released %d bytes for user %s (new: %d)',
        size,
        user_id,
        quota.used_space,
    )
