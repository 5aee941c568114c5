"""Business logic for file operations.

``upload_file`` runs the upload workflow. Three independent stores take
part in it (token store, storage provider, database), so the steps are
ordered to keep them consistent when one of them fails:

1. The token is consumed before the body is read, so unauthenticated
   requests never cost a multipart parse.
2. The body is parsed and validated against one policy snapshot, and
   the token owner must match the declared owner.
3. For permanent files, quota is reserved with a single conditional
   UPDATE before the provider is called.
4. Upload to the provider. On failure the reservation is released.
5. Create the metadata record. On failure the uploaded object is
   deleted from the provider and the reservation is released.
"""

import enum
import logging
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Final

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from server.apps.files.exceptions import (
    InternalError,
    MalformedRequestError,
    NotFoundError,
    PayloadTooLargeError,
    UnauthorizedError,
    UnsupportedMediaTypeError,
)
from server.apps.files.infrastructure.handle import provider_handle
from server.apps.files.infrastructure.tokens import get_token_service
from server.apps.files.logic.policy import PolicySnapshot, current_policy
from server.apps.files.logic.quota_operations import (
    release_space,
    reserve_space,
)
from server.apps.files.models import StoredFile

logger = logging.getLogger(__name__)

# Multipart part names
_CONTENT_PART: Final = 'file'
_FILE_NAME_PART: Final = 'filename'
_MIME_TYPE_PART: Final = 'mime_type'
_KIND_PART: Final = 'type'
_OWNER_PART: Final = 'user_id'
_DESCRIPTION_PART: Final = 'description'

# Reads (text parts, file parts) of the request body
PartsReader = Callable[[], tuple[Mapping[str, Any], Mapping[str, Any]]]

_UNSET: Final = object()


class UploadKind(enum.StrEnum):
    """Lifecycle class requested for an upload."""

    TEMPORARY = 'temporal'
    PERMANENT = 'permanent'


@dataclass(frozen=True, slots=True)
class UploadRequest:
    """Parsed multipart upload body."""

    content: bytes
    file_name: str
    mime_type: str
    kind: str
    owner_id: uuid.UUID | None
    description: str | None

    @property
    def size(self) -> int:
        """Content length in bytes."""
        return len(self.content)

    @classmethod
    def from_parts(
        cls,
        data: Mapping[str, Any],
        files: Mapping[str, Any],
    ) -> 'UploadRequest':
        """Build the request from multipart parts.

        Args:
            data: Text parts.
            files: File parts (``UploadedFile`` objects).

        Returns:
            Parsed request.

        Raises:
            MalformedRequestError: If a required part is missing or
                ``user_id`` is not a UUID.
        """
        content = _read_content(data, files)
        file_name = _required_text(data, _FILE_NAME_PART)
        mime_type = _required_text(data, _MIME_TYPE_PART)
        kind = _required_text(data, _KIND_PART)

        return cls(
            content=content,
            file_name=file_name,
            mime_type=mime_type,
            kind=kind,
            owner_id=_parse_owner(data.get(_OWNER_PART)),
            description=data.get(_DESCRIPTION_PART),
        )


def upload_file(token: str | None, read_parts: PartsReader) -> StoredFile:
    """Authorize, validate and store one upload.

    Args:
        token: Value of the upload token header, if present.
        read_parts: Parses the request body; called only after the
            token has been accepted.

    Returns:
        Metadata record of the stored file.

    Raises:
        UnauthorizedError: If the token is missing or bound to a
            different owner than the one declared.
        InvalidTokenError: If the token is unknown, used or expired.
        MalformedRequestError: If the body is malformed or incomplete.
        UnsupportedMediaTypeError: If the MIME type is not allowed.
        PayloadTooLargeError: If the content exceeds the size limit.
        NotFoundError: If the declared owner is not registered.
        InsufficientStorageError: If the owner's quota is exhausted.
        StorageUnavailableError: If the provider is unreachable.
        StorageRejectedError: If the provider refused the upload.
        InternalError: If the metadata record could not be created.
    """
    # Step 1: token check before touching the body
    if not token:
        logger.warning('Upload rejected: missing upload token')
        raise UnauthorizedError('Missing upload token')
    token_owner = get_token_service().consume(token)

    # Step 2: structural parsing
    request = UploadRequest.from_parts(*read_parts())

    # Steps 3 and 4: policy and identity
    policy = current_policy()
    kind = _validate_against_policy(request, policy)
    _check_identity(token_owner, request.owner_id)

    owner_id = request.owner_id if kind is UploadKind.PERMANENT else None

    # Step 5: quota reservation
    if owner_id is not None:
        reserve_space(owner_id, request.size)

    # Step 6: provider upload, one provider snapshot for the whole upload
    provider = provider_handle.current()
    try:
        stored = provider.upload(
            request.content,
            request.file_name,
            request.mime_type,
        )
    except Exception:
        logger.exception(
            'Failed to upload %s to %s',
            request.file_name,
            provider.name,
        )
        _release_reservation(owner_id, request.size)
        raise

    # Step 7: metadata commit
    now = timezone.now()
    try:
        with transaction.atomic():
            stored_file = StoredFile.objects.create(
                file_id=stored.file_id,
                mime_type=stored.mime_type,
                size=stored.size,
                owner_id=owner_id,
                description=request.description,
                file_name=request.file_name,
                server_id=settings.SERVER_ID,
                uploaded_at=now,
                download_count=0,
                last_access=now,
                delete_at=(
                    now + policy.temp_file_ttl
                    if kind is UploadKind.TEMPORARY
                    else None
                ),
            )
    except Exception as error:
        # Rollback: the object must not stay in the provider untracked
        logger.exception(
            'Metadata commit failed, rolling back upload: %s',
            stored.file_id,
        )
        provider.discard(stored.file_id)
        _release_reservation(owner_id, request.size)
        raise InternalError(
            f'Failed to record metadata for {stored.file_id}: {error}',
        ) from error

    logger.info(
        'File uploaded: %s (ID: %s, size: %d, kind: %s, owner: %s)',
        stored_file.file_name,
        stored_file.file_id,
        stored_file.size,
        kind,
        owner_id or 'anonymous',
    )
    return stored_file


def get_file(file_id: str) -> StoredFile:
    """Get metadata of a stored file.

    Args:
        file_id: Provider id of the file.

    Returns:
        StoredFile instance.

    Raises:
        NotFoundError: If no such file is recorded.
    """
    try:
        return StoredFile.objects.get(file_id=file_id)
    except StoredFile.DoesNotExist as error:
        raise NotFoundError(f'File not found: {file_id}') from error


def download_file(file_id: str) -> tuple[StoredFile, bytes]:
    """Fetch file content and count the download.

    The counter is only incremented once the provider returned the
    content, so failed downloads are not counted.

    Args:
        file_id: Provider id of the file.

    Returns:
        Metadata record and file content.

    Raises:
        NotFoundError: If the file is not recorded or missing remotely.
        StorageUnavailableError: If the provider is unreachable.
    """
    stored_file = get_file(file_id)
    content = provider_handle.current().download(file_id)
    stored_file.register_download()

    logger.info(
        'File downloaded: %s (ID: %s, downloads: %d)',
        stored_file.file_name,
        file_id,
        stored_file.download_count,
    )
    return stored_file, content


def update_file_metadata(
    file_id: str,
    description: Any = _UNSET,
    file_name: Any = _UNSET,
) -> StoredFile:
    """Update descriptive metadata of a permanent file.

    Temporary files are immutable once created.

    Args:
        file_id: Provider id of the file.
        description: New description (None clears it); omitted
            arguments are left unchanged.
        file_name: New display filename.

    Returns:
        Updated StoredFile instance.

    Raises:
        NotFoundError: If no such file is recorded.
        MalformedRequestError: If the file is temporary or the new
            filename is empty.
    """
    stored_file = get_file(file_id)

    if stored_file.is_temporary:
        raise MalformedRequestError('Cannot update metadata of temporary files')

    update_fields = []
    if description is not _UNSET:
        stored_file.description = description
        update_fields.append('description')
    if file_name is not _UNSET:
        if not file_name:
            raise MalformedRequestError('File name cannot be empty')
        stored_file.file_name = file_name
        update_fields.append('file_name')

    if update_fields:
        stored_file.save(update_fields=update_fields)
        logger.info(
            'File metadata updated: %s (fields: %s)',
            file_id,
            ', '.join(update_fields),
        )
    return stored_file


def delete_file(file_id: str) -> None:
    """Delete a file from the provider and the metadata store.

    The owner's quota is released after both deletes succeeded. An
    object already missing from the provider does not block removal
    of its metadata.

    Args:
        file_id: Provider id of the file.

    Raises:
        NotFoundError: If no such file is recorded, or a concurrent
            delete removed it first.
        StorageUnavailableError: If the provider is unreachable.
        StorageRejectedError: If the provider refused the delete.
    """
    stored_file = get_file(file_id)

    try:
        provider_handle.current().delete(file_id)
    except NotFoundError:
        logger.warning(
            'File not found in storage (already deleted?): %s',
            file_id,
        )

    deleted, _ = StoredFile.objects.filter(pk=file_id).delete()
    if not deleted:
        # A concurrent delete removed the record and released the quota
        raise NotFoundError(f'File {file_id} was deleted concurrently')
    logger.info('File record deleted from database: %s', file_id)

    if stored_file.owner_id is not None:
        release_space(stored_file.owner_id, stored_file.size)


def list_user_file_ids(user_id: uuid.UUID) -> list[str]:
    """List ids of the permanent files owned by a user.

    Args:
        user_id: Owner to list files for.

    Returns:
        File ids, newest first.
    """
    return list(
        StoredFile.objects.owned_by(user_id).values_list('file_id', flat=True),
    )


def _validate_against_policy(
    request: UploadRequest,
    policy: PolicySnapshot,
) -> UploadKind:
    if not policy.allows_mime_type(request.mime_type):
        logger.warning('Upload rejected: MIME type %s not allowed', request.mime_type)
        raise UnsupportedMediaTypeError(
            f"MIME type '{request.mime_type}' not allowed",
        )

    if request.size > policy.max_upload_size:
        logger.warning(
            'Upload rejected: %d bytes exceeds limit of %d',
            request.size,
            policy.max_upload_size,
        )
        raise PayloadTooLargeError(
            f'File of {request.size} bytes exceeds {policy.max_upload_size}',
        )

    try:
        kind = UploadKind(request.kind)
    except ValueError as error:
        raise MalformedRequestError(
            "Invalid 'type' field: must be 'temporal' or 'permanent'",
        ) from error

    if kind is UploadKind.PERMANENT and request.owner_id is None:
        raise MalformedRequestError("Missing 'user_id' for permanent file")

    return kind


def _check_identity(
    token_owner: uuid.UUID | None,
    declared_owner: uuid.UUID | None,
) -> None:
    """Bind the token to the upload's declared owner.

    Both must be absent (anonymous upload) or equal.
    """
    if token_owner == declared_owner:
        return

    if token_owner is None:
        logger.error(
            'Anonymous token used for upload declaring user %s',
            declared_owner,
        )
    elif declared_owner is None:
        logger.error('Token of user %s used for anonymous upload', token_owner)
    else:
        logger.error(
            'Token user %s does not match declared user %s',
            token_owner,
            declared_owner,
        )
    raise UnauthorizedError('Token owner does not match the declared owner')


def _release_reservation(owner_id: uuid.UUID | None, size: int) -> None:
    if owner_id is None:
        return
    try:
        release_space(owner_id, size)
    except Exception:
        # Keep the original failure; usage stays overcounted
        logger.exception(
            'Failed to release %d reserved bytes for user %s',
            size,
            owner_id,
        )


def _read_content(data: Mapping[str, Any], files: Mapping[str, Any]) -> bytes:
    uploaded = files.get(_CONTENT_PART)
    if uploaded is not None:
        return uploaded.read()

    # Parts sent without a filename arrive as text
    text_content = data.get(_CONTENT_PART)
    if text_content is not None:
        return text_content.encode()

    logger.warning("Missing required '%s' part in upload", _CONTENT_PART)
    raise MalformedRequestError(f"Missing required field '{_CONTENT_PART}'")


def _required_text(data: Mapping[str, Any], part: str) -> str:
    value = data.get(part)
    if value is None:
        logger.warning("Missing required '%s' part in upload", part)
        raise MalformedRequestError(f"Missing required field '{part}'")
    return value


def _parse_owner(raw_owner: str | None) -> uuid.UUID | None:
    if raw_owner is None or not raw_owner.strip():
        return None
    try:
        return uuid.UUID(raw_owner.strip())
    except ValueError as error:
        raise MalformedRequestError(f'Invalid user id: {raw_owner}') from error
