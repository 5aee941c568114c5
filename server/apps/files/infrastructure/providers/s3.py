"""S3-compatible storage provider (MinIO, Cloudflare R2, Supabase)."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Final, final, override

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)
from django.core.files.base import ContentFile

from server.apps.files.exceptions import (
    NotFoundError,
    StorageRejectedError,
    StorageUnavailableError,
)
from server.apps.files.infrastructure.metadata import (
    detect_mime_type,
    generate_object_key,
)
from server.apps.files.infrastructure.providers.base import (
    StorageProvider,
    StoredObject,
)
from server.apps.files.infrastructure.storage import FileStorage

_NOT_FOUND_CODES: Final = frozenset(('404', 'NoSuchKey', 'NotFound'))
_AUTH_ERROR_CODES: Final = frozenset((
    '401',
    '403',
    'AccessDenied',
    'InvalidAccessKeyId',
    'SignatureDoesNotMatch',
    'ExpiredToken',
))
_THROTTLE_CODES: Final = frozenset((
    '500',
    '503',
    'SlowDown',
    'InternalError',
    'ServiceUnavailable',
    'RequestTimeout',
))


@final
class S3StorageProvider(StorageProvider):
    """Provider storing objects in one S3-compatible bucket."""

    name = 's3'

    def __init__(self, **options: Any) -> None:
        """Create the provider.

        Args:
            options: ``FileStorage`` options (bucket, keys, endpoint,
                region, client config).
        """
        self._storage = FileStorage(**options)

    @override
    def upload(
        self,
        content: bytes,
        file_name: str,
        mime_type: str,
    ) -> StoredObject:
        object_key = generate_object_key()
        payload = ContentFile(content, name=object_key)
        payload.content_type = mime_type  # type: ignore[attr-defined]

        with _translate_errors(object_key):
            saved_key = self._storage.save(object_key, payload)

        return StoredObject(
            file_id=saved_key,
            size=len(content),
            mime_type=mime_type,
            file_name=file_name,
            provider=self.name,
        )

    @override
    def download(self, file_id: str) -> bytes:
        with _translate_errors(file_id):
            return self._storage.read(file_id)

    @override
    def delete(self, file_id: str) -> None:
        # S3 deletes are idempotent, so check existence first
        with _translate_errors(file_id):
            self._storage.head(file_id)
            self._storage.delete(file_id)

    @override
    def stat(self, file_id: str) -> StoredObject:
        with _translate_errors(file_id):
            headers = self._storage.head(file_id)

        return StoredObject(
            file_id=file_id,
            size=headers.get('ContentLength', 0),
            mime_type=detect_mime_type(file_id, headers.get('ContentType')),
            file_name=file_id.rsplit('/', 1)[-1],
            provider=self.name,
        )


@contextmanager
def _translate_errors(object_key: str) -> Iterator[None]:
    """Map botocore failures to provider exceptions.

    Args:
        object_key: Key of the object being accessed, for messages.

    Yields:
        Nothing; wraps the S3 calls.

    Raises:
        NotFoundError: If the object does not exist.
        StorageUnavailableError: On network, timeout or auth failures.
        StorageRejectedError: If S3 refused the request.
    """
    try:
        yield
    except FileNotFoundError as error:
        raise NotFoundError(f'S3 object not found: {object_key}') from error
    except ClientError as error:
        code = str(error.response.get('Error', {}).get('Code', ''))
        if code in _NOT_FOUND_CODES:
            raise NotFoundError(f'S3 object not found: {object_key}') from error
        if code in _AUTH_ERROR_CODES or code in _THROTTLE_CODES:
            raise StorageUnavailableError(
                f'S3 request for {object_key} failed ({code}): {error}',
            ) from error
        raise StorageRejectedError(
            f'S3 request for {object_key} rejected ({code}): {error}',
        ) from error
    except (BotoConnectionError, NoCredentialsError, ReadTimeoutError) as error:
        raise StorageUnavailableError(
            f'S3 unreachable for {object_key}: {error}',
        ) from error
    except BotoCoreError as error:
        raise StorageRejectedError(
            f'S3 client error for {object_key}: {error}',
        ) from error
