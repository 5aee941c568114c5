"""Google Drive storage provider.

Objects are stored in one Drive folder owned by (or shared with) a
service account, through the Drive v3 client of
``google-api-python-client``. ``httplib2`` connections are not thread
safe, so every call executes on its own authorized connection.
"""

import io
import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from http import HTTPStatus
from typing import Any, Final, final, override

import httplib2
from google.auth import exceptions as google_exceptions
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import Error as GoogleApiError
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from server.apps.files.exceptions import (
    InternalError,
    NotFoundError,
    StorageRejectedError,
    StorageUnavailableError,
)
from server.apps.files.infrastructure.metadata import detect_mime_type
from server.apps.files.infrastructure.providers.base import (
    StorageProvider,
    StoredObject,
)

logger = logging.getLogger(__name__)

DRIVE_SCOPES: Final = ('https://www.googleapis.com/auth/drive.file',)

_METADATA_FIELDS: Final = 'id,name,mimeType,size'
_AUTH_STATUSES: Final = frozenset((HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN))
_RETRYABLE_STATUSES: Final = frozenset((
    HTTPStatus.TOO_MANY_REQUESTS,
    HTTPStatus.INTERNAL_SERVER_ERROR,
    HTTPStatus.BAD_GATEWAY,
    HTTPStatus.SERVICE_UNAVAILABLE,
    HTTPStatus.GATEWAY_TIMEOUT,
))


@final
class DriveStorageProvider(StorageProvider):
    """Provider storing objects in a Google Drive folder."""

    name = 'gdrive'

    def __init__(
        self,
        folder_id: str,
        credentials_json: str,
        timeout: float = 60,
    ) -> None:
        """Create the provider.

        Args:
            folder_id: Drive folder receiving uploads.
            credentials_json: Service account key file content (JSON).
            timeout: Socket timeout applied to every request.

        Raises:
            InternalError: If the credentials cannot be parsed.
        """
        if not folder_id or not credentials_json:
            raise InternalError('Google Drive folder or credentials not configured')

        try:
            credentials = service_account.Credentials.from_service_account_info(
                json.loads(credentials_json),
                scopes=DRIVE_SCOPES,
            )
        except ValueError as error:
            raise InternalError(
                f'Invalid Google Drive service account credentials: {error}',
            ) from error

        self._folder_id = folder_id
        self._timeout = timeout
        self._credentials = credentials
        self._service = build(
            'drive',
            'v3',
            http=self._authorized_http(),
            cache_discovery=False,
        )

    @override
    def upload(
        self,
        content: bytes,
        file_name: str,
        mime_type: str,
    ) -> StoredObject:
        media = MediaIoBaseUpload(
            io.BytesIO(content),
            mimetype=mime_type,
            resumable=False,
        )
        request = self._service.files().create(
            body={
                'name': file_name,
                'mimeType': mime_type,
                'parents': [self._folder_id],
            },
            media_body=media,
            fields=_METADATA_FIELDS,
        )
        drive_file = self._execute(request, file_name)
        logger.info('Uploaded %s to Drive as %s', file_name, drive_file['id'])

        return StoredObject(
            file_id=drive_file['id'],
            size=len(content),
            mime_type=drive_file.get('mimeType', mime_type),
            file_name=drive_file.get('name', file_name),
            provider=self.name,
        )

    @override
    def download(self, file_id: str) -> bytes:
        buffer = io.BytesIO()
        request = self._service.files().get_media(fileId=file_id)
        request.http = self._authorized_http()

        with _translate_errors(file_id):
            downloader = MediaIoBaseDownload(buffer, request)
            done = False
            while not done:
                _status, done = downloader.next_chunk()
        return buffer.getvalue()

    @override
    def delete(self, file_id: str) -> None:
        self._execute(self._service.files().delete(fileId=file_id), file_id)
        logger.info('Deleted Drive file %s', file_id)

    @override
    def stat(self, file_id: str) -> StoredObject:
        drive_file = self._execute(
            self._service.files().get(fileId=file_id, fields=_METADATA_FIELDS),
            file_id,
        )
        file_name = drive_file.get('name')

        try:
            size = int(drive_file.get('size', 0))
        except (TypeError, ValueError):
            size = 0

        return StoredObject(
            file_id=drive_file.get('id', file_id),
            size=size,
            mime_type=detect_mime_type(file_name or '', drive_file.get('mimeType')),
            file_name=file_name,
            provider=self.name,
        )

    def _authorized_http(self) -> AuthorizedHttp:
        return AuthorizedHttp(
            self._credentials,
            http=httplib2.Http(timeout=self._timeout),
        )

    def _execute(self, request: Any, file_ref: str) -> Any:
        """Run one API request on a fresh connection.

        Args:
            request: ``googleapiclient`` request to execute.
            file_ref: File id or name, for error messages.

        Returns:
            Decoded response body.
        """
        with _translate_errors(file_ref):
            return request.execute(http=self._authorized_http())


@contextmanager
def _translate_errors(file_ref: str) -> Iterator[None]:
    """Map API, transport and credential failures to provider exceptions.

    Args:
        file_ref: File id or name, for error messages.

    Yields:
        Nothing; wraps the Drive calls.

    Raises:
        NotFoundError: If the file does not exist.
        StorageUnavailableError: On network, timeout, auth or rate limit
            failures.
        StorageRejectedError: If Drive refused the request.
    """
    try:
        yield
    except HttpError as error:
        status = error.resp.status
        if status == HTTPStatus.NOT_FOUND:
            raise NotFoundError(f'Drive file not found: {file_ref}') from error
        message = f'Drive request for {file_ref} failed with status {status}: {error}'
        if status in _AUTH_STATUSES or status in _RETRYABLE_STATUSES:
            raise StorageUnavailableError(message) from error
        raise StorageRejectedError(message) from error
    except (google_exceptions.RefreshError, google_exceptions.TransportError) as error:
        raise StorageUnavailableError(
            f'Drive authentication failed for {file_ref}: {error}',
        ) from error
    except (httplib2.HttpLib2Error, OSError) as error:
        raise StorageUnavailableError(
            f'Drive unreachable for {file_ref}: {error}',
        ) from error
    except GoogleApiError as error:
        raise StorageRejectedError(
            f'Drive request failed for {file_ref}: {error}',
        ) from error
