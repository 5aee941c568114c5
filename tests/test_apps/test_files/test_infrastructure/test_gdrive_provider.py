"""Tests for the Google Drive storage provider."""

import json
from unittest.mock import MagicMock, patch

import httplib2
import pytest
from google.auth import exceptions as google_exceptions
from googleapiclient.errors import HttpError

from server.apps.files.exceptions import (
    InternalError,
    NotFoundError,
    StorageRejectedError,
    StorageUnavailableError,
)
from server.apps.files.infrastructure.providers import gdrive
from server.apps.files.infrastructure.providers.gdrive import (
    DriveStorageProvider,
)

_CREDENTIALS = json.dumps({'type': 'service_account', 'client_email': 'a@b.c'})


def _http_error(status):
    return HttpError(httplib2.Response({'status': status}), b'')


@pytest.fixture
def drive_api():
    """Drive v3 service double built for every provider.

    Yields:
        MagicMock standing in for the ``files()`` collection.
    """
    with (
        patch.object(
            gdrive.service_account.Credentials,
            'from_service_account_info',
            return_value=MagicMock(),
        ),
        patch.object(gdrive, 'build') as build,
    ):
        yield build.return_value.files.return_value


@pytest.fixture
def drive_provider(drive_api):
    """Drive provider with mocked credentials.

    Returns:
        DriveStorageProvider instance.
    """
    return DriveStorageProvider(
        folder_id='folder-1',
        credentials_json=_CREDENTIALS,
        timeout=30,
    )


def test_missing_configuration_is_internal_error():
    """Test provider refuses to start without folder or credentials."""
    with pytest.raises(InternalError):
        DriveStorageProvider(folder_id='', credentials_json=_CREDENTIALS)
    with pytest.raises(InternalError):
        DriveStorageProvider(folder_id='folder', credentials_json='')


def test_invalid_credentials_json_is_internal_error():
    """Test unparsable credentials raise InternalError."""
    with pytest.raises(InternalError):
        DriveStorageProvider(folder_id='folder', credentials_json='{not json')


def test_upload_creates_file_in_folder(drive_provider, drive_api):
    """Test upload creates the file with its media in the folder."""
    drive_api.create.return_value.execute.return_value = {
        'id': 'drive-id',
        'name': 'notes.txt',
        'mimeType': 'text/plain',
    }

    stored = drive_provider.upload(b'hello', 'notes.txt', 'text/plain')

    assert stored.file_id == 'drive-id'
    assert stored.size == 5
    assert stored.provider == 'gdrive'

    kwargs = drive_api.create.call_args.kwargs
    assert kwargs['body']['parents'] == ['folder-1']
    assert kwargs['body']['name'] == 'notes.txt'
    assert kwargs['media_body'].mimetype() == 'text/plain'
    assert kwargs['media_body'].getbytes(0, 5) == b'hello'


def test_requests_run_on_own_connection(drive_provider, drive_api):
    """Test each call executes with a fresh authorized connection."""
    drive_api.delete.return_value.execute.return_value = ''

    drive_provider.delete('first')
    drive_provider.delete('second')

    first_http, second_http = (
        call.kwargs['http']
        for call in drive_api.delete.return_value.execute.call_args_list
    )
    assert first_http is not second_http
    assert first_http.http.timeout == 30


def test_download_reads_media(drive_provider, drive_api):
    """Test download streams the media into memory."""

    def fake_download(buffer, request):
        buffer.write(b'raw bytes')
        downloader = MagicMock()
        downloader.next_chunk.return_value = (None, True)
        return downloader

    with patch.object(gdrive, 'MediaIoBaseDownload', side_effect=fake_download):
        content = drive_provider.download('drive-id')

    assert content == b'raw bytes'
    drive_api.get_media.assert_called_once_with(fileId='drive-id')


def test_delete_calls_delete(drive_provider, drive_api):
    """Test delete removes the file by id."""
    drive_provider.delete('drive-id')

    drive_api.delete.assert_called_once_with(fileId='drive-id')


def test_stat_parses_metadata(drive_provider, drive_api):
    """Test stat reads size, name and type."""
    drive_api.get.return_value.execute.return_value = {
        'id': 'drive-id',
        'name': 'doc.pdf',
        'mimeType': 'application/pdf',
        'size': '42',
    }

    info = drive_provider.stat('drive-id')

    assert info.size == 42
    assert info.file_name == 'doc.pdf'
    assert info.mime_type == 'application/pdf'
    drive_api.get.assert_called_once_with(
        fileId='drive-id',
        fields='id,name,mimeType,size',
    )


def test_not_found_status(drive_provider, drive_api):
    """Test 404 maps to NotFoundError."""
    drive_api.get.return_value.execute.side_effect = _http_error(404)

    with pytest.raises(NotFoundError):
        drive_provider.stat('missing')


def test_download_not_found(drive_provider):
    """Test a missing file during media download maps to NotFoundError."""
    with patch.object(gdrive, 'MediaIoBaseDownload') as download_class:
        download_class.return_value.next_chunk.side_effect = _http_error(404)

        with pytest.raises(NotFoundError):
            drive_provider.download('missing')


@pytest.mark.parametrize('status_code', [401, 403, 429, 503])
def test_transient_statuses(drive_provider, drive_api, status_code):
    """Test auth, rate limit and server errors are transient."""
    drive_api.delete.return_value.execute.side_effect = _http_error(status_code)

    with pytest.raises(StorageUnavailableError):
        drive_provider.delete('drive-id')


def test_bad_request_is_rejection(drive_provider, drive_api):
    """Test other client errors are permanent rejections."""
    drive_api.create.return_value.execute.side_effect = _http_error(400)

    with pytest.raises(StorageRejectedError):
        drive_provider.upload(b'x', 'x.txt', 'text/plain')


def test_timeout_is_transient(drive_provider, drive_api):
    """Test socket timeouts map to StorageUnavailableError."""
    drive_api.get.return_value.execute.side_effect = TimeoutError('timed out')

    with pytest.raises(StorageUnavailableError):
        drive_provider.stat('drive-id')


def test_refresh_error_is_transient(drive_provider, drive_api):
    """Test credential refresh failures map to StorageUnavailableError."""
    drive_api.get.return_value.execute.side_effect = (
        google_exceptions.RefreshError('expired')
    )

    with pytest.raises(StorageUnavailableError):
        drive_provider.stat('drive-id')
