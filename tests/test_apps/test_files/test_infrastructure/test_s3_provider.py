"""Tests for the S3-compatible storage provider."""

from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from django.core.files.base import ContentFile

from server.apps.files.exceptions import (
    NotFoundError,
    StorageRejectedError,
    StorageUnavailableError,
)
from server.apps.files.infrastructure.providers.s3 import S3StorageProvider
from server.apps.files.infrastructure.storage import FileStorage


@pytest.fixture
def s3_provider(mock_s3):
    """S3 provider bound to the mocked bucket.

    Returns:
        S3StorageProvider instance.
    """
    return S3StorageProvider(
        bucket_name='file-broker',
        access_key='testing',
        secret_key='testing',
        region_name='us-east-1',
        file_overwrite=False,
        default_acl=None,
    )


def _client_error(code, operation='HeadObject'):
    return ClientError({'Error': {'Code': code, 'Message': code}}, operation)


def test_upload_stores_object(s3_provider, mock_s3):
    """Test upload writes the object under a random key."""
    stored = s3_provider.upload(b'hello', 'notes.txt', 'text/plain')

    assert stored.size == 5
    assert stored.mime_type == 'text/plain'
    assert stored.file_name == 'notes.txt'
    assert stored.provider == 's3'
    assert len(stored.file_id) == 32

    obj = mock_s3.Object('file-broker', stored.file_id).get()
    assert obj['Body'].read() == b'hello'
    assert obj['ContentType'] == 'text/plain'


def test_download_returns_content(s3_provider):
    """Test download returns the uploaded bytes."""
    stored = s3_provider.upload(b'\x00binary\xff', 'blob.bin', 'application/pdf')

    assert s3_provider.download(stored.file_id) == b'\x00binary\xff'


def test_download_missing_object_raises_not_found(s3_provider):
    """Test download of unknown key raises NotFoundError."""
    with pytest.raises(NotFoundError):
        s3_provider.download('missing')


def test_delete_removes_object(s3_provider):
    """Test delete removes the object from the bucket."""
    stored = s3_provider.upload(b'bye', 'bye.txt', 'text/plain')

    s3_provider.delete(stored.file_id)

    with pytest.raises(NotFoundError):
        s3_provider.stat(stored.file_id)


def test_delete_missing_object_raises_not_found(s3_provider):
    """Test delete of unknown key raises NotFoundError."""
    with pytest.raises(NotFoundError):
        s3_provider.delete('missing')


def test_stat_returns_size_and_type(s3_provider):
    """Test stat reads object headers."""
    stored = s3_provider.upload(b'12345678', 'doc.pdf', 'application/pdf')

    info = s3_provider.stat(stored.file_id)

    assert info.size == 8
    assert info.mime_type == 'application/pdf'
    assert info.file_id == stored.file_id


def test_discard_swallows_missing_object(s3_provider):
    """Test discard never raises."""
    s3_provider.discard('missing')


@pytest.mark.parametrize('code', ['403', 'AccessDenied', 'SlowDown'])
def test_auth_and_throttle_errors_are_transient(s3_provider, code):
    """Test auth and throttling failures map to StorageUnavailableError."""
    with patch.object(FileStorage, 'head', side_effect=_client_error(code)):
        with pytest.raises(StorageUnavailableError):
            s3_provider.stat('key')


def test_other_client_errors_are_rejections(s3_provider):
    """Test other S3 refusals map to StorageRejectedError."""
    with patch.object(
        FileStorage,
        'save',
        side_effect=_client_error('EntityTooLarge', 'PutObject'),
    ):
        with pytest.raises(StorageRejectedError):
            s3_provider.upload(b'x', 'x.txt', 'text/plain')


def test_connection_errors_are_transient(s3_provider):
    """Test unreachable endpoint maps to StorageUnavailableError."""
    error = EndpointConnectionError(endpoint_url='http://minio:9000')
    with patch.object(FileStorage, 'read', side_effect=error):
        with pytest.raises(StorageUnavailableError):
            s3_provider.download('key')


def test_head_resolves_key_under_location(mock_s3):
    """Test head finds objects stored under a location prefix."""
    storage = FileStorage(
        bucket_name='file-broker',
        access_key='testing',
        secret_key='testing',
        region_name='us-east-1',
        location='broker',
        default_acl=None,
    )
    storage.save('nested/doc.txt', ContentFile(b'abc'))

    headers = storage.head('nested/doc.txt')

    assert headers['ContentLength'] == 3
    assert mock_s3.Object('file-broker', 'broker/nested/doc.txt').content_length == 3
