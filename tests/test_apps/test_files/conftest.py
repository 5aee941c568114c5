"""Shared fixtures for files app tests."""

import uuid
from typing import Any, override

import boto3
import pytest
import redis
from moto import mock_aws

from server.apps.files.exceptions import NotFoundError
from server.apps.files.infrastructure.handle import provider_handle
from server.apps.files.infrastructure.metadata import generate_object_key
from server.apps.files.infrastructure.providers import (
    StorageProvider,
    StoredObject,
)
from server.apps.files.infrastructure.tokens import (
    UploadTokenService,
    get_token_service,
)
from server.apps.files.logic.policy import reset_policy
from server.apps.files.models import UserQuota

_TEST_BUCKET = 'file-broker'


class InMemoryRedis:
    """Subset of the redis-py client used by the token service."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.expiry: dict[str, int | None] = {}

    def set(self, name: str, value: str, ex: int | None = None) -> bool:
        self.values[name] = value
        self.expiry[name] = ex
        return True

    def getdel(self, name: str) -> str | None:
        self.expiry.pop(name, None)
        return self.values.pop(name, None)

    def expire_all(self) -> None:
        """Simulate every key reaching its TTL."""
        self.values.clear()
        self.expiry.clear()


class InMemoryProvider(StorageProvider):
    """Storage provider keeping objects in a dict.

    Set ``upload_error`` or ``delete_error`` to make the next calls
    fail with that exception.
    """

    name = 'memory'

    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, str, str]] = {}
        self.upload_error: Exception | None = None
        self.delete_error: Exception | None = None
        self.upload_calls = 0

    @override
    def upload(
        self,
        content: bytes,
        file_name: str,
        mime_type: str,
    ) -> StoredObject:
        self.upload_calls += 1
        if self.upload_error is not None:
            raise self.upload_error
        file_id = generate_object_key()
        self.objects[file_id] = (content, file_name, mime_type)
        return StoredObject(
            file_id=file_id,
            size=len(content),
            mime_type=mime_type,
            file_name=file_name,
            provider=self.name,
        )

    @override
    def download(self, file_id: str) -> bytes:
        try:
            return self.objects[file_id][0]
        except KeyError as error:
            raise NotFoundError(file_id) from error

    @override
    def delete(self, file_id: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        if self.objects.pop(file_id, None) is None:
            raise NotFoundError(file_id)

    @override
    def stat(self, file_id: str) -> StoredObject:
        try:
            content, file_name, mime_type = self.objects[file_id]
        except KeyError as error:
            raise NotFoundError(file_id) from error
        return StoredObject(
            file_id=file_id,
            size=len(content),
            mime_type=mime_type,
            file_name=file_name,
            provider=self.name,
        )


@pytest.fixture(autouse=True)
def _reset_process_state(settings):
    """Drop cached policy, provider and token service between tests.

    Cross-process refresh checks are off unless a test enables them.
    """
    settings.CONFIG_REFRESH_INTERVAL = 0
    reset_policy()
    provider_handle.reset()
    get_token_service.cache_clear()
    yield
    reset_policy()
    provider_handle.reset()
    get_token_service.cache_clear()


@pytest.fixture
def fake_redis(monkeypatch):
    """Route the token service to an in-memory Redis.

    Returns:
        InMemoryRedis backing every token issued during the test.
    """
    client = InMemoryRedis()

    def from_url(*args: Any, **kwargs: Any) -> InMemoryRedis:
        return client

    monkeypatch.setattr(redis.Redis, 'from_url', from_url)
    return client


@pytest.fixture
def token_service(fake_redis):
    """Token service bound to the in-memory Redis.

    Returns:
        UploadTokenService instance.
    """
    return UploadTokenService(fake_redis)


@pytest.fixture
def memory_provider():
    """Install an in-memory provider as the active provider.

    Returns:
        InMemoryProvider instance.
    """
    provider = InMemoryProvider()
    provider_handle.replace(provider)
    return provider


@pytest.fixture
def user_id():
    """Random user id.

    Returns:
        UUID of a user.
    """
    return uuid.uuid4()


@pytest.fixture
def other_user_id():
    """Second random user id for identity tests.

    Returns:
        UUID of another user.
    """
    return uuid.uuid4()


@pytest.fixture
def quota(db, user_id):
    """Register ``user_id`` with 100 bytes of space, 50 of them used.

    Returns:
        UserQuota instance.
    """
    return UserQuota.objects.create(
        user_id=user_id,
        total_space=100,
        used_space=50,
        file_count=1,
    )


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake AWS credentials so boto3 never reads real ones."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def mock_s3(aws_credentials):
    """Mock S3 service with file-broker bucket.

    Yields:
        boto3 S3 resource with file-broker bucket created.
    """
    with mock_aws():
        # Create S3 resource
        conn = boto3.resource('s3', region_name='us-east-1')

        # Create bucket
        conn.create_bucket(Bucket=_TEST_BUCKET)

        yield conn
