"""Tests for StoredFile model."""

import uuid
from datetime import timedelta

import pytest
from django.db import IntegrityError
from django.utils import timezone

from server.apps.files.models import StoredFile


def _create_file(file_id='abc123', **kwargs):
    defaults = {
        'file_id': file_id,
        'mime_type': 'text/plain',
        'size': 10,
        'file_name': 'notes.txt',
        'server_id': 'local-1',
    }
    defaults.update(kwargs)
    return StoredFile.objects.create(**defaults)


@pytest.mark.django_db
def test_create_temporary_file():
    """Test anonymous file with a deletion time is temporary."""
    stored_file = _create_file(delete_at=timezone.now() + timedelta(hours=1))

    assert stored_file.is_temporary
    assert stored_file.download_count == 0
    assert stored_file.owner_id is None


@pytest.mark.django_db
def test_create_permanent_file():
    """Test owned file without deletion time is permanent."""
    owner_id = uuid.uuid4()

    stored_file = _create_file(owner_id=owner_id)

    assert not stored_file.is_temporary
    assert stored_file.delete_at is None


@pytest.mark.django_db
def test_anonymous_file_without_delete_at_rejected():
    """Test database refuses an anonymous file that never expires."""
    with pytest.raises(IntegrityError):
        _create_file()


@pytest.mark.django_db
def test_owned_file_with_delete_at_rejected():
    """Test database refuses an owned file scheduled for expiry."""
    with pytest.raises(IntegrityError):
        _create_file(
            owner_id=uuid.uuid4(),
            delete_at=timezone.now(),
        )


@pytest.mark.django_db
def test_negative_size_rejected():
    """Test database refuses negative sizes."""
    with pytest.raises(IntegrityError):
        _create_file(owner_id=uuid.uuid4(), size=-1)


@pytest.mark.django_db
def test_str_representation():
    """Test StoredFile string representation."""
    stored_file = _create_file(owner_id=uuid.uuid4())

    assert str(stored_file) == 'notes.txt (abc123)'


@pytest.mark.django_db
def test_register_download_increments_counter():
    """Test register_download counts and refreshes last access."""
    stored_file = _create_file(owner_id=uuid.uuid4())
    first_access = stored_file.last_access

    stored_file.register_download()
    stored_file.register_download()

    assert stored_file.download_count == 2
    assert stored_file.last_access >= first_access
    assert StoredFile.objects.get(pk='abc123').download_count == 2


@pytest.mark.django_db
def test_expired_returns_only_past_delete_at():
    """Test expired() selects temporary files past their deletion time."""
    now = timezone.now()
    _create_file('old', delete_at=now - timedelta(hours=2))
    _create_file('older', delete_at=now - timedelta(days=1))
    _create_file('future', delete_at=now + timedelta(hours=1))
    _create_file('permanent', owner_id=uuid.uuid4())

    expired_ids = list(
        StoredFile.objects.expired(now).values_list('file_id', flat=True),
    )

    assert expired_ids == ['older', 'old']


@pytest.mark.django_db
def test_expired_includes_exact_deadline():
    """Test a file expiring exactly now is expired."""
    now = timezone.now()
    _create_file('edge', delete_at=now)

    assert StoredFile.objects.expired(now).count() == 1


@pytest.mark.django_db
def test_owned_by_filters_owner():
    """Test owned_by() returns only the user's files."""
    owner_id = uuid.uuid4()
    _create_file('mine', owner_id=owner_id)
    _create_file('theirs', owner_id=uuid.uuid4())

    assert list(
        StoredFile.objects.owned_by(owner_id).values_list('file_id', flat=True),
    ) == ['mine']
