"""Tests for UserQuota model."""

import uuid

import pytest
from django.db import IntegrityError

from server.apps.files.models import UserQuota


@pytest.mark.django_db
def test_create_user_quota(user_id):
    """Test creating a UserQuota instance."""
    quota = UserQuota.objects.create(
        user_id=user_id,
        total_space=1024 * 1024 * 1024,  # 1 GB
    )

    assert quota.user_id == user_id
    assert quota.total_space == 1024 * 1024 * 1024
    assert quota.used_space == 0
    assert quota.file_count == 0


@pytest.mark.django_db
def test_user_quota_primary_key_constraint(user_id):
    """Test that a user can only have one quota record."""
    UserQuota.objects.create(user_id=user_id, total_space=10)

    with pytest.raises(IntegrityError):
        UserQuota.objects.create(user_id=user_id, total_space=10)


@pytest.mark.django_db
def test_user_quota_str_representation():
    """Test UserQuota string representation."""
    user_id = uuid.UUID('12345678-1234-5678-1234-567812345678')
    quota = UserQuota.objects.create(
        user_id=user_id,
        total_space=1024,
        used_space=512,
    )

    assert str(quota) == f'{user_id}: 512/1024'


@pytest.mark.django_db
def test_negative_used_space_rejected(user_id):
    """Test database refuses negative usage."""
    with pytest.raises(IntegrityError):
        UserQuota.objects.create(
            user_id=user_id,
            total_space=100,
            used_space=-1,
        )


@pytest.mark.django_db
def test_negative_file_count_rejected(user_id):
    """Test database refuses a negative file count."""
    with pytest.raises(IntegrityError):
        UserQuota.objects.create(
            user_id=user_id,
            total_space=100,
            file_count=-1,
        )


def test_available_space():
    """Test available_space calculation."""
    quota = UserQuota(total_space=1000, used_space=300)

    assert quota.available_space() == 700


def test_available_space_never_negative():
    """Test available_space when usage is above a lowered quota."""
    quota = UserQuota(total_space=100, used_space=300)

    assert quota.available_space() == 0
