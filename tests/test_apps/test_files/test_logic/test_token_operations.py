"""Tests for upload token issuance."""

import pytest
from django.conf import settings

from server.apps.files.exceptions import NotFoundError
from server.apps.files.logic.token_operations import issue_upload_token


@pytest.mark.django_db
def test_issue_anonymous_token(fake_redis):
    """Test anonymous tokens need no registered user."""
    issued = issue_upload_token()

    assert issued.expires_in == settings.UPLOAD_TOKEN_TTL
    assert fake_redis.values[f'upload_token:{issued.token}'] == ''


@pytest.mark.django_db
def test_issue_user_token(fake_redis, quota):
    """Test tokens for registered users are bound to them."""
    issued = issue_upload_token(quota.user_id)

    assert fake_redis.values[f'upload_token:{issued.token}'] == str(quota.user_id)


@pytest.mark.django_db
def test_issue_for_unknown_user_rejected(fake_redis, user_id):
    """Test tokens are not issued for unregistered users."""
    with pytest.raises(NotFoundError):
        issue_upload_token(user_id)

    assert not fake_redis.values
