"""Tests for per-instance configuration."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from django.conf import settings

from server.apps.files.exceptions import InternalError, MalformedRequestError
from server.apps.files.infrastructure.handle import provider_handle
from server.apps.files.logic.instance_operations import (
    reload_provider_if_changed,
    update_instance,
)
from server.apps.files.logic.policy import current_policy
from server.apps.files.models import GlobalPolicy, InstanceConfig

_CREATE_PROVIDER = (
    'server.apps.files.logic.instance_operations.create_storage_provider'
)


@pytest.mark.django_db
def test_update_instance_changes_identity(memory_provider):
    """Test name and URL are stored without touching the provider."""
    instance = update_instance(
        settings.SERVER_ID,
        server_name='Broker A',
        server_url='https://a.example.com',
    )

    assert instance.server_name == 'Broker A'
    assert InstanceConfig.objects.get().server_url == 'https://a.example.com'
    assert provider_handle.current() is memory_provider


@pytest.mark.django_db
def test_update_instance_other_server_rejected():
    """Test a server only accepts its own configuration."""
    with pytest.raises(MalformedRequestError):
        update_instance('some-other-server', server_name='x')


@pytest.mark.django_db
def test_update_instance_unknown_provider_rejected():
    """Test provider must be a configured backend."""
    with pytest.raises(MalformedRequestError):
        update_instance(settings.SERVER_ID, provider='ftp')


@pytest.mark.django_db
def test_update_instance_swaps_provider(memory_provider):
    """Test changing the provider swaps the active backend."""
    replacement = SimpleNamespace(name='gdrive')

    with patch(_CREATE_PROVIDER, return_value=replacement) as create:
        instance = update_instance(settings.SERVER_ID, provider='gdrive')

    create.assert_called_once_with('gdrive')
    assert instance.provider == 'gdrive'
    assert provider_handle.current() is replacement


@pytest.mark.django_db
def test_update_instance_build_failure_keeps_old_provider(memory_provider):
    """Test a provider that cannot be built leaves everything unchanged."""
    with patch(_CREATE_PROVIDER, side_effect=InternalError('no credentials')):
        with pytest.raises(InternalError):
            update_instance(settings.SERVER_ID, provider='gdrive')

    assert provider_handle.current() is memory_provider
    assert InstanceConfig.objects.get().provider == 's3'


@pytest.mark.django_db
def test_update_instance_reloads_policy():
    """Test reconfiguration refreshes the policy snapshot."""
    current_policy()
    GlobalPolicy.objects.update(max_upload_size=7)

    update_instance(settings.SERVER_ID)

    assert current_policy().max_upload_size == 7


def test_reload_provider_if_unchanged(memory_provider):
    """Test same provider name keeps the active instance."""
    with patch(_CREATE_PROVIDER) as create:
        assert reload_provider_if_changed('s3', 's3') is None

    create.assert_not_called()
    assert provider_handle.current() is memory_provider


def test_reload_provider_if_changed_returns_previous(memory_provider):
    """Test a swap hands back the replaced provider."""
    with patch(_CREATE_PROVIDER, return_value=SimpleNamespace(name='gdrive')):
        assert reload_provider_if_changed('s3', 'gdrive') is memory_provider
