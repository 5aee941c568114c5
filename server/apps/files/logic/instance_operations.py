"""Business logic for per-instance configuration."""

import logging

from django.conf import settings
from django.db import transaction

from server.apps.files.exceptions import MalformedRequestError
from server.apps.files.infrastructure.handle import provider_handle
from server.apps.files.infrastructure.providers import (
    StorageProvider,
    available_providers,
    create_storage_provider,
)
from server.apps.files.logic.policy import reload_policy
from server.apps.files.models import InstanceConfig

logger = logging.getLogger(__name__)


def get_instance() -> InstanceConfig:
    """Get this server's configuration row."""
    return InstanceConfig.for_this_server()


def update_instance(
    server_id: str,
    provider: str | None = None,
    server_name: str | None = None,
    server_url: str | None = None,
) -> InstanceConfig:
    """Reconfigure this server and apply the change without a restart.

    The policy snapshot is reloaded and, when the provider changed, a
    new provider is built and swapped in. Operations already running
    finish on the provider they started with. Other worker processes
    pick the change up within ``CONFIG_REFRESH_INTERVAL`` seconds.

    Args:
        server_id: Must be this server's id.
        provider: New storage provider name.
        server_name: New display name.
        server_url: New public URL.

    Returns:
        Updated InstanceConfig.

    Raises:
        MalformedRequestError: If ``server_id`` names another server or
            the provider is unknown.
        InternalError: If the new provider cannot be built; the row
            and the active provider are left unchanged.
    """
    if server_id != settings.SERVER_ID:
        raise MalformedRequestError(
            f'Server id {server_id} does not match {settings.SERVER_ID}',
        )
    if provider is not None and provider not in available_providers():
        raise MalformedRequestError(f'Unknown storage provider: {provider}')

    instance = InstanceConfig.for_this_server()
    previous_provider = instance.provider

    if provider is not None:
        instance.provider = provider
    if server_name is not None:
        instance.server_name = server_name
    if server_url is not None:
        instance.server_url = server_url

    with transaction.atomic():
        instance.save()
        # Raising here rolls the row back
        reload_provider_if_changed(previous_provider, instance.provider)

    reload_policy()
    logger.info('Instance reconfigured: %s', instance)
    return instance


def reload_provider_if_changed(
    old_provider: str,
    new_provider: str,
) -> StorageProvider | None:
    """Swap the active provider when the configured one changed.

    Args:
        old_provider: Provider name before the change.
        new_provider: Provider name after the change.

    Returns:
        The provider that was replaced, or None if nothing changed.

    Raises:
        InternalError: If the new provider cannot be built; the old
            provider stays active.
    """
    if old_provider == new_provider:
        return None

    logger.info('Storage provider changed: %s -> %s', old_provider, new_provider)
    return provider_handle.replace(create_storage_provider(new_provider))
