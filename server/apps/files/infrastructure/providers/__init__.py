"""Storage providers and the factory building them from settings.

Backends are listed in ``settings.STORAGE_PROVIDERS``; adding a new
backend means implementing ``StorageProvider`` and adding an entry
there, never branching on provider names in the business logic.
"""

import logging
from typing import Any

from django.conf import settings
from django.utils.module_loading import import_string

from server.apps.files.exceptions import InternalError
from server.apps.files.infrastructure.providers.base import (
    StorageProvider,
    StoredObject,
)

__all__ = (
    'StorageProvider',
    'StoredObject',
    'available_providers',
    'create_storage_provider',
)

logger = logging.getLogger(__name__)


def available_providers() -> tuple[str, ...]:
    """Names of the configured storage backends."""
    return tuple(settings.STORAGE_PROVIDERS)


def create_storage_provider(provider_name: str) -> StorageProvider:
    """Build a storage provider from its settings entry.

    Args:
        provider_name: Key in ``settings.STORAGE_PROVIDERS``.

    Returns:
        New provider instance.

    Raises:
        InternalError: If the provider is unknown or misconfigured.
    """
    provider_settings: dict[str, Any] | None = settings.STORAGE_PROVIDERS.get(
        provider_name,
    )
    if provider_settings is None:
        raise InternalError(f'Unknown storage provider: {provider_name}')

    backend_class = import_string(provider_settings['BACKEND'])
    options = provider_settings.get('OPTIONS', {})

    try:
        provider = backend_class(**options)
    except InternalError:
        raise
    except Exception as error:
        logger.exception('Failed to create storage provider: %s', provider_name)
        raise InternalError(
            f'Failed to create storage provider {provider_name}: {error}',
        ) from error

    logger.info('Storage provider created: %s', provider_name)
    return provider
