"""Holder of the storage provider currently in use.

Every upload, download and delete reads the active provider, while
reconfiguration replaces it rarely. ``ProviderHandle`` keeps the
provider behind a lock that only guards the reference itself, never a
network call. Callers take one snapshot per logical operation:

    provider = provider_handle.current()
    stored = provider.upload(...)
    ...
    provider.discard(stored.file_id)

so a swap in the middle of an operation never splits it across two
providers; the old provider simply finishes the calls already made
through it.

A reconfiguration swaps the provider of the process that handled it.
Other worker processes compare the configured provider name with their
own at most every ``CONFIG_REFRESH_INTERVAL`` seconds and rebuild it
when they differ.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import final

from django.conf import settings

from server.apps.files.exceptions import InternalError
from server.apps.files.infrastructure.providers import (
    StorageProvider,
    create_storage_provider,
)

logger = logging.getLogger(__name__)

ProviderLoader = Callable[[], StorageProvider]
ProviderNameSource = Callable[[], str]


@final
class ProviderHandle:
    """Swappable reference to the active storage provider."""

    def __init__(
        self,
        loader: ProviderLoader,
        configured_name: ProviderNameSource | None = None,
    ) -> None:
        """Create an empty handle.

        Args:
            loader: Builds the provider on first use (or after reset).
            configured_name: Reads the provider name currently
                configured; when given, the handle rebuilds its provider
                once the name no longer matches.
        """
        self._loader = loader
        self._configured_name = configured_name
        self._provider: StorageProvider | None = None
        self._checked_at = 0.0
        self._lock = threading.Lock()

    def current(self) -> StorageProvider:
        """Get the provider active at call time.

        Returns:
            Provider snapshot to use for the whole operation.
        """
        with self._lock:
            provider = self._provider
            check_due = provider is not None and self._refresh_due()
        if provider is None:
            return self._load()

        if check_due:
            return self._refresh(provider)
        return provider

    def replace(self, new_provider: StorageProvider) -> StorageProvider | None:
        """Atomically make ``new_provider`` the active provider.

        Args:
            new_provider: Provider to use for new operations.

        Returns:
            The previously active provider, if any.
        """
        with self._lock:
            previous = self._provider
            self._provider = new_provider
            self._checked_at = time.monotonic()
        logger.info(
            'Storage provider replaced: %s -> %s',
            previous.name if previous else None,
            new_provider.name,
        )
        return previous

    def reset(self) -> None:
        """Forget the active provider; the next ``current()`` reloads it."""
        with self._lock:
            self._provider = None

    def _load(self) -> StorageProvider:
        # Build outside the lock; the first finished loader wins
        loaded = self._loader()
        with self._lock:
            if self._provider is None:
                self._provider = loaded
                self._checked_at = time.monotonic()
            return self._provider

    def _refresh(self, provider: StorageProvider) -> StorageProvider:
        configured = self._configured_name()
        if configured == provider.name:
            return provider

        logger.info(
            'Storage provider changed by another process: %s -> %s',
            provider.name,
            configured,
        )
        try:
            new_provider = self._loader()
        except InternalError:
            logger.exception('Keeping provider %s, rebuild failed', provider.name)
            return provider
        self.replace(new_provider)
        return new_provider

    def _refresh_due(self) -> bool:
        # Caller holds self._lock
        interval = settings.CONFIG_REFRESH_INTERVAL
        if self._configured_name is None or interval <= 0:
            return False
        now = time.monotonic()
        if now - self._checked_at < interval:
            return False
        self._checked_at = now
        return True


def _configured_provider_name() -> str:
    from server.apps.files.models import InstanceConfig  # noqa: WPS433

    return InstanceConfig.for_this_server().provider


def _load_configured_provider() -> StorageProvider:
    return create_storage_provider(_configured_provider_name())


provider_handle = ProviderHandle(
    _load_configured_provider,
    configured_name=_configured_provider_name,
)
