"""Storage provider interface.

A provider wraps one remote backend and exposes the four capabilities
the broker needs: upload, download, delete and stat. Backends translate
their own failures into the broker's exception classes:

- ``NotFoundError``: the object does not exist
- ``StorageUnavailableError``: network, timeout or authentication
  failure; nothing was changed and the call is safe to retry
- ``StorageRejectedError``: the provider refused the request
"""

import abc
import logging
from dataclasses import dataclass
from typing import ClassVar

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StoredObject:
    """Description of an object held by a provider."""

    file_id: str
    size: int
    mime_type: str
    file_name: str | None
    provider: str


class StorageProvider(abc.ABC):
    """Capability interface implemented by every storage backend."""

    name: ClassVar[str]

    @abc.abstractmethod
    def upload(
        self,
        content: bytes,
        file_name: str,
        mime_type: str,
    ) -> StoredObject:
        """Store a new object.

        Args:
            content: Object bytes.
            file_name: Original filename.
            mime_type: Declared MIME type.

        Returns:
            The stored object, with the provider-assigned ``file_id``.
        """

    @abc.abstractmethod
    def download(self, file_id: str) -> bytes:
        """Fetch the whole content of an object."""

    @abc.abstractmethod
    def delete(self, file_id: str) -> None:
        """Remove an object.

        Raises:
            NotFoundError: If the object does not exist.
        """

    @abc.abstractmethod
    def stat(self, file_id: str) -> StoredObject:
        """Describe an object without downloading it."""

    def discard(self, file_id: str) -> None:
        """Delete an object uploaded by a failed operation.

        Called when a later step (metadata commit) fails after the
        upload succeeded. This is a best-effort operation: if deletion
        fails the error is logged, not raised, since the caller is
        already handling the original failure.

        Args:
            file_id: Provider id of the object to delete.
        """
        try:
            logger.warning(
                'Rolling back upload, deleting object %s from %s',
                file_id,
                self.name,
            )
            self.delete(file_id)
            logger.info('Successfully rolled back upload: %s', file_id)
        except Exception:
            # The object stays in the provider without a metadata record
            logger.exception(
                'Failed to rollback upload, orphaned object: %s',
                file_id,
            )
