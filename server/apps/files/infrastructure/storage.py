"""Custom storage backend for S3-compatible storage."""

import logging
from typing import Any, final, override

from storages.backends.s3 import S3Storage
from storages.utils import clean_name

logger = logging.getLogger(__name__)


@final
class FileStorage(S3Storage):
    """Custom S3 storage backend for brokered files.

    Extends django-storages S3Storage with:
    - Enhanced error logging
    - Object header lookup for provider ``stat`` calls
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save file to S3 with error handling and logging.

        Args:
            name: Storage key for the file.
            content: File content (file-like object).
            max_length: Optional maximum length for the filename.

        Returns:
            Actual storage key used (may differ from name if conflicts).

        Raises:
            Exception: If S3 upload fails.
        """
        try:
            logger.info('Uploading object to bucket %s: %s', self.bucket_name, name)
            saved_name = super().save(name, content, max_length)
            logger.info('Successfully uploaded object: %s', saved_name)
        except Exception:
            logger.exception('Failed to upload object to storage: %s', name)
            raise
        else:
            return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete file from S3 with error handling and logging.

        Args:
            name: Storage key of file to delete.

        Raises:
            Exception: If S3 delete fails.
        """
        try:
            logger.info('Deleting object from storage: %s', name)
            super().delete(name)
            logger.info('Successfully deleted object: %s', name)
        except Exception:
            logger.exception('Failed to delete object from storage: %s', name)
            raise

    def head(self, name: str) -> dict[str, Any]:
        """Fetch object headers without downloading the body.

        Args:
            name: Storage key of the object.

        Returns:
            ``head_object`` response (ContentLength, ContentType, ...).

        Raises:
            botocore.exceptions.ClientError: If the object is missing
                or the request is refused.
        """
        return self.connection.meta.client.head_object(
            Bucket=self.bucket_name,
            Key=self._normalize_name(clean_name(name)),
        )

    def read(self, name: str) -> bytes:
        """Download the whole object body.

        Args:
            name: Storage key of the object.

        Returns:
            Object content.
        """
        with self.open(name, 'rb') as remote_file:
            return remote_file.read()
