"""Exceptions for files app.

Every failure the broker reports to a caller is a ``FileBrokerError``
subclass. Each class carries the HTTP status and the generic message
shown to callers; the detailed message passed to the constructor is
only logged.
"""

from http import HTTPStatus
from typing import ClassVar


class FileBrokerError(Exception):
    """Base class for failures returned to the caller."""

    status_code: ClassVar[int] = HTTPStatus.INTERNAL_SERVER_ERROR
    public_message: ClassVar[str] = 'Internal server error'

    def __init__(self, detail: str | None = None) -> None:
        """Initialize FileBrokerError.

        Args:
            detail: Internal description of the failure, for logs only.
        """
        self.detail = detail or self.public_message
        super().__init__(self.detail)


class NotFoundError(FileBrokerError):
    """Raised when a file, user or remote object does not exist."""

    status_code = HTTPStatus.NOT_FOUND
    public_message = 'Resource not found'


class MalformedRequestError(FileBrokerError):
    """Raised when a request is structurally invalid."""

    status_code = HTTPStatus.BAD_REQUEST
    public_message = 'Bad request'


class UnauthorizedError(FileBrokerError):
    """Raised for missing credentials or an identity mismatch."""

    status_code = HTTPStatus.UNAUTHORIZED
    public_message = 'Unauthorized'


class InvalidTokenError(UnauthorizedError):
    """Raised when an upload token was never issued, used or expired.

    The three cases are deliberately indistinguishable.
    """


class PayloadTooLargeError(FileBrokerError):
    """Raised when the uploaded content exceeds the size limit."""

    status_code = HTTPStatus.REQUEST_ENTITY_TOO_LARGE
    public_message = 'File too large'


class UnsupportedMediaTypeError(FileBrokerError):
    """Raised when the declared MIME type is not allowed."""

    status_code = HTTPStatus.UNSUPPORTED_MEDIA_TYPE
    public_message = 'Unsupported media type'


class InsufficientStorageError(FileBrokerError):
    """Raised when upload would exceed user's storage quota."""

    status_code = HTTPStatus.INSUFFICIENT_STORAGE
    public_message = 'Insufficient storage quota'

    def __init__(
        self,
        total_space: int,
        used_space: int,
        required_space: int,
    ) -> None:
        """Initialize InsufficientStorageError.

        Args:
            total_space: Total quota limit in bytes.
            used_space: Currently used bytes.
            required_space: Bytes needed for the operation.
        """
        self.total_space = total_space
        self.used_space = used_space
        self.required_space = required_space

        available = total_space - used_space
        super().__init__(
            f'Quota exceeded: need {required_space} bytes, '
            f'only {available} bytes available '
            f'(quota: {total_space}, used: {used_space})',
        )


class StorageUnavailableError(FileBrokerError):
    """Raised for transient provider failures (network, auth).

    Safe to retry: nothing was stored.
    """

    status_code = HTTPStatus.SERVICE_UNAVAILABLE
    public_message = 'Storage temporarily unavailable'


class StorageRejectedError(FileBrokerError):
    """Raised when the provider permanently refused the operation."""

    status_code = HTTPStatus.BAD_GATEWAY
    public_message = 'Storage provider error'


class UnavailableError(FileBrokerError):
    """Raised when a dependency (token store, database) is down."""

    status_code = HTTPStatus.SERVICE_UNAVAILABLE
    public_message = 'Service temporarily unavailable'


class InternalError(FileBrokerError):
    """Raised for unexpected failures that are not safe to retry."""
