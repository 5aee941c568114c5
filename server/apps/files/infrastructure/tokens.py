"""Single-use upload tokens stored in Redis.

A token maps to the id of the user allowed to upload with it, or to an
empty value for anonymous uploads. Redis expires the key after the
token's lifetime, and ``GETDEL`` reads and removes it in one atomic
step, so of several requests racing on the same token exactly one
sees its value.
"""

import logging
import secrets
import uuid
from functools import cache
from typing import Final, final

import redis
from django.conf import settings

from server.apps.files.exceptions import InvalidTokenError, UnavailableError

logger = logging.getLogger(__name__)

# Token length in bytes (generates 64 hex chars)
_TOKEN_BYTES: Final = 32
_KEY_PREFIX: Final = 'upload_token:'
_ANONYMOUS_VALUE: Final = ''


@final
class UploadTokenService:
    """Issues and consumes single-use upload tokens."""

    def __init__(self, client: redis.Redis, key_prefix: str = _KEY_PREFIX) -> None:
        """Create the service.

        Args:
            client: Redis client (responses decoded to ``str``).
            key_prefix: Namespace of token keys.
        """
        self._client = client
        self._key_prefix = key_prefix

    def issue(self, owner: uuid.UUID | None, ttl: int) -> str:
        """Create a token for one upload.

        Args:
            owner: User the upload must belong to; None for anonymous.
            ttl: Lifetime in seconds.

        Returns:
            The token.

        Raises:
            UnavailableError: If Redis cannot be reached.
        """
        token = secrets.token_hex(_TOKEN_BYTES)
        value = str(owner) if owner else _ANONYMOUS_VALUE

        try:
            self._client.set(self._key(token), value, ex=ttl)
        except redis.RedisError as error:
            logger.exception('Failed to store upload token')
            raise UnavailableError(f'Token store unavailable: {error}') from error

        logger.info(
            'Upload token issued: %s (owner: %s, ttl: %ds)',
            token[:8],
            owner or 'anonymous',
            ttl,
        )
        return token

    def consume(self, token: str) -> uuid.UUID | None:
        """Validate a token and invalidate it in the same operation.

        Args:
            token: Token presented by the client.

        Returns:
            The owner bound to the token, or None for anonymous tokens.

        Raises:
            InvalidTokenError: If the token was never issued, was
                already used or has expired.
            UnavailableError: If Redis cannot be reached.
        """
        try:
            value = self._client.getdel(self._key(token))
        except redis.RedisError as error:
            logger.exception('Failed to consume upload token')
            raise UnavailableError(f'Token store unavailable: {error}') from error

        if value is None:
            logger.warning('Upload token rejected: %s', token[:8])
            raise InvalidTokenError('Token not found, already used or expired')

        if isinstance(value, bytes):
            value = value.decode()

        if value == _ANONYMOUS_VALUE:
            logger.info('Anonymous upload token consumed: %s', token[:8])
            return None

        try:
            owner = uuid.UUID(value)
        except ValueError as error:
            logger.error('Upload token %s holds a malformed owner', token[:8])
            raise InvalidTokenError('Token bound to a malformed owner') from error

        logger.info('Upload token consumed: %s (owner: %s)', token[:8], owner)
        return owner

    def _key(self, token: str) -> str:
        return f'{self._key_prefix}{token}'


@cache
def get_token_service() -> UploadTokenService:
    """Get the process-wide token service.

    The Redis client keeps a connection pool, so it is created once.
    Socket timeouts bound every call so a Redis outage surfaces as
    ``UnavailableError`` instead of a hanging request.

    Returns:
        UploadTokenService bound to ``settings.REDIS_URL``.
    """
    client = redis.Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
    )
    return UploadTokenService(client)
