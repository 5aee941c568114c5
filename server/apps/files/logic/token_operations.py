"""Business logic for upload token issuance."""

import logging
import uuid
from dataclasses import dataclass

from django.conf import settings

from server.apps.files.infrastructure.tokens import get_token_service
from server.apps.files.logic.quota_operations import get_quota

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IssuedToken:
    """Token handed to a client, with its lifetime in seconds."""

    token: str
    expires_in: int


def issue_upload_token(owner_id: uuid.UUID | None = None) -> IssuedToken:
    """Issue a single-use token authorizing one upload.

    Args:
        owner_id: User the upload will belong to; None for an
            anonymous (temporary) upload.

    Returns:
        IssuedToken with the server-assigned lifetime.

    Raises:
        NotFoundError: If ``owner_id`` is not a registered user.
        UnavailableError: If the token store cannot be reached.
    """
    if owner_id is not None:
        # Only registered users can be bound to a token
        get_quota(owner_id)

    ttl = settings.UPLOAD_TOKEN_TTL
    token = get_token_service().issue(owner_id, ttl)
    return IssuedToken(token=token, expires_in=ttl)
