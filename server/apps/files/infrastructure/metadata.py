"""Metadata helpers shared by providers and views."""

import mimetypes
import secrets
from typing import Final
from urllib.parse import quote

_OBJECT_KEY_BYTES: Final = 16  # 32 hex chars
_DEFAULT_MIME_TYPE: Final = 'application/octet-stream'


def generate_object_key() -> str:
    """Generate a random key for a new remote object.

    Keys carry no directory separators or extensions, so they can be
    used unchanged as provider file ids.

    Returns:
        Hex-encoded random key.
    """
    return secrets.token_hex(_OBJECT_KEY_BYTES)


def detect_mime_type(filename: str, declared: str | None = None) -> str:
    """Pick the MIME type for a remote object.

    Args:
        filename: Filename with extension.
        declared: MIME type reported by the provider, if any.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    if declared:
        return declared
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return _DEFAULT_MIME_TYPE
    return mime_type


def content_disposition(file_name: str) -> str:
    """Build an attachment ``Content-Disposition`` header value.

    Non-ASCII names are sent through the RFC 5987 ``filename*`` form,
    with an ASCII fallback in ``filename``.

    Args:
        file_name: Original filename.

    Returns:
        Header value.
    """
    ascii_name = file_name.encode('ascii', 'ignore').decode('ascii')
    ascii_name = ascii_name.replace('\\', '_').replace('"', '_')
    if ascii_name == file_name:
        return f'attachment; filename="{ascii_name}"'
    encoded = quote(file_name, safe='')
    return f'attachment; filename="{ascii_name}"; filename*=UTF-8\'\'{encoded}'
