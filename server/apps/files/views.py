"""JSON API of the file broker.

Views stay thin: they parse the request, call one logic function and
serialize the result. Every ``FileBrokerError`` raised below is turned
into ``{"error": <public message>}`` with the status of its class by
``api_view``; the detailed message only goes to the log.
"""

import functools
import json
import logging
import secrets
import uuid
from collections.abc import Callable
from http import HTTPStatus
from typing import Any

from django.conf import settings
from django.core.exceptions import RequestDataTooBig
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.http.multipartparser import MultiPartParserError
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from server.apps.files.exceptions import (
    FileBrokerError,
    InternalError,
    MalformedRequestError,
    UnauthorizedError,
)
from server.apps.files.infrastructure.metadata import content_disposition
from server.apps.files.logic.expiry_operations import sweep_expired_files
from server.apps.files.logic.file_operations import (
    delete_file,
    download_file,
    get_file,
    list_user_file_ids,
    update_file_metadata,
    upload_file,
)
from server.apps.files.logic.instance_operations import (
    get_instance,
    update_instance,
)
from server.apps.files.logic.policy import current_policy
from server.apps.files.logic.quota_operations import (
    create_quota,
    delete_quota,
    get_quota,
    update_quota,
)
from server.apps.files.logic.token_operations import issue_upload_token
from server.apps.files.models import StoredFile, UserQuota

logger = logging.getLogger(__name__)

View = Callable[..., HttpResponse]


def api_view(view: View) -> View:
    """Render broker errors as JSON responses.

    Args:
        view: View function raising ``FileBrokerError`` on failure.

    Returns:
        Wrapped view.
    """
    @functools.wraps(view)
    def wrapper(request: HttpRequest, *args: Any, **kwargs: Any) -> HttpResponse:
        try:
            return view(request, *args, **kwargs)
        except FileBrokerError as error:
            return _error_response(request, error)
        except Exception:
            logger.exception(
                'Unhandled error in %s %s',
                request.method,
                request.path,
            )
            return _error_response(request, InternalError())

    return wrapper


@csrf_exempt
@require_http_methods(['POST'])
@api_view
def upload_token(request: HttpRequest) -> HttpResponse:
    """Issue a single-use upload token, optionally bound to a user."""
    body = _json_body(request)
    owner_id = _optional_uuid(body.get('userId'))

    issued = issue_upload_token(owner_id)
    return JsonResponse(
        {'token': issued.token, 'expiresIn': issued.expires_in},
        status=HTTPStatus.CREATED,
    )


@csrf_exempt
@require_http_methods(['POST', 'DELETE'])
@api_view
def files_collection(request: HttpRequest) -> HttpResponse:
    """Upload a file (POST) or sweep expired files (DELETE)."""
    if request.method == 'DELETE':
        _require_secret(
            request,
            settings.SWEEP_SECRET,
            settings.SWEEP_SECRET_HEADER,
        )
        sweep = sweep_expired_files()
        return JsonResponse(
            {'deletedCount': sweep.deleted_count, 'errors': sweep.errors},
        )

    stored_file = upload_file(
        request.headers.get(settings.UPLOAD_TOKEN_HEADER),
        functools.partial(_read_multipart, request),
    )
    return JsonResponse(
        {
            'fileId': stored_file.file_id,
            'size': stored_file.size,
            'mimeType': stored_file.mime_type,
            'filename': stored_file.file_name,
            'uploadedAt': stored_file.uploaded_at.isoformat(),
            'deleteAt': _delete_at(stored_file),
        },
        status=HTTPStatus.CREATED,
    )


@csrf_exempt
@require_http_methods(['GET', 'PATCH', 'DELETE'])
@api_view
def file_detail(request: HttpRequest, file_id: str) -> HttpResponse:
    """Read, update or delete one file's metadata."""
    if request.method == 'DELETE':
        delete_file(file_id)
        return HttpResponse(status=HTTPStatus.NO_CONTENT)

    if request.method == 'PATCH':
        body = _json_body(request)
        changes = {}
        if 'description' in body:
            changes['description'] = body['description']
        if 'fileName' in body:
            changes['file_name'] = body['fileName']
        return JsonResponse(
            _file_payload(update_file_metadata(file_id, **changes)),
        )

    return JsonResponse(_file_payload(get_file(file_id)))


@csrf_exempt
@require_http_methods(['GET'])
@api_view
def file_content(request: HttpRequest, file_id: str) -> HttpResponse:
    """Stream the file back with its stored content type."""
    stored_file, content = download_file(file_id)
    response = HttpResponse(content, content_type=stored_file.mime_type)
    response['Content-Disposition'] = content_disposition(stored_file.file_name)
    return response


@csrf_exempt
@require_http_methods(['POST'])
@api_view
def users_collection(request: HttpRequest) -> HttpResponse:
    """Register a user with the default quota."""
    body = _json_body(request)
    user_id = _required_uuid(body.get('uid'), 'uid')
    quota = create_quota(user_id)
    return JsonResponse(_quota_payload(quota), status=HTTPStatus.CREATED)


@csrf_exempt
@require_http_methods(['GET', 'PATCH', 'DELETE'])
@api_view
def user_detail(request: HttpRequest, user_id: str) -> HttpResponse:
    """Read, resize or remove a user's quota."""
    uid = _required_uuid(user_id, 'uid')

    if request.method == 'DELETE':
        return JsonResponse(_quota_payload(delete_quota(uid)))

    if request.method == 'PATCH':
        total_space = _json_body(request).get('totalSpace')
        if not isinstance(total_space, int) or isinstance(total_space, bool):
            raise MalformedRequestError("'totalSpace' must be an integer")
        return JsonResponse(_quota_payload(update_quota(uid, total_space)))

    return JsonResponse(_quota_payload(get_quota(uid)))


@csrf_exempt
@require_http_methods(['GET'])
@api_view
def user_files(request: HttpRequest, user_id: str) -> HttpResponse:
    """List ids of a user's permanent files."""
    uid = _required_uuid(user_id, 'uid')
    get_quota(uid)
    return JsonResponse({'files': list_user_file_ids(uid)})


@csrf_exempt
@require_http_methods(['PATCH'])
@api_view
def instance_detail(request: HttpRequest, server_id: str) -> HttpResponse:
    """Reconfigure this server (administrative)."""
    _require_secret(request, settings.ADMIN_SECRET, settings.ADMIN_SECRET_HEADER)
    body = _json_body(request)

    instance = update_instance(
        server_id,
        provider=body.get('provider'),
        server_name=body.get('serverName'),
        server_url=body.get('serverUrl'),
    )
    return JsonResponse(
        {
            'serverId': instance.server_id,
            'serverName': instance.server_name,
            'serverUrl': instance.server_url,
            'provider': instance.provider,
        },
    )


@csrf_exempt
@require_http_methods(['GET'])
@api_view
def health(request: HttpRequest) -> HttpResponse:
    """Report identity, active provider and policy (administrative)."""
    _require_secret(request, settings.ADMIN_SECRET, settings.ADMIN_SECRET_HEADER)
    instance = get_instance()
    policy = current_policy()

    return JsonResponse(
        {
            'status': 'ok',
            'serverId': instance.server_id,
            'serverName': instance.server_name,
            'serverUrl': instance.server_url,
            'provider': instance.provider,
            'policy': {
                'allowedMimeTypes': sorted(policy.allowed_mime_types),
                'maxUploadSize': policy.max_upload_size,
                'tempFileLifetime': policy.temp_file_lifetime,
                'defaultUserQuota': policy.default_user_quota,
                'chunkSize': policy.chunk_size,
            },
        },
    )


def _error_response(request: HttpRequest, error: FileBrokerError) -> JsonResponse:
    if error.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
        logger.error(
            '%s %s failed: %s',
            request.method,
            request.path,
            error.detail,
        )
    else:
        logger.warning(
            '%s %s rejected: %s',
            request.method,
            request.path,
            error.detail,
        )
    return JsonResponse(
        {'error': error.public_message},
        status=error.status_code,
    )


def _read_multipart(request: HttpRequest) -> tuple[Any, Any]:
    try:
        return request.POST, request.FILES
    except (MultiPartParserError, RequestDataTooBig) as error:
        raise MalformedRequestError(f'Malformed multipart body: {error}') from error


def _json_body(request: HttpRequest) -> dict[str, Any]:
    if not request.body:
        return {}
    try:
        body = json.loads(request.body)
    except (ValueError, UnicodeDecodeError) as error:
        raise MalformedRequestError(f'Invalid JSON body: {error}') from error
    if not isinstance(body, dict):
        raise MalformedRequestError('JSON body must be an object')
    return body


def _optional_uuid(raw_value: Any) -> uuid.UUID | None:
    if raw_value is None or raw_value == '':
        return None
    return _required_uuid(raw_value, 'userId')


def _required_uuid(raw_value: Any, field_name: str) -> uuid.UUID:
    if not isinstance(raw_value, str):
        raise MalformedRequestError(f"Missing or invalid '{field_name}'")
    try:
        return uuid.UUID(raw_value)
    except ValueError as error:
        raise MalformedRequestError(
            f"Invalid '{field_name}': {raw_value}",
        ) from error


def _require_secret(request: HttpRequest, expected: str, header: str) -> None:
    provided = request.headers.get(header, '')
    # An unset secret disables the endpoint
    if not expected or not secrets.compare_digest(
        provided.encode(),
        expected.encode(),
    ):
        raise UnauthorizedError(f'Invalid or missing {header} header')


def _delete_at(stored_file: StoredFile) -> str | None:
    if stored_file.delete_at is None:
        return None
    return stored_file.delete_at.isoformat()


def _file_payload(stored_file: StoredFile) -> dict[str, Any]:
    return {
        'fileId': stored_file.file_id,
        'fileName': stored_file.file_name,
        'mimeType': stored_file.mime_type,
        'size': stored_file.size,
        'userId': str(stored_file.owner_id) if stored_file.owner_id else None,
        'description': stored_file.description,
        'serverId': stored_file.server_id,
        'uploadedAt': stored_file.uploaded_at.isoformat(),
        'downloadCount': stored_file.download_count,
        'lastAccess': stored_file.last_access.isoformat(),
        'deleteAt': _delete_at(stored_file),
    }


def _quota_payload(quota: UserQuota) -> dict[str, Any]:
    return {
        'userId': str(quota.user_id),
        'fileCount': quota.file_count,
        'totalSpace': quota.total_space,
        'usedSpace': quota.used_space,
        'availableSpace': quota.available_space(),
        'createdAt': quota.created_at.isoformat(),
    }
