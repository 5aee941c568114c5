"""Storage provider configuration.

Each entry of ``STORAGE_PROVIDERS`` describes one remote backend the
broker can upload to, in the same ``BACKEND``/``OPTIONS`` shape as
Django's ``STORAGES`` setting:

- ``s3``: any S3-compatible service (MinIO, Cloudflare R2, Supabase)
- ``gdrive``: a Google Drive folder accessed with a service account

``STORAGE_PROVIDER`` only seeds the instance configuration row; the
active provider is switched at runtime by updating that row.
"""

from typing import Any, Final

from botocore.config import Config

from server.settings.components import config

STORAGE_PROVIDER = config('STORAGE_PROVIDER', default='s3')

# Bounds for every call made to a provider
STORAGE_CONNECT_TIMEOUT = config('STORAGE_CONNECT_TIMEOUT', cast=float, default=5.0)
STORAGE_READ_TIMEOUT = config('STORAGE_READ_TIMEOUT', cast=float, default=60.0)

STORAGE_PROVIDERS: Final[dict[str, dict[str, Any]]] = {
    's3': {
        'BACKEND': 'server.apps.files.infrastructure.providers.s3.S3StorageProvider',
        'OPTIONS': {
            'bucket_name': config('AWS_STORAGE_BUCKET_NAME', default='file-broker'),
            'access_key': config('AWS_ACCESS_KEY_ID', default=''),
            'secret_key': config('AWS_SECRET_ACCESS_KEY', default=''),
            'endpoint_url': config(
                'AWS_S3_ENDPOINT_URL',
                default=None,
            ),
            'region_name': config(
                'AWS_S3_REGION_NAME',
                default='us-east-1',
            ),
            'file_overwrite': False,  # Prevent accidental overwrites
            'default_acl': None,  # Inherit bucket ACL
            'client_config': Config(
                connect_timeout=STORAGE_CONNECT_TIMEOUT,
                read_timeout=STORAGE_READ_TIMEOUT,
                retries={'max_attempts': 2},
            ),
        },
    },
    'gdrive': {
        'BACKEND': 'server.apps.files.infrastructure.providers.gdrive.DriveStorageProvider',
        'OPTIONS': {
            'folder_id': config('GDRIVE_FOLDER_ID', default=''),
            'credentials_json': config('GDRIVE_CREDENTIALS', default=''),
            'timeout': STORAGE_READ_TIMEOUT,
        },
    },
}

STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
