"""Upload broker settings: instance identity, tokens, policy defaults."""

from server.settings.components import config

# Identity of this broker instance
SERVER_ID = config('SERVER_ID', default='local-1')
SERVER_NAME = config('SERVER_NAME', default='Local file broker')
SERVER_URL = config('SERVER_URL', default='http://localhost:8000')

# Token store
REDIS_URL = config('REDIS_URL', default='redis://localhost:6379/0')
REDIS_SOCKET_TIMEOUT = config('REDIS_SOCKET_TIMEOUT', cast=float, default=1.0)

# Single-use upload tokens
UPLOAD_TOKEN_TTL = config('UPLOAD_TOKEN_TTL', cast=int, default=300)
UPLOAD_TOKEN_HEADER = config('UPLOAD_TOKEN_HEADER', default='X-Upload-Token')

# Shared secrets guarding the sweep and administrative endpoints
SWEEP_SECRET = config('SWEEP_SECRET', default='')
SWEEP_SECRET_HEADER = config('SWEEP_SECRET_HEADER', default='X-VK-Secret')
ADMIN_SECRET = config('ADMIN_SECRET', default='')
ADMIN_SECRET_HEADER = config('ADMIN_SECRET_HEADER', default='X-KV-Secret')

# Seconds between checks for policy or provider changes saved by other
# worker processes; 0 disables the check
CONFIG_REFRESH_INTERVAL = config('CONFIG_REFRESH_INTERVAL', cast=float, default=5.0)

# Seed values for the GlobalPolicy row, used only when it does not exist yet
POLICY_DEFAULT_MIME_TYPES = config(
    'POLICY_DEFAULT_MIME_TYPES',
    cast=lambda types: [mime.strip() for mime in types.split(',') if mime.strip()],
    default='image/jpeg,image/png,application/pdf,text/plain',
)
POLICY_DEFAULT_MAX_UPLOAD_SIZE = config(
    'POLICY_DEFAULT_MAX_UPLOAD_SIZE',
    cast=int,
    default=50 * 1024 * 1024,
)
POLICY_DEFAULT_TEMP_FILE_LIFETIME = config(
    'POLICY_DEFAULT_TEMP_FILE_LIFETIME',
    cast=int,
    default=24 * 60 * 60,
)
POLICY_DEFAULT_USER_QUOTA = config(
    'POLICY_DEFAULT_USER_QUOTA',
    cast=int,
    default=1024 * 1024 * 1024,
)
POLICY_DEFAULT_CHUNK_SIZE = config(
    'POLICY_DEFAULT_CHUNK_SIZE',
    cast=int,
    default=5 * 1024 * 1024,
)
