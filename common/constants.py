"""Project-wide constants (limits, defaults, reserved names)."""

STREAM_PIECE_SIZE_BYTES: int = 64 * 1024  # 64 KiB read/write piece

DEFAULT_DATA_ROOT_PATH: str = "./data/events"
DEFAULT_DATABASE_PATH: str = "./data/partyupload.db"

EVENT_ID_MIN_LENGTH: int = 3
EVENT_ID_MAX_LENGTH: int = 32
EVENT_NAME_MAX_LENGTH: int = 48
EVENT_DESCRIPTION_MAX_LENGTH: int = 2048
ADMIN_PASSWORD_MIN_LENGTH: int = 8
GUEST_PASSWORD_MIN_LENGTH: int = 4
UPLOAD_FOLDER_HINT_MIN_LENGTH: int = 8
UPLOAD_FOLDER_HINT_MAX_LENGTH: int = 512

RESERVED_EVENT_IDS: frozenset = frozenset({
    "admin",
    "api",
    "assets",
    "config",
    "docs",
    "health",
    "login",
    "logout",
    "openapi",
    "public",
    "ready",
    "static",
    "uploads",
    "www",
})

MAX_PREVIEW_SIZE: int = 1920
DEFAULT_PREVIEW_QUALITY: int = 80

DOWNLOAD_CACHE_CONTROL: str = "public, max-age=86400"
PREVIEW_CACHE_CONTROL: str = "public, max-age=31536000, immutable"
NO_STORE_CACHE_CONTROL: str = "no-store, no-cache, must-revalidate, proxy-revalidate"
