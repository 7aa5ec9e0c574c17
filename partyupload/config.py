"""Configuration settings for the Party Upload service."""

import os
from typing import List

from common.constants import DEFAULT_DATA_ROOT_PATH, DEFAULT_DATABASE_PATH


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_list(name: str) -> List[str]:
    value = os.environ.get(name, "")
    return [item.strip() for item in value.split(",") if item.strip()]


HOST = os.environ.get("HOST", "0.0.0.0")

PORT = _env_int("PORT", 8080)

DATA_ROOT_PATH = os.environ.get("DATA_ROOT_PATH", DEFAULT_DATA_ROOT_PATH)

DATABASE_PATH = os.environ.get("DATABASE_PATH", DEFAULT_DATABASE_PATH)

CORS_ORIGINS = _env_list("CORS_ORIGIN")

ALLOWED_DOMAINS = _env_list("ALLOWED_DOMAINS")

SUPPORT_SUBDOMAIN = _env_bool("SUPPORT_SUBDOMAIN", True)

ALLOW_EVENT_CREATION = _env_bool("ALLOW_EVENT_CREATION", True)

# 0 disables the ceiling
UPLOAD_MAX_FILE_SIZE_BYTES = _env_int("UPLOAD_MAX_FILE_SIZE_BYTES", 0)

UPLOAD_MAX_TOTAL_SIZE_BYTES = _env_int("UPLOAD_MAX_TOTAL_SIZE_BYTES", 0)

AUTH_RATE_LIMIT_MAX_ATTEMPTS = _env_int("AUTH_RATE_LIMIT_MAX_ATTEMPTS", 12)

AUTH_RATE_LIMIT_WINDOW_SECONDS = _env_int("AUTH_RATE_LIMIT_WINDOW_SECONDS", 600)

AUTH_RATE_LIMIT_BLOCK_SECONDS = _env_int("AUTH_RATE_LIMIT_BLOCK_SECONDS", 300)

TRUST_FORWARDED_FOR = _env_bool("TRUST_FORWARDED_FOR", False)

PASSWORD_HASH_ROUNDS = _env_int("PASSWORD_HASH_ROUNDS", 10)

UPLOAD_RESERVATION_TIMEOUT_SECONDS = _env_int("UPLOAD_RESERVATION_TIMEOUT_SECONDS", 900)

RESERVATION_SWEEP_INTERVAL_SECONDS = _env_int("RESERVATION_SWEEP_INTERVAL_SECONDS", 600)

ENABLE_API_DOCS = _env_bool("ENABLE_API_DOCS", False)
