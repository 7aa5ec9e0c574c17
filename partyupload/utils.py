"""Utility helper functions for the Party Upload service."""

import os
import unicodedata
import uuid
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote


def generate_uuid() -> str:
    """
    Generate a new UUID4 string.

    Returns:
        UUID4 string
    """
    return str(uuid.uuid4())


def get_current_timestamp() -> str:
    """
    Get current UTC timestamp in ISO format with millisecond precision.

    Returns:
        Timestamp such as "2026-05-01T12:30:00.123Z"
    """
    return format_timestamp(datetime.now(timezone.utc))


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """
    Parse a timestamp produced by get_current_timestamp().

    Args:
        value: ISO 8601 string, optionally suffixed with "Z"

    Returns:
        Timezone-aware datetime in UTC
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def candidate_file_name(name: str, attempt: int) -> str:
    """
    Build the name tried on a given collision attempt.

    Attempt 0 is the name itself; attempt n inserts "_n" before the extension,
    so "photo.jpg" becomes "photo_1.jpg", "photo_2.jpg", ...

    Args:
        name: Sanitized upload name
        attempt: Collision attempt counter

    Returns:
        Candidate file name
    """
    if attempt == 0:
        return name
    stem, ext = os.path.splitext(name)
    return f"{stem}_{attempt}{ext}"


def sanitize_upload_name(raw_name: Optional[str]) -> Optional[str]:
    """
    Reduce a client supplied file name to a safe base name.

    Args:
        raw_name: File name from the multipart part, possibly including a path

    Returns:
        Sanitized name, or None if nothing usable remains
    """
    if not raw_name:
        return None
    name = unicodedata.normalize("NFC", raw_name)
    name = name.replace("\\", "/").rsplit("/", 1)[-1]
    name = "".join(ch for ch in name if unicodedata.category(ch)[0] != "C").strip()
    if name in ("", ".", ".."):
        return None
    return name


def join_folder(parent: str, child: str) -> str:
    return f"{parent}/{child}" if parent else child


def parent_folder(folder: str) -> str:
    return folder.rsplit("/", 1)[0] if "/" in folder else ""


def content_disposition(disposition: str, filename: str) -> str:
    """
    Build a Content-Disposition header value safe for any file name.

    Non-ASCII names are carried in the RFC 5987 filename* parameter with an
    ASCII fallback in filename.
    """
    fallback = "".join(ch if 32 <= ord(ch) < 127 and ch not in '"\\' else "_" for ch in filename)
    value = f'{disposition}; filename="{fallback}"'
    if fallback != filename:
        value += f"; filename*=UTF-8''{quote(filename, safe='')}"
    return value
