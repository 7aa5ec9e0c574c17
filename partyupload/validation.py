"""Input validation for event fields, folder paths and file names."""

import re
from typing import Iterable, List, Optional

from common.constants import (
    ADMIN_PASSWORD_MIN_LENGTH,
    EVENT_DESCRIPTION_MAX_LENGTH,
    EVENT_ID_MAX_LENGTH,
    EVENT_ID_MIN_LENGTH,
    EVENT_NAME_MAX_LENGTH,
    GUEST_PASSWORD_MIN_LENGTH,
    RESERVED_EVENT_IDS,
    UPLOAD_FOLDER_HINT_MAX_LENGTH,
    UPLOAD_FOLDER_HINT_MIN_LENGTH,
)
from partyupload.exceptions import (
    InvalidEventIdError,
    InvalidFilenameError,
    InvalidFolderError,
    InvalidInputError,
)

EVENT_ID_REGEX = re.compile(r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")
FOLDER_SEGMENT_REGEX = re.compile(r"^[A-Za-z0-9 -]+$")
MIME_TYPE_REGEX = re.compile(r"^[\w.+-]+/[\w.+*%-]+$")

_FORBIDDEN_FILENAME_PARTS = ("/", "\\", "..", "%2f", "%5c", "%2e%2e")


def is_valid_event_id(event_id: Optional[str]) -> bool:
    if not event_id:
        return False
    if not EVENT_ID_MIN_LENGTH <= len(event_id) <= EVENT_ID_MAX_LENGTH:
        return False
    if not EVENT_ID_REGEX.match(event_id):
        return False
    return event_id not in RESERVED_EVENT_IDS


def validate_event_id_field(value: Optional[str]) -> str:
    """
    Validate the eventId of a creation payload.

    Args:
        value: Raw eventId from the request body

    Returns:
        Trimmed event id

    Raises:
        InvalidInputError: If the id is malformed or reserved
    """
    event_id = (value or "").strip()
    if len(event_id) < EVENT_ID_MIN_LENGTH:
        raise InvalidInputError(
            f"Event ID must be at least {EVENT_ID_MIN_LENGTH} characters.",
            field="eventId",
            additional_params={"MIN_REQUIRED": EVENT_ID_MIN_LENGTH},
        )
    if len(event_id) > EVENT_ID_MAX_LENGTH:
        raise InvalidInputError(
            f"Event ID can be at most {EVENT_ID_MAX_LENGTH} characters.",
            field="eventId",
            additional_params={"MAX_ALLOWED": EVENT_ID_MAX_LENGTH},
        )
    if not EVENT_ID_REGEX.match(event_id):
        raise InvalidInputError(
            "Event ID may only contain lowercase letters, numbers and dashes, "
            "and cannot start or end with a dash.",
            field="eventId",
        )
    if event_id in RESERVED_EVENT_IDS:
        raise InvalidInputError("This event ID is reserved.", field="eventId")
    return event_id


def require_event_id(event_id: str) -> str:
    """Validate an event id taken from a URL path."""
    if not is_valid_event_id(event_id):
        raise InvalidEventIdError()
    return event_id


def validate_name(value: Optional[str]) -> str:
    name = (value or "").strip()
    if not name:
        raise InvalidInputError("Project name is required.", field="name")
    if len(name) > EVENT_NAME_MAX_LENGTH:
        raise InvalidInputError(
            f"Project name can be at most {EVENT_NAME_MAX_LENGTH} characters.",
            field="name",
            additional_params={"MAX_ALLOWED": EVENT_NAME_MAX_LENGTH},
        )
    return name


def validate_description(value: Optional[str]) -> str:
    description = (value or "").strip()
    if len(description) > EVENT_DESCRIPTION_MAX_LENGTH:
        raise InvalidInputError(
            f"Description can be at most {EVENT_DESCRIPTION_MAX_LENGTH} characters.",
            field="description",
            additional_params={"MAX_ALLOWED": EVENT_DESCRIPTION_MAX_LENGTH},
        )
    return description


def validate_admin_password(value: Optional[str]) -> str:
    password = value or ""
    if len(password) < ADMIN_PASSWORD_MIN_LENGTH:
        raise InvalidInputError(
            f"Admin password must be at least {ADMIN_PASSWORD_MIN_LENGTH} characters.",
            field="adminPassword",
            additional_params={"MIN_REQUIRED": ADMIN_PASSWORD_MIN_LENGTH},
        )
    return password


def validate_guest_password(value: Optional[str]) -> str:
    """An empty guest password is valid and means the event is unsecured."""
    password = value or ""
    if password and len(password) < GUEST_PASSWORD_MIN_LENGTH:
        raise InvalidInputError(
            f"Guest password must be at least {GUEST_PASSWORD_MIN_LENGTH} characters.",
            field="guestPassword",
            additional_params={"MIN_REQUIRED": GUEST_PASSWORD_MIN_LENGTH},
        )
    return password


def validate_mime_types(values: Optional[Iterable[str]]) -> List[str]:
    """
    Normalize and validate an allow-list of mime type patterns.

    Duplicates are dropped; the first occurrence keeps its position.
    """
    result: List[str] = []
    for raw in values or []:
        mime_type = (raw or "").strip().lower()
        if not MIME_TYPE_REGEX.match(mime_type):
            raise InvalidInputError(
                f"Invalid mime type: {raw!r}.", field="allowedMimeTypes"
            )
        if mime_type not in result:
            result.append(mime_type)
    return result


def validate_upload_folder_hint(value: Optional[str]) -> Optional[str]:
    hint = (value or "").strip()
    if not hint:
        return None
    if len(hint) < UPLOAD_FOLDER_HINT_MIN_LENGTH:
        raise InvalidInputError(
            f"Upload folder hint must be at least {UPLOAD_FOLDER_HINT_MIN_LENGTH} characters.",
            field="uploadFolderHint",
            additional_params={"MIN_REQUIRED": UPLOAD_FOLDER_HINT_MIN_LENGTH},
        )
    if len(hint) > UPLOAD_FOLDER_HINT_MAX_LENGTH:
        raise InvalidInputError(
            f"Upload folder hint can be at most {UPLOAD_FOLDER_HINT_MAX_LENGTH} characters.",
            field="uploadFolderHint",
            additional_params={"MAX_ALLOWED": UPLOAD_FOLDER_HINT_MAX_LENGTH},
        )
    return hint


def normalize_folder(value: Optional[str]) -> Optional[str]:
    """
    Normalize a folder path, returning None when it is invalid.

    Segments are trimmed; empty segments (including a leading or trailing
    slash) and segments outside [A-Za-z0-9 -] make the whole path invalid.
    The empty path is the event root.
    """
    if value is None or value == "":
        return ""
    segments = [segment.strip() for segment in value.split("/")]
    for segment in segments:
        if not segment or not FOLDER_SEGMENT_REGEX.match(segment):
            return None
    return "/".join(segments)


def validate_folder(value: Optional[str], field: str = "folder") -> str:
    folder = normalize_folder(value)
    if folder is None:
        raise InvalidFolderError(field=field)
    return folder


def validate_folder_segment(value: Optional[str], field: str = "to") -> str:
    segment = (value or "").strip()
    if not segment or not FOLDER_SEGMENT_REGEX.match(segment):
        raise InvalidFolderError(field=field)
    return segment


def is_addressable_filename(value: Optional[str]) -> bool:
    if not value:
        return False
    lowered = value.lower()
    return not any(part in lowered for part in _FORBIDDEN_FILENAME_PARTS)


def validate_filename(value: Optional[str]) -> str:
    """
    Reject file names that could address anything outside their folder.

    Raises:
        InvalidFilenameError: On separators, parent references or their encodings
    """
    if not is_addressable_filename(value):
        raise InvalidFilenameError()
    return value


def mime_type_allowed(mime_type: Optional[str], allowed: List[str]) -> bool:
    """
    Match a mime type against an event allow-list.

    An empty allow-list accepts everything; "type/*" matches on the main type.
    """
    if not allowed:
        return True
    candidate = (mime_type or "").split(";", 1)[0].strip().lower()
    if not candidate:
        return False
    main_type = candidate.split("/", 1)[0]
    for pattern in allowed:
        if pattern.endswith("/*"):
            if main_type == pattern[:-2]:
                return True
        elif candidate == pattern:
            return True
    return False
