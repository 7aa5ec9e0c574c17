"""Pydantic schemas for API requests and responses."""

from partyupload.schemas.app_config import AppConfigResponse
from partyupload.schemas.common import ErrorResponse, OkResponse
from partyupload.schemas.events import (
    CreateEventRequest,
    EventInfoResponse,
    UpdateEventRequest,
    UpdateEventResponse
)
from partyupload.schemas.files import (
    FileEntryResponse,
    ListFilesResponse,
    RejectedFileResponse,
    UploadFilesResponse,
    RenameFolderRequest,
    RenameFolderResponse
)

__all__ = [
    "AppConfigResponse",
    "ErrorResponse",
    "OkResponse",
    "CreateEventRequest",
    "EventInfoResponse",
    "UpdateEventRequest",
    "UpdateEventResponse",
    "FileEntryResponse",
    "ListFilesResponse",
    "RejectedFileResponse",
    "UploadFilesResponse",
    "RenameFolderRequest",
    "RenameFolderResponse"
]
