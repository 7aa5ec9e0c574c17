"""Pydantic schemas for event endpoints."""

from typing import List, Optional

from partyupload.schemas.common import CamelModel


class CreateEventRequest(CamelModel):
    """Request model for event creation."""
    event_id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    admin_password: Optional[str] = None
    admin_password_confirm: Optional[str] = None
    guest_password: Optional[str] = None
    allowed_mime_types: Optional[List[str]] = None
    allow_guest_download: Optional[bool] = None
    allow_guest_upload: Optional[bool] = None
    require_upload_folder: Optional[bool] = None
    upload_folder_hint: Optional[str] = None


class UpdateEventRequest(CamelModel):
    """Request model for event updates; only fields that are sent are applied."""
    name: Optional[str] = None
    description: Optional[str] = None
    admin_password: Optional[str] = None
    admin_password_confirm: Optional[str] = None
    guest_password: Optional[str] = None
    allowed_mime_types: Optional[List[str]] = None
    allow_guest_download: Optional[bool] = None
    allow_guest_upload: Optional[bool] = None
    require_upload_folder: Optional[bool] = None
    upload_folder_hint: Optional[str] = None


class EventInfoResponse(CamelModel):
    """Response model describing an event; secrets are never included."""
    event_id: str
    name: str
    description: str
    allowed_mime_types: List[str]
    secured: bool
    allow_guest_download: bool
    allow_guest_upload: bool
    require_upload_folder: bool
    upload_folder_hint: Optional[str]
    access_level: str
    created_at: str
    upload_max_file_size_bytes: int
    upload_max_total_size_bytes: int


class UpdateEventResponse(EventInfoResponse):
    """Response model for event updates."""
    ok: bool = True
