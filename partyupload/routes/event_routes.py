"""Event management API routes."""

from typing import Optional

from fastapi import APIRouter, Depends

from partyupload.auth import Credentials, get_client_identity, get_credentials
from partyupload.schemas.common import ERROR_RESPONSES, OkResponse
from partyupload.schemas.events import (
    CreateEventRequest,
    EventInfoResponse,
    UpdateEventRequest,
    UpdateEventResponse,
)
from partyupload.services.access_service import AccessLevel
from partyupload.services.event_service import EventService

router = APIRouter(prefix="/api/events", tags=["Events"], responses=ERROR_RESPONSES)


@router.post("", response_model=EventInfoResponse)
def create_event(request: CreateEventRequest):
    """
    Create a new event.

    Parameters:
        - eventId: Slug of lowercase letters, digits and dashes (3-32 chars)
        - name: Display name (1-48 chars)
        - adminPassword / adminPasswordConfirm: Admin secret (8+ chars), repeated
        - guestPassword: Optional guest secret (empty or 4+ chars); set means secured
        - allowedMimeTypes, allowGuestDownload, allowGuestUpload,
          requireUploadFolder, uploadFolderHint, description: Optional policy fields

    Returns:
        - Event info with accessLevel "unauthenticated"

    Raises:
        - 400: Invalid input
        - 403: Event creation disabled
        - 409: Event id already taken
    """
    event_service = EventService()
    event = event_service.create_event(request)
    return EventService.to_event_info(event, AccessLevel.UNAUTHENTICATED)


@router.get("/{event_id}", response_model=EventInfoResponse)
def get_event(
    event_id: str,
    credentials: Optional[Credentials] = Depends(get_credentials),
    client_id: str = Depends(get_client_identity),
):
    """
    Get event info scoped to the caller's access level.

    Parameters:
        - event_id: Event slug
        - Authorization header: Basic base64(admin|guest:secret) (required for secured events)

    Returns:
        - Event info including accessLevel

    Raises:
        - 400: Invalid event id
        - 401/403: Authorization required
        - 404: Event not found
        - 429: Too many failed attempts
    """
    event_service = EventService()
    event, access_level = event_service.get_event(event_id, credentials, client_id)
    return EventService.to_event_info(event, access_level)


@router.patch("/{event_id}", response_model=UpdateEventResponse)
def update_event(
    event_id: str,
    request: UpdateEventRequest,
    credentials: Optional[Credentials] = Depends(get_credentials),
    client_id: str = Depends(get_client_identity),
):
    """
    Update event settings (admin only). Only fields present in the body change.

    Raises:
        - 400: Invalid input or guest access disabled
        - 401: Missing or wrong admin credentials
        - 403: Non-admin credentials
        - 404: Event not found
    """
    event_service = EventService()
    event = event_service.update_event(event_id, credentials, client_id, request)
    info = EventService.to_event_info(event, AccessLevel.ADMIN)
    return UpdateEventResponse(**info.model_dump(), ok=True)


@router.delete("/{event_id}", response_model=OkResponse)
def delete_event(
    event_id: str,
    credentials: Optional[Credentials] = Depends(get_credentials),
    client_id: str = Depends(get_client_identity),
):
    """
    Delete an event and every file stored in it (admin only).

    Raises:
        - 401: Missing or wrong admin credentials
        - 403: Non-admin credentials
        - 404: Event not found
    """
    event_service = EventService()
    event_service.delete_event(event_id, credentials, client_id)
    return OkResponse(ok=True, message="Event deleted successfully.")
