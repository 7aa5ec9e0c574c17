"""Event registry: creation, lookup, update and deletion of events."""

import sqlite3
from dataclasses import replace
from typing import Any, Dict, Optional, Tuple

from common.logging_config import get_logger
from partyupload import config
from partyupload.auth import Credentials, hash_password
from partyupload.blob_storage import ensure_event_directory, purge_event_storage
from partyupload.exceptions import (
    EventCreationDisabledError,
    EventIdTakenError,
    EventNotFoundError,
    GuestAccessDisabledError,
    InvalidInputError,
)
from partyupload.repositories.event_repository import EventRecord, EventRepository
from partyupload.schemas.events import CreateEventRequest, EventInfoResponse, UpdateEventRequest
from partyupload.services.access_service import AccessLevel, AccessService
from partyupload.utils import get_current_timestamp
from partyupload.validation import (
    require_event_id,
    validate_admin_password,
    validate_description,
    validate_event_id_field,
    validate_guest_password,
    validate_mime_types,
    validate_name,
    validate_upload_folder_hint,
)

logger = get_logger(__name__)

GUEST_DOWNLOAD_REQUIRES_PASSWORD = "Guest downloads require a set guest password."


def _check_admin_confirmation(password: str, confirmation: Optional[str]) -> None:
    if confirmation != password:
        raise InvalidInputError("Admin passwords must match.", field="adminPasswordConfirm")


class EventService:
    def __init__(self, access_service: Optional[AccessService] = None):
        self.event_repo = EventRepository()
        self.access_service = access_service or AccessService()

    def load_event(self, event_id: str) -> EventRecord:
        """
        Fetch an event by the id taken from a URL.

        Raises:
            InvalidEventIdError: If the id is malformed
            EventNotFoundError: If no such event exists
        """
        require_event_id(event_id)
        event = self.event_repo.get_by_id(event_id)
        if event is None:
            raise EventNotFoundError()
        return event

    def create_event(self, request: CreateEventRequest) -> EventRecord:
        name = validate_name(request.name)
        description = validate_description(request.description)
        event_id = validate_event_id_field(request.event_id)
        guest_password = validate_guest_password(request.guest_password)
        admin_password = validate_admin_password(request.admin_password)
        allowed_mime_types = validate_mime_types(request.allowed_mime_types)
        upload_folder_hint = validate_upload_folder_hint(request.upload_folder_hint)

        if not config.ALLOW_EVENT_CREATION:
            logger.warning(f"Event creation refused by policy [event_id={event_id}]")
            raise EventCreationDisabledError()

        _check_admin_confirmation(admin_password, request.admin_password_confirm)

        allow_guest_download = bool(request.allow_guest_download)
        allow_guest_upload = True if request.allow_guest_upload is None else request.allow_guest_upload

        if allow_guest_download and not guest_password:
            raise InvalidInputError(GUEST_DOWNLOAD_REQUIRES_PASSWORD, field="allowGuestDownload")
        if guest_password and not allow_guest_download and not allow_guest_upload:
            raise GuestAccessDisabledError(field="allowGuestUpload")

        event = EventRecord(
            event_id=event_id,
            name=name,
            description=description,
            admin_password_hash=hash_password(admin_password),
            guest_password_hash=hash_password(guest_password) if guest_password else None,
            allowed_mime_types=allowed_mime_types,
            allow_guest_download=allow_guest_download,
            allow_guest_upload=allow_guest_upload,
            require_upload_folder=bool(request.require_upload_folder),
            upload_folder_hint=upload_folder_hint,
            upload_max_file_size_bytes=config.UPLOAD_MAX_FILE_SIZE_BYTES,
            upload_max_total_size_bytes=config.UPLOAD_MAX_TOTAL_SIZE_BYTES,
            created_at=get_current_timestamp(),
        )

        try:
            self.event_repo.create_event(event)
        except sqlite3.IntegrityError:
            logger.info(f"Event id already taken [event_id={event_id}]")
            raise EventIdTakenError()

        ensure_event_directory(event_id)
        logger.info(f"Event created [event_id={event_id}] secured={event.secured}")
        return event

    def get_event(
        self, event_id: str, credentials: Optional[Credentials], client_id: str
    ) -> Tuple[EventRecord, AccessLevel]:
        event = self.load_event(event_id)
        access_level = self.access_service.authorize(event, credentials, client_id, allow_guest=True)
        return event, access_level

    def update_event(
        self,
        event_id: str,
        credentials: Optional[Credentials],
        client_id: str,
        request: UpdateEventRequest,
    ) -> EventRecord:
        """
        Apply a partial update on behalf of the event admin.

        Every sent field is validated before the event is looked up; checks
        that depend on the stored state (guest secret presence, the guest
        access invariant) run after authorization.

        Raises:
            InvalidInputError: Field validation or allowGuestDownload without a guest secret
            GuestAccessDisabledError: Secured event left without guest uploads and downloads
        """
        changes = self._validate_patch(request)

        event = self.load_event(event_id)
        self.access_service.authorize(event, credentials, client_id, allow_guest=False)

        updated = replace(event)
        for attribute in ("name", "description", "allowed_mime_types", "upload_folder_hint",
                          "require_upload_folder", "allow_guest_upload"):
            if attribute in changes:
                setattr(updated, attribute, changes[attribute])

        if "guest_password" in changes:
            if changes["guest_password"]:
                updated.guest_password_hash = hash_password(changes["guest_password"])
            else:
                updated.guest_password_hash = None
                updated.allow_guest_download = False

        if "allow_guest_download" in changes:
            if changes["allow_guest_download"] and not updated.secured:
                raise InvalidInputError(GUEST_DOWNLOAD_REQUIRES_PASSWORD, field="allowGuestDownload")
            updated.allow_guest_download = changes["allow_guest_download"]

        if updated.secured and not updated.allow_guest_download and not updated.allow_guest_upload:
            if "allow_guest_download" in changes and "allow_guest_upload" not in changes:
                field = "allowGuestDownload"
            else:
                field = "allowGuestUpload"
            raise GuestAccessDisabledError(field=field)

        if "admin_password" in changes:
            updated.admin_password_hash = hash_password(changes["admin_password"])

        if not self.event_repo.update_event(updated):
            raise EventNotFoundError()

        logger.info(f"Event updated [event_id={event_id}] fields={sorted(changes)}")
        return updated

    @staticmethod
    def _validate_patch(request: UpdateEventRequest) -> Dict[str, Any]:
        sent = request.model_fields_set
        changes: Dict[str, Any] = {}

        if "name" in sent:
            changes["name"] = validate_name(request.name)
        if "description" in sent:
            changes["description"] = validate_description(request.description)
        if "guest_password" in sent and request.guest_password is not None:
            changes["guest_password"] = validate_guest_password(request.guest_password)
        if "admin_password" in sent and request.admin_password is not None:
            admin_password = validate_admin_password(request.admin_password)
            _check_admin_confirmation(admin_password, request.admin_password_confirm)
            changes["admin_password"] = admin_password
        if "allowed_mime_types" in sent:
            changes["allowed_mime_types"] = validate_mime_types(request.allowed_mime_types)
        if "upload_folder_hint" in sent:
            changes["upload_folder_hint"] = validate_upload_folder_hint(request.upload_folder_hint)
        for flag in ("allow_guest_download", "allow_guest_upload", "require_upload_folder"):
            value = getattr(request, flag)
            if flag in sent and value is not None:
                changes[flag] = value

        return changes

    def delete_event(self, event_id: str, credentials: Optional[Credentials], client_id: str) -> None:
        """
        Delete an event with all of its files.

        The metadata row goes first so that in-flight uploads fail to commit;
        the namespace directory is purged afterwards.
        """
        event = self.load_event(event_id)
        self.access_service.authorize(event, credentials, client_id, allow_guest=False)

        if not self.event_repo.delete_event(event_id):
            raise EventNotFoundError()

        purge_event_storage(event_id)
        logger.info(f"Event deleted [event_id={event_id}]")

    @staticmethod
    def to_event_info(event: EventRecord, access_level: AccessLevel) -> EventInfoResponse:
        return EventInfoResponse(
            event_id=event.event_id,
            name=event.name,
            description=event.description or "",
            allowed_mime_types=event.allowed_mime_types,
            secured=event.secured,
            allow_guest_download=event.guest_downloads_enabled,
            allow_guest_upload=event.allow_guest_upload,
            require_upload_folder=event.require_upload_folder,
            upload_folder_hint=event.upload_folder_hint,
            access_level=access_level.value,
            created_at=event.created_at,
            upload_max_file_size_bytes=event.upload_max_file_size_bytes,
            upload_max_total_size_bytes=event.upload_max_total_size_bytes,
        )
