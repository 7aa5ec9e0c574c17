"""Event repository for database operations."""

import json
import sqlite3
from dataclasses import dataclass, field
from typing import List, Optional

from common.logging_config import get_logger
from partyupload.database import get_db_connection

logger = get_logger(__name__)


@dataclass
class EventRecord:
    event_id: str
    name: str
    admin_password_hash: str
    created_at: str
    description: str = ""
    guest_password_hash: Optional[str] = None
    allowed_mime_types: List[str] = field(default_factory=list)
    allow_guest_download: bool = False
    allow_guest_upload: bool = True
    require_upload_folder: bool = False
    upload_folder_hint: Optional[str] = None
    upload_max_file_size_bytes: int = 0
    upload_max_total_size_bytes: int = 0

    @property
    def secured(self) -> bool:
        return bool(self.guest_password_hash)

    @property
    def guest_downloads_enabled(self) -> bool:
        return self.secured and self.allow_guest_download


_COLUMNS = """event_id, name, description, admin_password_hash, guest_password_hash,
              allowed_mime_types, allow_guest_download, allow_guest_upload,
              require_upload_folder, upload_folder_hint, upload_max_file_size_bytes,
              upload_max_total_size_bytes, created_at"""


def _row_to_event(row: sqlite3.Row) -> EventRecord:
    return EventRecord(
        event_id=row["event_id"],
        name=row["name"],
        description=row["description"] or "",
        admin_password_hash=row["admin_password_hash"],
        guest_password_hash=row["guest_password_hash"],
        allowed_mime_types=json.loads(row["allowed_mime_types"] or "[]"),
        allow_guest_download=bool(row["allow_guest_download"]),
        allow_guest_upload=bool(row["allow_guest_upload"]),
        require_upload_folder=bool(row["require_upload_folder"]),
        upload_folder_hint=row["upload_folder_hint"],
        upload_max_file_size_bytes=row["upload_max_file_size_bytes"],
        upload_max_total_size_bytes=row["upload_max_total_size_bytes"],
        created_at=row["created_at"],
    )


def _event_params(event: EventRecord) -> tuple:
    return (
        event.name,
        event.description,
        event.admin_password_hash,
        event.guest_password_hash,
        json.dumps(event.allowed_mime_types),
        int(event.allow_guest_download),
        int(event.allow_guest_upload),
        int(event.require_upload_folder),
        event.upload_folder_hint,
        event.upload_max_file_size_bytes,
        event.upload_max_total_size_bytes,
    )


class EventRepository:
    @staticmethod
    def create_event(event: EventRecord) -> EventRecord:
        """
        Insert a new event row.

        Raises:
            sqlite3.IntegrityError: If the event id already exists
        """
        logger.debug(f"Creating event [event_id={event.event_id}]")
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO events (name, description, admin_password_hash, guest_password_hash,
                                    allowed_mime_types, allow_guest_download, allow_guest_upload,
                                    require_upload_folder, upload_folder_hint,
                                    upload_max_file_size_bytes, upload_max_total_size_bytes,
                                    event_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                _event_params(event) + (event.event_id, event.created_at)
            )
            conn.commit()
        return event

    @staticmethod
    def get_by_id(event_id: str) -> Optional[EventRecord]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_COLUMNS} FROM events WHERE event_id = ?", (event_id,))
            row = cursor.fetchone()

        if row is None:
            logger.debug(f"Event not found [event_id={event_id}]")
            return None
        return _row_to_event(row)

    @staticmethod
    def update_event(event: EventRecord) -> bool:
        """
        Persist all mutable fields of an event.

        Returns:
            False if the event no longer exists
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE events
                SET name = ?, description = ?, admin_password_hash = ?, guest_password_hash = ?,
                    allowed_mime_types = ?, allow_guest_download = ?, allow_guest_upload = ?,
                    require_upload_folder = ?, upload_folder_hint = ?,
                    upload_max_file_size_bytes = ?, upload_max_total_size_bytes = ?
                WHERE event_id = ?
                """,
                _event_params(event) + (event.event_id,)
            )
            conn.commit()
            updated = cursor.rowcount > 0

        logger.debug(f"Event update [event_id={event.event_id}] applied={updated}")
        return updated

    @staticmethod
    def delete_event(event_id: str) -> bool:
        """
        Delete an event; files and folder containers cascade.

        Returns:
            False if the event did not exist
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM events WHERE event_id = ?", (event_id,))
            conn.commit()
            return cursor.rowcount > 0
