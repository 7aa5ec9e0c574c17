"""Repository layer for data access."""

from partyupload.repositories.event_repository import EventRecord, EventRepository
from partyupload.repositories.file_repository import FileRepository, StoredFileRecord

__all__ = [
    "EventRecord",
    "EventRepository",
    "FileRepository",
    "StoredFileRecord",
]
