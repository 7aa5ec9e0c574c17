"""File store: listing, uploads, downloads, deletion and folder rename."""

import mimetypes
import os
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, List, Optional, Tuple

from common.logging_config import get_logger
from partyupload import config
from partyupload.auth import Credentials
from partyupload.blob_storage import (
    delete_blob,
    open_blob,
    prune_empty_event_dir,
    write_blob,
)
from partyupload.exceptions import (
    EventNotFoundError,
    FolderAlreadyExistsError,
    FolderNotFoundError,
    InvalidFilenameError,
    InvalidInputError,
    StoredFileNotFoundError,
    UploadFolderRequiredError,
)
from partyupload.repositories.event_repository import EventRecord
from partyupload.repositories.file_repository import FileRepository, RenameOutcome, StoredFileRecord
from partyupload.schemas.files import (
    FileEntryResponse,
    ListFilesResponse,
    RejectedFileResponse,
    UploadFilesResponse,
)
from partyupload.services.access_service import AccessLevel, AccessService, Capability
from partyupload.services.event_service import EventService
from partyupload.types import IncomingFile, RejectedFile
from partyupload.utils import format_timestamp, join_folder, parent_folder, sanitize_upload_name
from partyupload.validation import (
    is_addressable_filename,
    mime_type_allowed,
    normalize_folder,
    validate_filename,
    validate_folder,
    validate_folder_segment,
)

logger = get_logger(__name__)

REJECT_INVALID_NAME = "Invalid file name."
REJECT_TYPE_NOT_ALLOWED = "File type not allowed."
REJECT_TOO_LARGE = "File is too large."
REJECT_LIMIT_REACHED = "Upload limit for this event reached."


def resolve_file_location(folder: Optional[str], filename: str) -> Tuple[str, str]:
    """
    Validate the folder and name addressing a stored file.

    The name is checked first. A parent reference in the folder part is a
    traversal attempt on the file path and is reported as INVALID_FILENAME.

    Returns:
        (normalized folder, filename)
    """
    validate_filename(filename)
    if folder and ".." in folder:
        raise InvalidFilenameError()
    return validate_folder(folder), filename


def guess_mime_type(record: StoredFileRecord) -> str:
    if record.mime_type:
        return record.mime_type
    guessed, _ = mimetypes.guess_type(record.name)
    return guessed or "application/octet-stream"


def _stream_size(stream: BinaryIO) -> int:
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def _stale_reservation_cutoff() -> str:
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=config.UPLOAD_RESERVATION_TIMEOUT_SECONDS)
    return format_timestamp(cutoff)


class FileService:
    def __init__(self, access_service: Optional[AccessService] = None):
        self.file_repo = FileRepository()
        self.access_service = access_service or AccessService()
        self.event_service = EventService(self.access_service)

    def authorize(
        self,
        event_id: str,
        credentials: Optional[Credentials],
        client_id: str,
        allow_guest: bool = True,
        capability: Optional[Capability] = None,
    ) -> Tuple[EventRecord, AccessLevel]:
        event = self.event_service.load_event(event_id)
        access_level = self.access_service.authorize(
            event, credentials, client_id, allow_guest=allow_guest, capability=capability
        )
        return event, access_level

    def list_folder(
        self, event_id: str, folder: Optional[str], credentials: Optional[Credentials], client_id: str
    ) -> ListFilesResponse:
        """
        List the immediate files and subfolders of a folder.

        Raises:
            InvalidFolderError: If the folder path is malformed
        """
        folder = validate_folder(folder)
        self.authorize(event_id, credentials, client_id, capability=Capability.DOWNLOAD)

        files = self.file_repo.list_files_in_folder(event_id, folder)
        folders = self.file_repo.list_subfolders(event_id, folder)
        return ListFilesResponse(
            folder=folder,
            folders=folders,
            files=[
                FileEntryResponse(name=record.name, size=record.size, created_at=record.created_at)
                for record in files
            ],
        )

    def upload_files(
        self,
        event_id: str,
        target_folder: Optional[str],
        incoming: List[IncomingFile],
        credentials: Optional[Credentials],
        client_id: str,
    ) -> UploadFilesResponse:
        """
        Store a batch of uploaded files.

        Each file is accepted or rejected on its own; rejections are reported
        rather than failing the request. Accepted files are reserved under a
        collision-free name before any bytes are written and only become
        visible once fully on disk.

        Args:
            event_id: Target event
            target_folder: Value of the "from" form field, None or "" for root
            incoming: Uploaded file parts
            credentials: Parsed Authorization claim
            client_id: Caller identity for login throttling

        Returns:
            UploadFilesResponse with the uploaded count and rejected files

        Raises:
            InvalidInputError: If "from" is not a valid folder path
            UploadFolderRequiredError: If the event requires a folder and none was given
            EventNotFoundError: If the event is deleted while the upload runs
        """
        folder = normalize_folder(target_folder)
        if folder is None:
            raise InvalidInputError("Invalid upload folder.", field="from")

        event, access_level = self.authorize(
            event_id, credentials, client_id, capability=Capability.UPLOAD
        )

        if event.require_upload_folder and not folder:
            raise UploadFolderRequiredError()

        if folder:
            self.file_repo.register_folder(event_id, folder)

        uploaded = 0
        rejected: List[RejectedFile] = []
        for part in incoming:
            rejection = self._store_one(event, folder, part)
            if rejection is None:
                uploaded += 1
            else:
                rejected.append(rejection)

        logger.info(
            f"Upload finished [event_id={event_id}] folder={folder!r} access={access_level.value} "
            f"uploaded={uploaded} rejected={len(rejected)}"
        )
        message = "Files uploaded successfully." if uploaded else "No files were uploaded."
        return UploadFilesResponse(
            message=message,
            uploaded=uploaded,
            rejected=[RejectedFileResponse(file=item.file, reason=item.reason) for item in rejected],
        )

    def _store_one(self, event: EventRecord, folder: str, part: IncomingFile) -> Optional[RejectedFile]:
        display_name = part.name or ""
        name = sanitize_upload_name(part.name)
        # stored names must be addressable by the file routes
        if name is None or not is_addressable_filename(name):
            return RejectedFile(file=display_name, reason=REJECT_INVALID_NAME)

        mime_type = (part.content_type or "").split(";", 1)[0].strip().lower()
        if not mime_type or mime_type == "application/octet-stream":
            mime_type = mimetypes.guess_type(name)[0] or mime_type or None
        if not mime_type_allowed(mime_type, event.allowed_mime_types):
            logger.debug(f"Rejected upload by type [event_id={event.event_id}] name={name!r} type={mime_type}")
            return RejectedFile(file=display_name, reason=REJECT_TYPE_NOT_ALLOWED)

        size = _stream_size(part.stream)
        if 0 < event.upload_max_file_size_bytes < size:
            return RejectedFile(file=display_name, reason=REJECT_TOO_LARGE)

        reservation = self.file_repo.reserve_file(
            event_id=event.event_id,
            folder=folder,
            name=name,
            size=size,
            mime_type=mime_type,
            max_total_bytes=event.upload_max_total_size_bytes,
            stale_before=_stale_reservation_cutoff(),
        )
        if reservation is None:
            return RejectedFile(file=display_name, reason=REJECT_LIMIT_REACHED)

        for storage_key in reservation.reclaimed_storage_keys:
            delete_blob(event.event_id, storage_key)

        record = reservation.record
        try:
            write_blob(event.event_id, record.storage_key, part.stream)
        except OSError:
            logger.error(
                f"Failed to write upload [event_id={event.event_id}] name={record.name!r}", exc_info=True
            )
            self.file_repo.release_reservation(record.file_id)
            raise

        if not self.file_repo.mark_ready(record.file_id):
            delete_blob(event.event_id, record.storage_key)
            prune_empty_event_dir(event.event_id)
            logger.warning(
                f"Upload lost its reservation, event deleted meanwhile [event_id={event.event_id}] "
                f"name={record.name!r}"
            )
            raise EventNotFoundError()

        if record.name != name:
            logger.info(
                f"Stored under disambiguated name [event_id={event.event_id}] "
                f"requested={name!r} stored={record.name!r}"
            )
        return None

    def get_file(
        self,
        event_id: str,
        folder: Optional[str],
        filename: str,
        credentials: Optional[Credentials],
        client_id: str,
    ) -> StoredFileRecord:
        """
        Resolve a downloadable file after validation and authorization.

        Raises:
            InvalidFilenameError: If the name could escape its folder
            InvalidFolderError: If the folder path is malformed
            StoredFileNotFoundError: If no such file exists
        """
        folder, filename = resolve_file_location(folder, filename)
        self.authorize(event_id, credentials, client_id, capability=Capability.DOWNLOAD)

        record = self.file_repo.get_file(event_id, folder, filename)
        if record is None:
            raise StoredFileNotFoundError()
        return record

    def open_download(
        self,
        event_id: str,
        folder: Optional[str],
        filename: str,
        credentials: Optional[Credentials],
        client_id: str,
    ) -> Tuple[StoredFileRecord, BinaryIO]:
        """
        Open a stored file for streaming.

        The handle is opened before any response is started so that a file
        deleted concurrently still yields a clean 404.
        """
        record = self.get_file(event_id, folder, filename, credentials, client_id)
        return record, self.open_record(record)

    @staticmethod
    def open_record(record: StoredFileRecord) -> BinaryIO:
        try:
            return open_blob(record.event_id, record.storage_key)
        except FileNotFoundError:
            logger.warning(f"Blob missing for file [event_id={record.event_id}] name={record.name!r}")
            raise StoredFileNotFoundError()

    def delete_file(
        self,
        event_id: str,
        folder: Optional[str],
        filename: str,
        credentials: Optional[Credentials],
        client_id: str,
    ) -> None:
        folder, filename = resolve_file_location(folder, filename)
        self.authorize(event_id, credentials, client_id, allow_guest=False)

        record = self.file_repo.get_file(event_id, folder, filename)
        if record is None:
            raise StoredFileNotFoundError()

        deleted = self.file_repo.delete_file(record.file_id)
        if deleted is None:
            raise StoredFileNotFoundError()

        delete_blob(event_id, deleted.storage_key)
        logger.info(f"File deleted [event_id={event_id}] folder={folder!r} name={filename!r}")

    def rename_folder(
        self,
        event_id: str,
        source: str,
        new_name: Optional[str],
        credentials: Optional[Credentials],
        client_id: str,
    ) -> str:
        """
        Rename a folder in place, keeping it under the same parent.

        Args:
            event_id: Owning event
            source: Full path of the folder to rename
            new_name: New last segment of the path

        Returns:
            The new full folder path

        Raises:
            InvalidFolderError: If source or new name is malformed
            FolderNotFoundError: If nothing exists at source
            FolderAlreadyExistsError: If the sibling target already exists
        """
        source = validate_folder(source, field="folder")
        new_name = validate_folder_segment(new_name, field="to")
        self.authorize(event_id, credentials, client_id, allow_guest=False)
        if not source:
            raise FolderNotFoundError()

        target = join_folder(parent_folder(source), new_name)
        outcome = self.file_repo.rename_folder(event_id, source, target)
        if outcome == RenameOutcome.SOURCE_MISSING:
            raise FolderNotFoundError()
        if outcome == RenameOutcome.TARGET_EXISTS:
            raise FolderAlreadyExistsError()
        return target
