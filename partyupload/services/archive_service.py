"""Streaming zip archives of a folder subtree."""

import io
import time
import zipfile
from contextlib import closing
from typing import Iterator, List, Optional, Tuple

from common.constants import STREAM_PIECE_SIZE_BYTES
from common.logging_config import get_logger
from partyupload.auth import Credentials
from partyupload.blob_storage import read_blob_streaming
from partyupload.exceptions import NoFilesAvailableError
from partyupload.repositories.file_repository import FileRepository, StoredFileRecord
from partyupload.services.access_service import AccessService, Capability
from partyupload.services.file_service import FileService
from partyupload.utils import parse_timestamp
from partyupload.validation import validate_folder

logger = get_logger(__name__)


class _ChunkSink(io.RawIOBase):
    """
    Write-only, unseekable buffer drained by the archive generator.

    ZipFile detects that it cannot seek and writes data descriptors after
    each entry, so the archive can be produced strictly front to back.
    """

    def __init__(self):
        super().__init__()
        self._buffer = bytearray()

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        if self.closed:
            raise ValueError("write to closed sink")
        self._buffer.extend(data)
        return len(data)

    def drain(self) -> bytes:
        data = bytes(self._buffer)
        self._buffer.clear()
        return data


def archive_entry_name(record: StoredFileRecord, root: str) -> str:
    """Path of a file inside the archive, relative to the archived folder."""
    relative_folder = record.folder
    if root:
        relative_folder = record.folder[len(root):].lstrip("/")
    return f"{relative_folder}/{record.name}" if relative_folder else record.name


def _zip_info(entry_name: str, record: StoredFileRecord) -> zipfile.ZipInfo:
    created = parse_timestamp(record.created_at)
    date_time = time.localtime(created.timestamp())[:6]
    if date_time[0] < 1980:
        date_time = (1980, 1, 1, 0, 0, 0)
    info = zipfile.ZipInfo(entry_name, date_time=date_time)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.file_size = record.size
    info.external_attr = 0o644 << 16
    return info


def stream_zip(event_id: str, records: List[StoredFileRecord], root: str,
               piece_size: int = STREAM_PIECE_SIZE_BYTES) -> Iterator[bytes]:
    """
    Produce a zip archive of the given files piece by piece.

    Blobs are opened one at a time; a blob deleted after the snapshot was
    taken is skipped. Closing the generator closes the archive and any
    blob currently being read.

    Yields:
        Archive bytes
    """
    sink = _ChunkSink()
    written = 0
    with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_DEFLATED, allowZip64=True) as archive:
        for record in records:
            entry_name = archive_entry_name(record, root)
            with closing(read_blob_streaming(event_id, record.storage_key, piece_size)) as pieces:
                try:
                    first_piece = next(pieces, b"")
                except FileNotFoundError:
                    logger.warning(
                        f"Skipping file removed during archive [event_id={event_id}] entry={entry_name!r}"
                    )
                    continue

                info = _zip_info(entry_name, record)
                with archive.open(info, mode="w", force_zip64=record.size >= zipfile.ZIP64_LIMIT) as entry:
                    entry.write(first_piece)
                    for piece in pieces:
                        entry.write(piece)
                        data = sink.drain()
                        if data:
                            yield data
            written += 1
            data = sink.drain()
            if data:
                yield data

    tail = sink.drain()
    if tail:
        yield tail
    logger.info(f"Archive streamed [event_id={event_id}] root={root!r} entries={written}")


class ArchiveService:
    def __init__(self, access_service: Optional[AccessService] = None):
        self.access_service = access_service or AccessService()
        self.file_service = FileService(self.access_service)
        self.file_repo = FileRepository()

    def build_zip(
        self,
        event_id: str,
        folder: Optional[str],
        credentials: Optional[Credentials],
        client_id: str,
    ) -> Tuple[str, Iterator[bytes]]:
        """
        Prepare a zip stream of every file at or below a folder.

        The file list is a snapshot taken before streaming starts.

        Args:
            event_id: Owning event
            folder: Folder to archive, None or "" for the whole event

        Returns:
            (download file name, generator of archive bytes)

        Raises:
            InvalidFolderError: If the folder path is malformed
            NoFilesAvailableError: If the subtree holds no files
        """
        folder = validate_folder(folder)
        self.file_service.authorize(event_id, credentials, client_id, capability=Capability.DOWNLOAD)

        records = self.file_repo.list_subtree(event_id, folder)
        if not records:
            raise NoFilesAvailableError()

        logger.info(f"Archive requested [event_id={event_id}] folder={folder!r} files={len(records)}")
        return f"{event_id}-files.zip", stream_zip(event_id, records, folder)
