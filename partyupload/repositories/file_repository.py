"""Stored file and folder repository for database operations."""

import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Tuple

from common.logging_config import get_logger
from partyupload.database import get_db_connection, immediate_transaction
from partyupload.exceptions import EventNotFoundError
from partyupload.utils import candidate_file_name, generate_uuid, get_current_timestamp, parent_folder

logger = get_logger(__name__)

STATUS_PENDING = "pending"
STATUS_READY = "ready"


@dataclass
class StoredFileRecord:
    file_id: str
    event_id: str
    folder: str
    name: str
    size: int
    mime_type: Optional[str]
    storage_key: str
    status: str
    created_at: str


@dataclass
class Reservation:
    """A pending file row plus the blobs of any orphaned rows it displaced."""
    record: StoredFileRecord
    reclaimed_storage_keys: List[str] = field(default_factory=list)


class RenameOutcome(Enum):
    RENAMED = "renamed"
    UNCHANGED = "unchanged"
    SOURCE_MISSING = "source_missing"
    TARGET_EXISTS = "target_exists"


_FILE_COLUMNS = "file_id, event_id, folder, name, size, mime_type, storage_key, status, created_at"


def _row_to_file(row: sqlite3.Row) -> StoredFileRecord:
    return StoredFileRecord(
        file_id=row["file_id"],
        event_id=row["event_id"],
        folder=row["folder"],
        name=row["name"],
        size=row["size"],
        mime_type=row["mime_type"],
        storage_key=row["storage_key"],
        status=row["status"],
        created_at=row["created_at"],
    )


def _subtree_clause(column: str) -> str:
    """SQL matching a path and everything below it; binds (path, len(path) + 1, path + '/')."""
    return f"({column} = ? OR substr({column}, 1, ?) = ?)"


def _subtree_params(path: str) -> Tuple[str, int, str]:
    return path, len(path) + 1, path + "/"


def _path_has_content(cursor: sqlite3.Cursor, event_id: str, path: str) -> bool:
    cursor.execute(
        f"SELECT 1 FROM files WHERE event_id = ? AND {_subtree_clause('folder')} LIMIT 1",
        (event_id,) + _subtree_params(path)
    )
    if cursor.fetchone() is not None:
        return True
    cursor.execute(
        f"SELECT 1 FROM folders WHERE event_id = ? AND {_subtree_clause('path')} LIMIT 1",
        (event_id,) + _subtree_params(path)
    )
    return cursor.fetchone() is not None


def _prune_empty_containers(cursor: sqlite3.Cursor, event_id: str, folder: str) -> None:
    path = folder
    while path:
        cursor.execute(
            f"SELECT 1 FROM files WHERE event_id = ? AND {_subtree_clause('folder')} LIMIT 1",
            (event_id,) + _subtree_params(path)
        )
        if cursor.fetchone() is not None:
            return
        cursor.execute(
            "SELECT 1 FROM folders WHERE event_id = ? AND substr(path, 1, ?) = ? LIMIT 1",
            (event_id, len(path) + 1, path + "/")
        )
        if cursor.fetchone() is not None:
            return
        cursor.execute("DELETE FROM folders WHERE event_id = ? AND path = ?", (event_id, path))
        path = parent_folder(path)


class FileRepository:
    @staticmethod
    def reserve_file(
        event_id: str,
        folder: str,
        name: str,
        size: int,
        mime_type: Optional[str],
        max_total_bytes: int,
        stale_before: str,
    ) -> Optional[Reservation]:
        """
        Claim the first free name in a folder by inserting a pending row.

        Candidates are walked as name.ext, name_1.ext, name_2.ext, ... inside a
        single write-locked transaction, so two concurrent uploads can never be
        handed the same final name. Pending rows created before stale_before
        are orphans of an interrupted upload and are reclaimed in place.

        Args:
            event_id: Owning event
            folder: Normalized folder path ("" for root)
            name: Sanitized upload name
            size: Size in bytes of the upload
            mime_type: Declared content type
            max_total_bytes: Cumulative event ceiling, 0 for unlimited
            stale_before: Timestamp before which pending rows are orphaned

        Returns:
            Reservation, or None if the upload would exceed max_total_bytes

        Raises:
            EventNotFoundError: If the event no longer exists
        """
        with get_db_connection() as conn:
            with immediate_transaction(conn) as cursor:
                cursor.execute("SELECT 1 FROM events WHERE event_id = ?", (event_id,))
                if cursor.fetchone() is None:
                    raise EventNotFoundError()

                if max_total_bytes > 0:
                    cursor.execute(
                        "SELECT COALESCE(SUM(size), 0) AS used FROM files WHERE event_id = ?",
                        (event_id,)
                    )
                    used = cursor.fetchone()["used"]
                    if used + size > max_total_bytes:
                        logger.info(
                            f"Upload ceiling reached [event_id={event_id}] used={used} requested={size}"
                        )
                        return None

                reclaimed: List[str] = []
                attempt = 0
                while True:
                    candidate = candidate_file_name(name, attempt)
                    cursor.execute(
                        "SELECT file_id, status, storage_key, created_at FROM files "
                        "WHERE event_id = ? AND folder = ? AND name = ?",
                        (event_id, folder, candidate)
                    )
                    row = cursor.fetchone()

                    if row is not None and row["status"] == STATUS_PENDING and row["created_at"] < stale_before:
                        logger.info(
                            f"Reclaiming orphaned reservation [event_id={event_id}] "
                            f"folder={folder!r} name={candidate!r}"
                        )
                        cursor.execute("DELETE FROM files WHERE file_id = ?", (row["file_id"],))
                        reclaimed.append(row["storage_key"])
                        row = None

                    if row is None:
                        record = StoredFileRecord(
                            file_id=generate_uuid(),
                            event_id=event_id,
                            folder=folder,
                            name=candidate,
                            size=size,
                            mime_type=mime_type,
                            storage_key=generate_uuid(),
                            status=STATUS_PENDING,
                            created_at=get_current_timestamp(),
                        )
                        cursor.execute(
                            f"INSERT INTO files ({_FILE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                            (record.file_id, record.event_id, record.folder, record.name, record.size,
                             record.mime_type, record.storage_key, record.status, record.created_at)
                        )
                        return Reservation(record=record, reclaimed_storage_keys=reclaimed)

                    attempt += 1

    @staticmethod
    def mark_ready(file_id: str) -> bool:
        """
        Publish a reserved file once its bytes are on disk.

        Returns:
            False if the reservation vanished (event deleted or reclaimed)
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE files SET status = ?, created_at = ? WHERE file_id = ? AND status = ?",
                (STATUS_READY, get_current_timestamp(), file_id, STATUS_PENDING)
            )
            conn.commit()
            return cursor.rowcount > 0

    @staticmethod
    def release_reservation(file_id: str) -> None:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM files WHERE file_id = ? AND status = ?", (file_id, STATUS_PENDING)
            )
            conn.commit()

    @staticmethod
    def get_file(event_id: str, folder: str, name: str) -> Optional[StoredFileRecord]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_FILE_COLUMNS} FROM files "
                "WHERE event_id = ? AND folder = ? AND name = ? AND status = ?",
                (event_id, folder, name, STATUS_READY)
            )
            row = cursor.fetchone()
        return _row_to_file(row) if row is not None else None

    @staticmethod
    def list_files_in_folder(event_id: str, folder: str) -> List[StoredFileRecord]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_FILE_COLUMNS} FROM files "
                "WHERE event_id = ? AND folder = ? AND status = ? ORDER BY name",
                (event_id, folder, STATUS_READY)
            )
            return [_row_to_file(row) for row in cursor.fetchall()]

    @staticmethod
    def list_subfolders(event_id: str, folder: str) -> List[str]:
        """
        Names of the immediate child folders of a path.

        Children come from ready files below the path and from explicit
        folder containers.
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT DISTINCT folder AS path FROM files "
                "WHERE event_id = ? AND status = ? AND folder != '' "
                "UNION SELECT path FROM folders WHERE event_id = ?",
                (event_id, STATUS_READY, event_id)
            )
            paths = [row["path"] for row in cursor.fetchall()]

        prefix = folder + "/" if folder else ""
        children: Set[str] = set()
        for path in paths:
            if not path.startswith(prefix) or path == folder:
                continue
            children.add(path[len(prefix):].split("/", 1)[0])
        return sorted(children)

    @staticmethod
    def list_subtree(event_id: str, folder: str) -> List[StoredFileRecord]:
        """All ready files at or below a folder, ordered by path."""
        with get_db_connection() as conn:
            cursor = conn.cursor()
            if folder:
                cursor.execute(
                    f"SELECT {_FILE_COLUMNS} FROM files "
                    f"WHERE event_id = ? AND status = ? AND {_subtree_clause('folder')} "
                    "ORDER BY folder, name",
                    (event_id, STATUS_READY) + _subtree_params(folder)
                )
            else:
                cursor.execute(
                    f"SELECT {_FILE_COLUMNS} FROM files WHERE event_id = ? AND status = ? "
                    "ORDER BY folder, name",
                    (event_id, STATUS_READY)
                )
            return [_row_to_file(row) for row in cursor.fetchall()]

    @staticmethod
    def delete_file(file_id: str) -> Optional[StoredFileRecord]:
        """
        Delete a file row and prune folder containers left empty by it.

        Returns:
            The deleted record, or None if it was already gone
        """
        with get_db_connection() as conn:
            with immediate_transaction(conn) as cursor:
                cursor.execute(f"SELECT {_FILE_COLUMNS} FROM files WHERE file_id = ?", (file_id,))
                row = cursor.fetchone()
                if row is None:
                    return None
                record = _row_to_file(row)
                cursor.execute("DELETE FROM files WHERE file_id = ?", (file_id,))
                _prune_empty_containers(cursor, record.event_id, record.folder)
                return record

    @staticmethod
    def register_folder(event_id: str, path: str) -> None:
        """
        Record an explicit folder container.

        Raises:
            EventNotFoundError: If the event no longer exists
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    "INSERT OR IGNORE INTO folders (event_id, path, created_at) VALUES (?, ?, ?)",
                    (event_id, path, get_current_timestamp())
                )
                conn.commit()
            except sqlite3.IntegrityError:
                raise EventNotFoundError()

    @staticmethod
    def rename_folder(event_id: str, source: str, target: str) -> RenameOutcome:
        """
        Re-parent every file and container at or below source onto target.

        Runs as one write-locked transaction; nothing changes unless the
        outcome is RENAMED.
        """
        if source == target:
            return RenameOutcome.UNCHANGED

        with get_db_connection() as conn:
            with immediate_transaction(conn) as cursor:
                if not _path_has_content(cursor, event_id, source):
                    return RenameOutcome.SOURCE_MISSING
                if _path_has_content(cursor, event_id, target):
                    return RenameOutcome.TARGET_EXISTS

                cursor.execute(
                    f"UPDATE files SET folder = ? || substr(folder, ?) "
                    f"WHERE event_id = ? AND {_subtree_clause('folder')}",
                    (target, len(source) + 1, event_id) + _subtree_params(source)
                )
                moved_files = cursor.rowcount
                cursor.execute(
                    f"UPDATE folders SET path = ? || substr(path, ?) "
                    f"WHERE event_id = ? AND {_subtree_clause('path')}",
                    (target, len(source) + 1, event_id) + _subtree_params(source)
                )

        logger.info(
            f"Folder renamed [event_id={event_id}] from={source!r} to={target!r} files={moved_files}"
        )
        return RenameOutcome.RENAMED

    @staticmethod
    def purge_stale_reservations(stale_before: str) -> List[Tuple[str, str]]:
        """
        Delete orphaned pending rows.

        Returns:
            (event_id, storage_key) pairs whose partial blobs should be removed
        """
        with get_db_connection() as conn:
            with immediate_transaction(conn) as cursor:
                cursor.execute(
                    "SELECT file_id, event_id, folder, storage_key FROM files "
                    "WHERE status = ? AND created_at < ?",
                    (STATUS_PENDING, stale_before)
                )
                rows = cursor.fetchall()
                for row in rows:
                    cursor.execute("DELETE FROM files WHERE file_id = ?", (row["file_id"],))
                    _prune_empty_containers(cursor, row["event_id"], row["folder"])
                return [(row["event_id"], row["storage_key"]) for row in rows]
