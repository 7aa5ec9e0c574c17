"""Manages stored file bytes on disk, one namespace directory per event."""

import contextlib
import os
import shutil
from pathlib import Path
from typing import BinaryIO, Iterator

from common.constants import STREAM_PIECE_SIZE_BYTES
from common.logging_config import get_logger
from partyupload import config

logger = get_logger(__name__)


def get_event_dir(event_id: str) -> Path:
    return Path(config.DATA_ROOT_PATH) / event_id


def get_blob_path(event_id: str, storage_key: str) -> Path:
    """
    Get file path for a stored blob.

    Args:
        event_id: Owning event
        storage_key: UUID assigned when the upload was reserved

    Returns:
        Path object for the blob file
    """
    return get_event_dir(event_id) / "blobs" / storage_key


def ensure_event_directory(event_id: str) -> Path:
    blob_dir = get_event_dir(event_id) / "blobs"
    blob_dir.mkdir(parents=True, exist_ok=True)
    return blob_dir


def write_blob(event_id: str, storage_key: str, source: BinaryIO,
               piece_size: int = STREAM_PIECE_SIZE_BYTES) -> int:
    """
    Stream a file object to disk.

    Data goes to a ".part" sibling first and is renamed into place once
    complete, so readers never observe a truncated blob.

    Args:
        event_id: Owning event
        storage_key: UUID of the blob
        source: Readable binary stream positioned at the start
        piece_size: Size of each copied piece in bytes (default 64KB)

    Returns:
        Number of bytes written

    Raises:
        OSError: If the write fails
    """
    blob_path = get_blob_path(event_id, storage_key)
    blob_path.parent.mkdir(parents=True, exist_ok=True)
    partial_path = blob_path.with_name(storage_key + ".part")

    written = 0
    try:
        with open(partial_path, 'wb') as target:
            while True:
                piece = source.read(piece_size)
                if not piece:
                    break
                target.write(piece)
                written += len(piece)
        os.replace(partial_path, blob_path)
    except BaseException:
        partial_path.unlink(missing_ok=True)
        raise
    return written


def read_blob_streaming(event_id: str, storage_key: str,
                        piece_size: int = STREAM_PIECE_SIZE_BYTES) -> Iterator[bytes]:
    """
    Stream blob data in pieces.

    Args:
        event_id: Owning event
        storage_key: UUID of the blob
        piece_size: Size of each piece in bytes (default 64KB)

    Yields:
        Blob data pieces

    Raises:
        FileNotFoundError: If the blob does not exist
    """
    yield from iter_blob(open_blob(event_id, storage_key), piece_size)


def iter_blob(handle: BinaryIO, piece_size: int = STREAM_PIECE_SIZE_BYTES) -> Iterator[bytes]:
    """Yield pieces from an already opened blob and close it when exhausted or abandoned."""
    with handle:
        while True:
            piece = handle.read(piece_size)
            if not piece:
                break
            yield piece


def open_blob(event_id: str, storage_key: str) -> BinaryIO:
    """
    Open a blob for reading.

    Raises:
        FileNotFoundError: If the blob does not exist
    """
    return open(get_blob_path(event_id, storage_key), 'rb')


def delete_blob(event_id: str, storage_key: str) -> bool:
    """
    Delete a blob from disk.

    Returns:
        True if the blob was deleted, False if it didn't exist
    """
    blob_path = get_blob_path(event_id, storage_key)
    blob_path.with_name(storage_key + ".part").unlink(missing_ok=True)
    try:
        blob_path.unlink()
    except FileNotFoundError:
        return False
    return True


def purge_event_storage(event_id: str) -> None:
    """Remove an event's whole namespace directory."""
    event_dir = get_event_dir(event_id)
    if not event_dir.exists():
        return
    # concurrent writers may still add files while the tree is removed
    shutil.rmtree(event_dir, ignore_errors=True)
    if event_dir.exists():
        logger.warning(f"Event storage only partially purged [event_id={event_id}] path={event_dir}")
    else:
        logger.info(f"Purged event storage [event_id={event_id}]")


def prune_empty_event_dir(event_id: str) -> None:
    """Remove a namespace left behind by a write that raced the event's deletion."""
    event_dir = get_event_dir(event_id)
    for directory in (event_dir / "blobs", event_dir):
        # not empty means the namespace is in use again
        with contextlib.suppress(OSError):
            directory.rmdir()


def storage_writable() -> bool:
    root = Path(config.DATA_ROOT_PATH)
    root.mkdir(parents=True, exist_ok=True)
    return os.access(root, os.W_OK)
