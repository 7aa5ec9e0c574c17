"""Service-level data type definitions."""

from dataclasses import dataclass
from typing import BinaryIO, Optional


@dataclass(frozen=True)
class IncomingFile:
    """
    One file part of a multipart upload.

    The stream must be seekable; multipart parsing spools parts to
    temporary files before the handler runs.
    """
    name: Optional[str]
    content_type: Optional[str]
    stream: BinaryIO


@dataclass(frozen=True)
class RejectedFile:
    file: str
    reason: str
