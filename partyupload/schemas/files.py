"""Pydantic schemas for file endpoints."""

from typing import List, Optional

from partyupload.schemas.common import CamelModel


class FileEntryResponse(CamelModel):
    """Response model for a file in a folder listing."""
    name: str
    size: int
    created_at: str


class ListFilesResponse(CamelModel):
    """Response model for folder listings."""
    folder: str
    folders: List[str]
    files: List[FileEntryResponse]


class RejectedFileResponse(CamelModel):
    """Response model for an upload that was refused."""
    file: str
    reason: str


class UploadFilesResponse(CamelModel):
    """Response model for multi-file uploads."""
    message: str
    uploaded: int
    rejected: List[RejectedFileResponse]


class RenameFolderRequest(CamelModel):
    """Request model for folder rename."""
    to: Optional[str] = None


class RenameFolderResponse(CamelModel):
    """Response model for folder rename."""
    success: bool = True
