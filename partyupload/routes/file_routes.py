"""File, folder, archive and preview API routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import StreamingResponse

from common.constants import DOWNLOAD_CACHE_CONTROL, NO_STORE_CACHE_CONTROL, PREVIEW_CACHE_CONTROL
from partyupload.auth import Credentials, get_client_identity, get_credentials
from partyupload.blob_storage import iter_blob
from partyupload.schemas.common import ERROR_RESPONSES, OkResponse
from partyupload.schemas.files import (
    ListFilesResponse,
    RenameFolderRequest,
    RenameFolderResponse,
    UploadFilesResponse,
)
from partyupload.services.archive_service import ArchiveService
from partyupload.services.file_service import FileService, guess_mime_type
from partyupload.services.preview_service import PreviewService, parse_preview_params
from partyupload.types import IncomingFile
from partyupload.utils import content_disposition

router = APIRouter(prefix="/api/events/{event_id}", tags=["Files"], responses=ERROR_RESPONSES)


@router.get("/files", response_model=ListFilesResponse)
def list_files(
    event_id: str,
    folder: Optional[str] = Query(None, description="Folder path, empty for the event root"),
    credentials: Optional[Credentials] = Depends(get_credentials),
    client_id: str = Depends(get_client_identity),
):
    """
    List the immediate files and subfolders of a folder.

    Parameters:
        - event_id: Event slug
        - folder: Optional folder path (e.g., "day-1/photos")
        - Authorization header: Basic base64(admin|guest:secret) for secured events

    Returns:
        - folder: Normalized folder path
        - folders: Names of immediate subfolders
        - files: Immediate files with name, size and createdAt

    Raises:
        - 400: Invalid folder
        - 401/403: Authorization required or guest downloads disabled
        - 404: Event not found
    """
    file_service = FileService()
    return file_service.list_folder(event_id, folder, credentials, client_id)


@router.post("/files", response_model=UploadFilesResponse)
def upload_files(
    event_id: str,
    files: Optional[List[UploadFile]] = File(None),
    from_folder: Optional[str] = Form(None, alias="from"),
    credentials: Optional[Credentials] = Depends(get_credentials),
    client_id: str = Depends(get_client_identity),
):
    """
    Upload one or more files into a folder.

    Parameters:
        - files: File parts (multipart/form-data)
        - from: Optional target folder; required when the event demands one

    Returns:
        - message: Summary
        - uploaded: Number of stored files
        - rejected: Files refused, with the reason

    Raises:
        - 400: Invalid folder or upload folder required
        - 401/403: Authorization required or guest uploads disabled
        - 404: Event not found (also when the event is deleted mid-upload)
    """
    file_service = FileService()
    incoming = [
        IncomingFile(name=part.filename, content_type=part.content_type, stream=part.file)
        for part in files or []
    ]
    return file_service.upload_files(event_id, from_folder, incoming, credentials, client_id)


@router.get("/files.zip")
def download_zip(
    event_id: str,
    folder: Optional[str] = Query(None),
    credentials: Optional[Credentials] = Depends(get_credentials),
    client_id: str = Depends(get_client_identity),
):
    """
    Download every file at or below a folder as a zip archive.

    Returns:
        - StreamingResponse with the archive, never cached

    Raises:
        - 400: Invalid folder
        - 401/403: Authorization required or guest downloads disabled
        - 404: Event not found or no files available
    """
    archive_service = ArchiveService()
    download_name, stream = archive_service.build_zip(event_id, folder, credentials, client_id)
    return StreamingResponse(
        stream,
        media_type="application/zip",
        headers={
            "Content-Disposition": content_disposition("attachment", download_name),
            "Cache-Control": NO_STORE_CACHE_CONTROL,
            "Pragma": "no-cache",
            "Expires": "0",
            "Surrogate-Control": "no-store",
        },
    )


def _preview_response(
    event_id: str,
    folder: Optional[str],
    filename: str,
    w: Optional[str],
    h: Optional[str],
    q: Optional[str],
    fit: Optional[str],
    output_format: Optional[str],
    credentials: Optional[Credentials],
    client_id: str,
) -> StreamingResponse:
    params = parse_preview_params(w=w, h=h, q=q, fit=fit, output_format=output_format)
    preview_service = PreviewService()
    stream = preview_service.preview(event_id, folder, filename, params, credentials, client_id)
    return StreamingResponse(
        stream,
        media_type=params.media_type,
        headers={"Cache-Control": PREVIEW_CACHE_CONTROL},
    )


@router.get("/files/{filename}/preview")
def preview_file(
    event_id: str,
    filename: str,
    folder: Optional[str] = Query(None),
    w: Optional[str] = Query(None),
    h: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    fit: Optional[str] = Query(None),
    output_format: Optional[str] = Query(None, alias="format"),
    credentials: Optional[Credentials] = Depends(get_credentials),
    client_id: str = Depends(get_client_identity),
):
    """
    Resized preview of an image file.

    Parameters:
        - w, h: Bounding box in pixels (1-1920)
        - q: Quality 1-100 (default 80)
        - fit: inside | cover (default inside)
        - format: jpeg | png | webp (default jpeg)

    Raises:
        - 400: Invalid parameters or undecodable image
        - 401/403: Authorization required or guest downloads disabled
        - 404: Event or file not found
        - 415: File is not an image
    """
    return _preview_response(event_id, folder, filename, w, h, q, fit, output_format, credentials, client_id)


@router.get("/files/{folder}/{filename}/preview")
def preview_file_in_folder(
    event_id: str,
    folder: str,
    filename: str,
    w: Optional[str] = Query(None),
    h: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    fit: Optional[str] = Query(None),
    output_format: Optional[str] = Query(None, alias="format"),
    credentials: Optional[Credentials] = Depends(get_credentials),
    client_id: str = Depends(get_client_identity),
):
    """Resized preview of an image file inside a top-level folder."""
    return _preview_response(event_id, folder, filename, w, h, q, fit, output_format, credentials, client_id)


def _download_response(
    event_id: str,
    folder: Optional[str],
    filename: str,
    credentials: Optional[Credentials],
    client_id: str,
) -> StreamingResponse:
    file_service = FileService()
    record, handle = file_service.open_download(event_id, folder, filename, credentials, client_id)
    return StreamingResponse(
        iter_blob(handle),
        media_type=guess_mime_type(record),
        headers={
            "Content-Length": str(record.size),
            "Content-Disposition": content_disposition("inline", record.name),
            "Cache-Control": DOWNLOAD_CACHE_CONTROL,
        },
    )


@router.get("/files/{filename}")
def download_file(
    event_id: str,
    filename: str,
    folder: Optional[str] = Query(None),
    credentials: Optional[Credentials] = Depends(get_credentials),
    client_id: str = Depends(get_client_identity),
):
    """
    Download a file.

    Parameters:
        - filename: Stored file name
        - folder: Optional folder path holding the file

    Returns:
        - StreamingResponse with file data

    Raises:
        - 400: Invalid filename or folder
        - 401/403: Authorization required or guest downloads disabled
        - 404: Event or file not found
    """
    return _download_response(event_id, folder, filename, credentials, client_id)


@router.get("/files/{folder}/{filename}")
def download_file_in_folder(
    event_id: str,
    folder: str,
    filename: str,
    credentials: Optional[Credentials] = Depends(get_credentials),
    client_id: str = Depends(get_client_identity),
):
    """Download a file inside a top-level folder."""
    return _download_response(event_id, folder, filename, credentials, client_id)


@router.delete("/files/{filename}", response_model=OkResponse)
def delete_file(
    event_id: str,
    filename: str,
    folder: Optional[str] = Query(None),
    credentials: Optional[Credentials] = Depends(get_credentials),
    client_id: str = Depends(get_client_identity),
):
    """
    Delete a file (admin only).

    Raises:
        - 400: Invalid filename or folder
        - 401: Missing or wrong admin credentials
        - 403: Non-admin credentials
        - 404: Event or file not found
    """
    file_service = FileService()
    file_service.delete_file(event_id, folder, filename, credentials, client_id)
    return OkResponse(ok=True, message="File deleted.")


@router.delete("/files/{folder}/{filename}", response_model=OkResponse)
def delete_file_in_folder(
    event_id: str,
    folder: str,
    filename: str,
    credentials: Optional[Credentials] = Depends(get_credentials),
    client_id: str = Depends(get_client_identity),
):
    """Delete a file inside a top-level folder (admin only)."""
    file_service = FileService()
    file_service.delete_file(event_id, folder, filename, credentials, client_id)
    return OkResponse(ok=True, message="File deleted.")


@router.patch("/folders/{folder:path}", response_model=RenameFolderResponse)
def rename_folder(
    event_id: str,
    folder: str,
    request: RenameFolderRequest,
    credentials: Optional[Credentials] = Depends(get_credentials),
    client_id: str = Depends(get_client_identity),
):
    """
    Rename a folder, keeping it under the same parent (admin only).

    Parameters:
        - folder: Full path of the folder to rename
        - to: New folder name (single segment)

    Raises:
        - 400: Invalid folder or target name
        - 401/403: Admin credentials required
        - 404: Event or folder not found
        - 409: Target folder already exists
    """
    file_service = FileService()
    file_service.rename_folder(event_id, folder, request.to, credentials, client_id)
    return RenameFolderResponse(success=True)
