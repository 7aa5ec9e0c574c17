"""Custom exception classes for the Party Upload service."""

from typing import Any, Dict, Optional


class PartyUploadError(Exception):
    """
    Base exception class for all domain errors.

    Subclasses fix the HTTP status and error key; instances carry the message,
    the offending request field and optional extra parameters for the client.
    """
    status_code = 500
    error_key = "INTERNAL_ERROR"
    default_message = "Unexpected error."

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        additional_params: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.field = field
        self.additional_params = additional_params or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "message": self.message,
            "errorKey": self.error_key,
            "additionalParams": self.additional_params,
        }
        if self.field is not None:
            body["property"] = self.field
        return body


class InvalidInputError(PartyUploadError):
    """
    Raised when a request field fails validation.
    """
    status_code = 400
    error_key = "INVALID_INPUT"
    default_message = "Invalid input."


class InvalidEventIdError(InvalidInputError):
    """
    Raised when an event id in the request path is malformed.
    """
    error_key = "INVALID_EVENT_ID"
    default_message = "Invalid event id."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, field="eventId")


class InvalidFolderError(InvalidInputError):
    """
    Raised when a folder path contains an invalid segment.
    """
    error_key = "INVALID_FOLDER"
    default_message = "Invalid folder."


class InvalidFilenameError(InvalidInputError):
    """
    Raised when a file name contains a path separator or parent reference.
    """
    error_key = "INVALID_FILENAME"
    default_message = "Invalid filename."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, field="filename")


class UploadFolderRequiredError(InvalidInputError):
    """
    Raised when an event requires uploads to name a target folder.
    """
    error_key = "UPLOAD_FOLDER_REQUIRED"
    default_message = "Upload folder is required."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, field="from")


class GuestAccessDisabledError(InvalidInputError):
    """
    Raised when a secured event would end up with neither guest uploads nor guest downloads.
    """
    error_key = "GUEST_ACCESS_DISABLED"
    default_message = "Guest uploads or downloads must be enabled."


class AuthorizationRequiredError(PartyUploadError):
    """
    Raised when no usable identity was presented (401).
    """
    status_code = 401
    error_key = "AUTHORIZATION_REQUIRED"
    default_message = "Authorization required."


class AccessForbiddenError(PartyUploadError):
    """
    Raised when the presented identity may not perform the request (403).
    """
    status_code = 403
    error_key = "AUTHORIZATION_REQUIRED"
    default_message = "Access denied."


class GuestDownloadsDisabledError(AccessForbiddenError):
    error_key = "GUEST_DOWNLOADS_DISABLED"
    default_message = "Guest downloads require a set guest password."


class GuestUploadsDisabledError(AccessForbiddenError):
    error_key = "GUEST_UPLOADS_DISABLED"
    default_message = "Guest uploads are disabled for this event."


class EventCreationDisabledError(AccessForbiddenError):
    error_key = "EVENT_CREATION_DISABLED"
    default_message = "Event creation is disabled."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, field="eventId")


class EventNotFoundError(PartyUploadError):
    """
    Raised when an event does not exist or was deleted.
    """
    status_code = 404
    error_key = "EVENT_NOT_FOUND"
    default_message = "Event not found."


class StoredFileNotFoundError(PartyUploadError):
    """
    Raised when a requested file does not exist in the event.
    """
    status_code = 404
    error_key = "FILE_NOT_FOUND"
    default_message = "File not found."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, field="filename")


class FolderNotFoundError(PartyUploadError):
    status_code = 404
    error_key = "FOLDER_NOT_FOUND"
    default_message = "Folder not found."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, field="folder")


class NoFilesAvailableError(PartyUploadError):
    status_code = 404
    error_key = "NO_FILES_AVAILABLE"
    default_message = "No files available for download."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, field="folder")


class EventIdTakenError(PartyUploadError):
    """
    Raised when creating an event whose id is already in use.
    """
    status_code = 409
    error_key = "EVENT_ID_TAKEN"
    default_message = "Event ID is already taken."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, field="eventId")


class FolderAlreadyExistsError(PartyUploadError):
    status_code = 409
    error_key = "FOLDER_ALREADY_EXISTS"
    default_message = "A folder with this name already exists."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, field="to")


class UnsupportedFileTypeError(PartyUploadError):
    """
    Raised when a preview is requested for a file that is not an image.
    """
    status_code = 415
    error_key = "UNSUPPORTED_FILE_TYPE"
    default_message = "Preview is only available for images."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, field="filename")


class RateLimitedError(PartyUploadError):
    """
    Raised when a client exceeded the failed login threshold for an event.
    """
    status_code = 429
    error_key = "RATE_LIMITED"
    default_message = "Too Many Requests"

    def __init__(self, retry_after_seconds: int):
        super().__init__()
        self.retry_after_seconds = retry_after_seconds
