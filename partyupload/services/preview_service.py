"""Resized image previews of stored files."""

import io
import re
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from PIL import ExifTags, Image, ImageOps

from common.constants import DEFAULT_PREVIEW_QUALITY, MAX_PREVIEW_SIZE
from common.logging_config import get_logger
from partyupload.auth import Credentials
from partyupload.blob_storage import iter_blob
from partyupload.exceptions import InvalidInputError, UnsupportedFileTypeError
from partyupload.services.access_service import AccessService
from partyupload.services.file_service import FileService, guess_mime_type

logger = get_logger(__name__)

FIT_MODES = ("inside", "cover")

OUTPUT_FORMATS = {
    "jpeg": ("JPEG", "image/jpeg"),
    "png": ("PNG", "image/png"),
    "webp": ("WEBP", "image/webp"),
}

_DIGITS = re.compile(r"^\d+$")

# EXIF orientations that swap width and height
_TRANSPOSED_ORIENTATIONS = (5, 6, 7, 8)

# Pillow raises these for truncated, corrupt or oversized sources
_DECODE_ERRORS = (OSError, ValueError, SyntaxError, Image.DecompressionBombError)


@dataclass(frozen=True)
class PreviewParams:
    width: Optional[int] = None
    height: Optional[int] = None
    quality: int = DEFAULT_PREVIEW_QUALITY
    fit: str = "inside"
    output_format: str = "jpeg"

    @property
    def media_type(self) -> str:
        return OUTPUT_FORMATS[self.output_format][1]


def _parse_bounded_int(value: Optional[str], field: str, minimum: int, maximum: int) -> Optional[int]:
    if value is None or value == "":
        return None
    if not _DIGITS.match(value.strip()):
        raise InvalidInputError(f"{field} must be a whole number.", field=field)
    number = int(value)
    if number < minimum or number > maximum:
        raise InvalidInputError(
            f"{field} must be between {minimum} and {maximum}.",
            field=field,
            additional_params={"MIN_REQUIRED": minimum, "MAX_ALLOWED": maximum},
        )
    return number


def parse_preview_params(
    w: Optional[str] = None,
    h: Optional[str] = None,
    q: Optional[str] = None,
    fit: Optional[str] = None,
    output_format: Optional[str] = None,
) -> PreviewParams:
    """
    Validate raw preview query parameters.

    Raises:
        InvalidInputError: With the offending parameter name as property
    """
    width = _parse_bounded_int(w, "w", 1, MAX_PREVIEW_SIZE)
    height = _parse_bounded_int(h, "h", 1, MAX_PREVIEW_SIZE)
    quality = _parse_bounded_int(q, "q", 1, 100)

    fit_mode = (fit or "inside").strip().lower()
    if fit_mode not in FIT_MODES:
        raise InvalidInputError(f"fit must be one of: {', '.join(FIT_MODES)}.", field="fit")

    format_name = (output_format or "jpeg").strip().lower()
    if format_name == "jpg":
        format_name = "jpeg"
    if format_name not in OUTPUT_FORMATS:
        raise InvalidInputError(
            f"format must be one of: {', '.join(OUTPUT_FORMATS)}.", field="format"
        )

    return PreviewParams(
        width=width,
        height=height,
        quality=quality if quality is not None else DEFAULT_PREVIEW_QUALITY,
        fit=fit_mode,
        output_format=format_name,
    )


def _target_size(size: Tuple[int, int], params: PreviewParams) -> Tuple[float, Optional[Tuple[int, int]]]:
    """Scale factor (never above 1) and optional crop box size."""
    source_width, source_height = size
    scales = []
    if params.width:
        scales.append(params.width / source_width)
    if params.height:
        scales.append(params.height / source_height)
    if not scales:
        return 1.0, None

    if params.fit == "cover" and params.width and params.height:
        scale = min(max(scales), 1.0)
        return scale, (params.width, params.height)
    return min(min(scales), 1.0), None


def _resize(image: Image.Image, params: PreviewParams) -> Image.Image:
    scale, crop = _target_size(image.size, params)
    if scale < 1.0:
        new_size = (max(1, round(image.width * scale)), max(1, round(image.height * scale)))
        image = image.resize(new_size, Image.Resampling.LANCZOS)
    if crop is not None:
        crop_width = min(crop[0], image.width)
        crop_height = min(crop[1], image.height)
        left = (image.width - crop_width) // 2
        top = (image.height - crop_height) // 2
        image = image.crop((left, top, left + crop_width, top + crop_height))
    return image


def _prepare_mode(image: Image.Image, output_format: str) -> Image.Image:
    has_alpha = image.mode in ("RGBA", "LA", "PA") or (image.mode == "P" and "transparency" in image.info)
    if output_format == "jpeg":
        if has_alpha:
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background
        return image if image.mode == "RGB" else image.convert("RGB")
    if image.mode in ("RGB", "RGBA"):
        return image
    return image.convert("RGBA" if has_alpha else "RGB")


def _draft_box(image: Image.Image, params: PreviewParams) -> Tuple[int, int]:
    """Requested size in the stored pixel orientation, before EXIF rotation."""
    transposed = image.getexif().get(ExifTags.Base.Orientation) in _TRANSPOSED_ORIENTATIONS
    width, height = image.size
    if transposed:
        return params.height or width, params.width or height
    return params.width or width, params.height or height


def render_preview(source, params: PreviewParams) -> bytes:
    """
    Decode, orient, resize and re-encode an image.

    Args:
        source: Binary file object holding the original image
        params: Validated preview parameters

    Returns:
        Encoded preview bytes
    """
    with Image.open(source) as original:
        if original.format == "JPEG" and (params.width or params.height):
            original.draft("RGB", _draft_box(original, params))
        image = ImageOps.exif_transpose(original)
        image = _resize(image, params)
        image = _prepare_mode(image, params.output_format)

        buffer = io.BytesIO()
        pil_format = OUTPUT_FORMATS[params.output_format][0]
        if params.output_format == "png":
            image.save(buffer, pil_format, optimize=True)
        else:
            image.save(buffer, pil_format, quality=params.quality)
    return buffer.getvalue()


class PreviewService:
    def __init__(self, access_service: Optional[AccessService] = None):
        self.access_service = access_service or AccessService()
        self.file_service = FileService(self.access_service)

    def preview(
        self,
        event_id: str,
        folder: Optional[str],
        filename: str,
        params: PreviewParams,
        credentials: Optional[Credentials],
        client_id: str,
    ) -> Iterator[bytes]:
        """
        Produce a resized preview of an image file.

        Returns:
            Generator over the encoded preview bytes

        Raises:
            StoredFileNotFoundError: If the file does not exist
            UnsupportedFileTypeError: If the file is not an image
            InvalidInputError: If the image cannot be decoded
        """
        record = self.file_service.get_file(event_id, folder, filename, credentials, client_id)
        if not guess_mime_type(record).startswith("image/"):
            raise UnsupportedFileTypeError()

        with self.file_service.open_record(record) as handle:
            try:
                data = render_preview(handle, params)
            except _DECODE_ERRORS as e:
                logger.warning(
                    f"Preview decode failed [event_id={event_id}] name={record.name!r}: {e}"
                )
                raise InvalidInputError("Preview not available for this file.", field="filename")

        logger.debug(
            f"Preview rendered [event_id={event_id}] name={record.name!r} bytes={len(data)} "
            f"format={params.output_format}"
        )
        return iter_blob(io.BytesIO(data))
