"""
Content normalization for chapter uploads.
Turns raw uploaded bytes plus a declared MIME type into a SourceContent.
"""

import base64
import logging
import mimetypes
from typing import Optional

from models.course_models import SourceContent, ContentKind
from utils.exceptions import UnsupportedMediaTypeError, ValidationError

logger = logging.getLogger(__name__)

TEXT_MIME_TYPES = {"text/plain"}

DOCUMENT_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}

# Declared types that carry no information about the payload
GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


def _base_mime_type(mime_type: Optional[str]) -> str:
    """'text/plain; charset=utf-8' -> 'text/plain'"""
    if not mime_type:
        return ""
    return mime_type.split(";", 1)[0].strip().lower()


def classify_mime_type(mime_type: Optional[str]) -> ContentKind:
    """Map a MIME type onto the content kind it is consumed as."""
    base = _base_mime_type(mime_type)
    if base in TEXT_MIME_TYPES:
        return ContentKind.TEXT
    if base.startswith("image/"):
        return ContentKind.IMAGE
    if base in DOCUMENT_MIME_TYPES:
        return ContentKind.DOCUMENT
    raise UnsupportedMediaTypeError(mime_type)


def to_data_uri(data: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def resolve_mime_type(filename: str, mime_type: Optional[str]) -> Optional[str]:
    """Declared MIME type, or one guessed from the filename when the declared one is missing or generic."""
    if _base_mime_type(mime_type) not in GENERIC_MIME_TYPES:
        return mime_type
    guessed, _ = mimetypes.guess_type(filename or "")
    if guessed:
        logger.info(f"Guessed MIME type {guessed} for {filename} (declared: {mime_type or 'none'})")
        return guessed
    return mime_type


def normalize_upload(filename: str, data: bytes, mime_type: Optional[str]) -> SourceContent:
    """
    Build a SourceContent from uploaded bytes.

    Plain text is decoded as UTF-8; images and documents become base64 data URIs
    with their MIME type preserved. A missing or generic MIME type is guessed from
    the filename. Any other MIME type raises UnsupportedMediaTypeError.
    """
    mime_type = resolve_mime_type(filename, mime_type)
    kind = classify_mime_type(mime_type)
    base = _base_mime_type(mime_type)

    if kind == ContentKind.TEXT:
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ValidationError(
                f"Text file {filename} is not valid UTF-8",
                error_code="INVALID_TEXT_ENCODING",
                context={"filename": filename, "position": e.start},
            ) from e
        logger.info(f"Normalized text upload {filename} ({len(text.split())} words)")
        return SourceContent(name=filename, content=text, kind=ContentKind.TEXT)

    logger.info(f"Normalized {kind.value} upload {filename} ({base}, {len(data)} bytes)")
    return SourceContent(
        name=filename,
        content=to_data_uri(data, base),
        kind=kind,
        mime_type=base,
    )
