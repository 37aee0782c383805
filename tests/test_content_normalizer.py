"""
Tests for upload normalization.

Run with:
    python3 -m pytest tests/test_content_normalizer.py -v
"""

import base64

import pytest

from models.course_models import ContentKind, SourceContent
from services.content_normalizer import normalize_upload, classify_mime_type
from utils.exceptions import UnsupportedMediaTypeError, ValidationError


def test_plain_text_is_decoded():
    source = normalize_upload("notes.txt", "Mitochondria — the powerhouse".encode("utf-8"), "text/plain")
    assert source.kind == ContentKind.TEXT
    assert source.content == "Mitochondria — the powerhouse"
    assert source.mime_type is None
    assert source.name == "notes.txt"


def test_text_charset_parameter_is_accepted():
    source = normalize_upload("notes.txt", b"hello", "text/plain; charset=utf-8")
    assert source.kind == ContentKind.TEXT


def test_image_becomes_data_uri():
    data = b"\x89PNG\r\n\x1a\nrest"
    source = normalize_upload("scan.png", data, "image/png")
    assert source.kind == ContentKind.IMAGE
    assert source.mime_type == "image/png"
    assert source.content == "data:image/png;base64," + base64.b64encode(data).decode()
    assert base64.b64decode(source.base64_data) == data


@pytest.mark.parametrize("mime_type", [
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
])
def test_documents_become_data_uris(mime_type):
    source = normalize_upload("file", b"%PDF-1.4", mime_type)
    assert source.kind == ContentKind.DOCUMENT
    assert source.mime_type == mime_type
    assert source.content.startswith(f"data:{mime_type};base64,")


@pytest.mark.parametrize("mime_type", ["application/zip", "video/mp4", "text/html", "", None])
def test_unsupported_types_are_rejected(mime_type):
    with pytest.raises(UnsupportedMediaTypeError) as exc_info:
        normalize_upload("file.bin", b"data", mime_type)
    assert exc_info.value.status_code == 415
    assert exc_info.value.error_code == "UNSUPPORTED_MEDIA_TYPE"


def test_invalid_utf8_text_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        normalize_upload("latin1.txt", "café".encode("latin-1"), "text/plain")
    assert exc_info.value.error_code == "INVALID_TEXT_ENCODING"


def test_normalization_is_idempotent():
    first = normalize_upload("a.jpg", b"jpegbytes", "image/jpeg")
    second = normalize_upload("a.jpg", b"jpegbytes", "image/jpeg")
    assert first == second
    assert first.fingerprint == second.fingerprint


def test_generic_mime_type_is_guessed_from_filename():
    source = normalize_upload("chapter.txt", b"Cells divide by mitosis.", "application/octet-stream")
    assert source.kind == ContentKind.TEXT
    assert source.content == "Cells divide by mitosis."

    scan = normalize_upload("scan.png", b"\x89PNG", None)
    assert scan.kind == ContentKind.IMAGE
    assert scan.mime_type == "image/png"


def test_unknown_extension_with_generic_mime_type_is_unsupported():
    with pytest.raises(UnsupportedMediaTypeError):
        normalize_upload("blob", b"....", "application/octet-stream")


def test_declared_mime_type_wins_over_filename():
    with pytest.raises(UnsupportedMediaTypeError):
        normalize_upload("notes.txt", b"PK", "application/zip")


def test_classify_mime_type():
    assert classify_mime_type("image/webp") == ContentKind.IMAGE
    assert classify_mime_type("APPLICATION/PDF") == ContentKind.DOCUMENT


def test_non_text_source_requires_mime_type():
    with pytest.raises(ValueError):
        SourceContent(name="x.png", content="data:image/png;base64,AAAA", kind=ContentKind.IMAGE)
