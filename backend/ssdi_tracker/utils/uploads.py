"""Validation and local storage of uploaded document files."""

from __future__ import annotations

import io
import uuid
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image

from ..config import settings
from ..errors import UnsupportedUpload, ValidationFailure

ALLOWED_EXTENSIONS = {".pdf", ".jpg", ".jpeg", ".png", ".doc", ".docx"}
_ZIP_MAGIC = b"PK\x03\x04"
_OLE_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
_IMAGE_FORMATS = {".jpg": "JPEG", ".jpeg": "JPEG", ".png": "PNG"}


def upload_root() -> Path:
    root = settings.UPLOAD_DIR
    root.mkdir(parents=True, exist_ok=True)
    return root


def validate_upload_filename(filename: str) -> None:
    if not filename or len(filename) > 200:
        raise ValidationFailure("invalid filename")
    if "/" in filename or "\\" in filename:
        raise ValidationFailure("invalid filename path")


def sniff_upload_kind(payload: bytes, filename: str) -> str:
    """Classify `payload` as `pdf`, `word` or `image` from its leading bytes.

    The bytes must match the format the extension names, since the stored
    file keeps that extension and is served with the matching media type.
    """
    suffix = Path(filename.lower()).suffix
    if suffix not in ALLOWED_EXTENSIONS:
        raise UnsupportedUpload("unsupported file type; expected PDF, JPG, PNG or Word")
    if suffix == ".pdf":
        if payload[:4] != b"%PDF":
            raise UnsupportedUpload("file content is not a PDF")
        return "pdf"
    if suffix == ".docx":
        if payload[:4] != _ZIP_MAGIC:
            raise UnsupportedUpload("file content is not a .docx document")
        return "word"
    if suffix == ".doc":
        if payload[:8] != _OLE_MAGIC:
            raise UnsupportedUpload("file content is not a .doc document")
        return "word"
    try:
        img = Image.open(io.BytesIO(payload))
        fmt = img.format
        img.verify()
    except Exception:
        raise UnsupportedUpload("unsupported file content; expected PDF, JPG, PNG or Word")
    if fmt != _IMAGE_FORMATS[suffix]:
        raise UnsupportedUpload(f"image content {fmt} does not match extension {suffix}")
    return "image"


def store_upload(payload: bytes, filename: str) -> Tuple[str, int]:
    """Validate and write an upload, returning `(stored file name, size)`.

    Stored names are random so two uploads of `report.pdf` never collide.
    """
    validate_upload_filename(filename)
    if len(payload) > settings.MAX_UPLOAD_BYTES:
        raise ValidationFailure("file too large")
    if not payload:
        raise ValidationFailure("empty file")
    sniff_upload_kind(payload, filename)
    stored_name = f"{uuid.uuid4().hex}{Path(filename).suffix.lower()}"
    (upload_root() / stored_name).write_bytes(payload)
    return stored_name, len(payload)


def resolve_upload(stored_name: str) -> Optional[Path]:
    """Return the path of a stored upload, or None if it is absent."""
    validate_upload_filename(stored_name)
    path = upload_root() / stored_name
    return path if path.is_file() else None


def delete_upload(stored_name: Optional[str]) -> None:
    if not stored_name:
        return
    path = resolve_upload(stored_name)
    if path is not None:
        path.unlink()
