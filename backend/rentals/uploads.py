from __future__ import annotations

import io
import logging
import mimetypes
import os
import re
import time
from typing import Any, BinaryIO, Protocol

from PIL import Image, UnidentifiedImageError

from rentals.errors import FileTooLarge, NoFile, ValidationFailed
from rentals.media import IMAGE_CATEGORY, VIDEO_CATEGORY
from rentals.storage import ObjectStorage


logger = logging.getLogger(__name__)

_CHUNK = 1024 * 1024

_IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".webp", ".gif", ".heic", ".heif"}
_VIDEO_EXTS = {".mp4", ".mov", ".m4v", ".avi", ".mkv", ".webm"}

# Characters that would break the key's path structure or a URL round-trip.
_UNSAFE_FILENAME_CHARS = re.compile(r"[\x00-\x1f\x7f?#%&\\<>\"]")


class IncomingFile(Protocol):
    """The subset of `fastapi.UploadFile` the gate relies on."""

    filename: str | None
    content_type: str | None
    file: BinaryIO


def _safe_upload_ext(*, filename: str, content_type: str, fallback: str) -> str:
    ext = os.path.splitext(filename)[1].lower()
    if ext and len(ext) <= 12 and re.match(r"^\.[a-z0-9]+$", ext):
        return ext
    ct = (content_type or "").lower().strip()
    if ct in {"image/jpeg", "image/jpg"}:
        return ".jpg"
    if ct == "image/png":
        return ".png"
    if ct == "image/webp":
        return ".webp"
    if ct == "image/gif":
        return ".gif"
    if ct == "video/mp4":
        return ".mp4"
    if ct == "video/quicktime":
        return ".mov"
    return fallback


def clean_filename(raw: str | None, *, content_type: str, fallback_ext: str) -> str:
    """Client basename with directory parts and URL-hostile characters removed."""
    name = (raw or "").replace("\\", "/").rsplit("/", 1)[-1].strip()
    name = _UNSAFE_FILENAME_CHARS.sub("_", name).strip(". ")
    stem, ext = os.path.splitext(name)
    if not re.match(r"^\.[A-Za-z0-9]{1,12}$", ext):
        # No usable extension: derive one so every key carries a format.
        stem = name
        ext = _safe_upload_ext(filename="", content_type=content_type, fallback=fallback_ext)
    return f"{stem or 'upload'}{ext.lower()}"


def build_key(category: str, user_id: int, filename: str, *, now_ms: int | None = None) -> str:
    ts = int(time.time() * 1000) if now_ms is None else int(now_ms)
    return f"{category}/{user_id}/{ts}-{filename}"


def read_limited(stream: BinaryIO, max_bytes: int) -> bytes:
    """Read the whole stream, failing as soon as it grows past `max_bytes`."""
    buf = bytearray()
    while True:
        chunk = stream.read(_CHUNK)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise FileTooLarge(max_bytes)
    return bytes(buf)


def _is_decodable_image(raw: bytes) -> bool:
    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.verify()
        return True
    except UnidentifiedImageError:
        return False
    except Exception:
        # Truncated/corrupt data surfaces as assorted decoder errors.
        return False


def _is_video(filename: str, content_type: str) -> bool:
    ct = (content_type or "").lower().strip()
    if not ct or ct == "application/octet-stream":
        ct = (mimetypes.guess_type(filename)[0] or "").lower()
    if ct.startswith("video/"):
        return True
    return os.path.splitext(filename)[1].lower() in _VIDEO_EXTS


class UploadGate:
    """Validates uploaded media and writes it once under a fresh stable key."""

    def __init__(self, storage: ObjectStorage, *, max_image_bytes: int, max_video_bytes: int) -> None:
        self.storage = storage
        self.max_image_bytes = max_image_bytes
        self.max_video_bytes = max_video_bytes

    def _read(self, upload: IncomingFile | None, field: str, max_bytes: int) -> bytes:
        if upload is None or not (upload.filename or "").strip():
            raise NoFile("No file provided", {"field": field})
        raw = read_limited(upload.file, max_bytes)
        if not raw:
            raise NoFile("Empty upload", {"field": field})
        return raw

    def upload_image(self, user_id: int, upload: IncomingFile | None, max_bytes: int | None = None) -> dict[str, Any]:
        limit = int(max_bytes or self.max_image_bytes)
        raw = self._read(upload, "image", limit)
        content_type = (upload.content_type or "").lower().strip()
        if not _is_decodable_image(raw):
            ext = os.path.splitext(upload.filename or "")[1].lower()
            # HEIC needs a decoder plugin; accept it on extension alone.
            if ext not in {".heic", ".heif"}:
                raise ValidationFailed(["image"], "Only image uploads are allowed")

        filename = clean_filename(upload.filename, content_type=content_type, fallback_ext=".jpg")
        key = build_key(IMAGE_CATEGORY, user_id, filename)
        stored = self.storage.upload(key, raw, content_type or (mimetypes.guess_type(filename)[0] or "image/jpeg"))
        logger.info("Property image uploaded user_id=%s key=%s size_bytes=%s", user_id, stored, len(raw))
        return {"key": stored, "filename": upload.filename}

    def upload_video(self, user_id: int, upload: IncomingFile | None, max_bytes: int | None = None) -> dict[str, Any]:
        limit = int(max_bytes or self.max_video_bytes)
        raw = self._read(upload, "video", limit)
        content_type = (upload.content_type or "").lower().strip()
        if not _is_video(upload.filename or "", content_type):
            raise ValidationFailed(["video"], "Only video uploads are allowed")

        filename = clean_filename(upload.filename, content_type=content_type, fallback_ext=".mp4")
        key = build_key(VIDEO_CATEGORY, user_id, filename)
        stored = self.storage.upload(key, raw, content_type or (mimetypes.guess_type(filename)[0] or "video/mp4"))
        logger.info("Virtual tour video uploaded user_id=%s key=%s size_bytes=%s", user_id, stored, len(raw))
        return {"key": stored, "filename": upload.filename}
