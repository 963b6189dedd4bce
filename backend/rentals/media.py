"""
Stable media keys and the time-limited URLs handed to clients.

The database only ever stores keys of the form
`{category}/{user_id}/{unix_millis}-{filename}`. URLs are generated on every
read and never persisted. Rows written by older clients may still hold a
previously signed URL; those are recognized here and normalized back to the
key they point at.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Union
from urllib.parse import parse_qs, unquote, urlsplit

from rentals.storage import ObjectStorage


logger = logging.getLogger(__name__)

IMAGE_CATEGORY = "property-images"
VIDEO_CATEGORY = "virtual-tour-videos"
CATEGORIES = (IMAGE_CATEGORY, VIDEO_CATEGORY)

# Relative `/uploads/...` links come from local storage without PUBLIC_BASE_URL.
_URL_PREFIXES = ("http://", "https://", "/")


@dataclass(frozen=True)
class MediaKey:
    key: str


@dataclass(frozen=True)
class LegacyUrl:
    url: str


MediaRef = Union[MediaKey, LegacyUrl]


def looks_like_url(value: str) -> bool:
    return value.strip().lower().startswith(_URL_PREFIXES)


def parse_reference(value: str) -> MediaRef:
    value = (value or "").strip()
    if looks_like_url(value):
        return LegacyUrl(value)
    return MediaKey(value)


def _key_from_path(path: str) -> str | None:
    # The earliest category segment wins: storage prefixes (`/uploads/`, bucket
    # names, Cloudinary delivery segments and folders) all come before it.
    best: int | None = None
    for category in CATEGORIES:
        marker = f"{category}/"
        idx = path.find(marker)
        while idx > 0 and path[idx - 1] != "/":
            idx = path.find(marker, idx + 1)
        if idx >= 0 and (best is None or idx < best):
            best = idx
    if best is None:
        return None
    key = path[best:]
    return key if key.count("/") >= 2 else None


def extract_key(url: str) -> str | None:
    """
    Recover the storage key from a previously signed URL.

    The path is percent-decoded exactly once, so `extract_key(sign(key)) == key`
    for every key this service writes. Cloudinary download URLs carry the asset in
    the `public_id`/`format` query parameters instead of the path. Returns None when
    the URL does not point at anything this service stored.
    """
    parts = urlsplit(url.strip())
    key = _key_from_path(unquote(parts.path))
    if key:
        return key

    query = parse_qs(parts.query)
    public_id = (query.get("public_id") or [""])[0]
    if public_id:
        fmt = (query.get("format") or [""])[0]
        return _key_from_path(f"/{public_id}.{fmt}" if fmt else f"/{public_id}")
    return None


def normalize_reference(value: str) -> str | None:
    """Return the stable key for a stored or submitted reference, or None if unrecognizable."""
    ref = parse_reference(value)
    if isinstance(ref, MediaKey):
        return ref.key if ref.key and _key_from_path(ref.key) == ref.key else None
    return extract_key(ref.url)


def key_owner_id(key: str) -> int | None:
    """The uploader encoded in `{category}/{user_id}/...`, or None if the segment is not an id."""
    parts = key.split("/", 2)
    if len(parts) < 3 or not parts[1].isdigit():
        return None
    return int(parts[1])


class MediaResolver:
    """Turns stored references into fresh, time-limited retrieval URLs."""

    def __init__(self, storage: ObjectStorage, ttl_seconds: int = 3600) -> None:
        self.storage = storage
        self.ttl_seconds = ttl_seconds

    def resolve_one(self, value: str | None) -> str | None:
        if not value:
            return None
        key = normalize_reference(value)
        if key is None:
            # Unknown legacy URL: hand it back untouched rather than nesting it.
            logger.warning("Unrecognized legacy media reference left unresolved: %.120s", value)
            return value
        return self.storage.signed_url(key, self.ttl_seconds)

    def resolve(self, values: Iterable[str] | None) -> list[str]:
        out: list[str] = []
        for value in values or []:
            url = self.resolve_one(value)
            if url:
                out.append(url)
        return out
