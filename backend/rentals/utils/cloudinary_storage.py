from __future__ import annotations

import logging
import os
import tempfile
import time
from typing import Literal

import cloudinary
import cloudinary.uploader
import cloudinary.utils


logger = logging.getLogger(__name__)

ResourceType = Literal["image", "video"]

VIDEO_PREFIX = "virtual-tour-videos/"


def resource_type_for(key: str) -> ResourceType:
    return "video" if key.startswith(VIDEO_PREFIX) else "image"


class CloudinaryStorage:
    """
    Stores media as `authenticated` Cloudinary assets.

    A storage key `property-images/7/1700000000000-room.jpg` maps to the public id
    `{folder}/property-images/7/1700000000000-room` with format `jpg`; the mapping is
    deterministic so no Cloudinary identifiers need to be persisted.
    """

    def __init__(self, *, cloud_name: str, api_key: str, api_secret: str, folder: str) -> None:
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )
        self.folder = folder

    def _public_id(self, key: str) -> tuple[str, str]:
        stem, ext = os.path.splitext(key)
        return f"{self.folder}/{stem}", ext.lstrip(".")

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        public_id, fmt = self._public_id(key)
        resource_type = resource_type_for(key)
        tmp_path: str | None = None
        try:
            with tempfile.NamedTemporaryFile(delete=False, suffix=f".{fmt}" if fmt else "") as tmp:
                tmp.write(data)
                tmp_path = tmp.name

            res = cloudinary.uploader.upload(
                tmp_path,
                resource_type=resource_type,
                public_id=public_id,
                overwrite=False,
                type="authenticated",
                invalidate=False,
            )
        finally:
            if tmp_path:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    logger.warning("Could not remove temp upload file %s", tmp_path)

        if not str(res.get("public_id") or "").strip():
            raise RuntimeError(f"Cloudinary upload returned no public_id for {key!r}")
        return key

    def signed_url(self, key: str, expires_in: int) -> str:
        public_id, fmt = self._public_id(key)
        return cloudinary.utils.private_download_url(
            public_id,
            fmt,
            resource_type=resource_type_for(key),
            type="authenticated",
            expires_at=int(time.time()) + int(expires_in),
        )

    def delete(self, key: str) -> None:
        public_id, _ = self._public_id(key)
        cloudinary.uploader.destroy(public_id, resource_type=resource_type_for(key), type="authenticated", invalidate=False)
