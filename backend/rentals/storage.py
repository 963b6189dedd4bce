from __future__ import annotations

import logging
from typing import Protocol

from rentals.config import Settings


logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    """Durable blob store addressed by stable keys."""

    def upload(self, key: str, data: bytes, content_type: str) -> str: ...

    def signed_url(self, key: str, expires_in: int) -> str: ...

    def delete(self, key: str) -> None: ...


def build_storage(settings: Settings) -> ObjectStorage:
    if settings.cloudinary_configured:
        from rentals.utils.cloudinary_storage import CloudinaryStorage

        logger.info("Using Cloudinary media storage folder=%s", settings.cloudinary_folder)
        return CloudinaryStorage(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            folder=settings.cloudinary_folder,
        )

    from rentals.utils.local_storage import LocalDiskStorage

    logger.info("Cloudinary not configured; storing media under %s", settings.uploads_dir)
    return LocalDiskStorage(root=settings.uploads_dir, secret=settings.jwt_secret, base_url=settings.public_base_url)
