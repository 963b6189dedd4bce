from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from rentals.config import Settings
from rentals.db import make_engine, make_session_factory
from rentals.media import MediaResolver
from rentals.storage import ObjectStorage, build_storage
from rentals.uploads import UploadGate


@dataclass
class AppContext:
    """Everything a request handler needs, built once at startup."""

    settings: Settings
    engine: Engine
    session_factory: sessionmaker[Session]
    storage: ObjectStorage
    resolver: MediaResolver
    upload_gate: UploadGate


def build_context(settings: Settings, *, storage: ObjectStorage | None = None) -> AppContext:
    engine = make_engine(settings.database_url)
    storage = storage or build_storage(settings)
    return AppContext(
        settings=settings,
        engine=engine,
        session_factory=make_session_factory(engine),
        storage=storage,
        resolver=MediaResolver(storage, ttl_seconds=settings.signed_url_ttl_seconds),
        upload_gate=UploadGate(
            storage,
            max_image_bytes=settings.max_image_bytes,
            max_video_bytes=settings.max_video_bytes,
        ),
    )
