from __future__ import annotations

import datetime as dt
import os
from urllib.parse import quote

from rentals.security import create_media_token


class LocalDiskStorage:
    """
    Stores media under a directory on disk (development / single-node deployments).

    Retrieval URLs point at the app's `/uploads/{key}` route and carry a short-lived
    token bound to the key; see `rentals.main.serve_upload`.
    """

    def __init__(self, *, root: str, secret: str, base_url: str = "") -> None:
        self.root = os.path.abspath(root)
        self.secret = secret
        self.base_url = base_url.rstrip("/")

    def path_for(self, key: str) -> str:
        parts = [p for p in key.replace("\\", "/").split("/") if p]
        if not parts or any(p in {".", ".."} for p in parts):
            raise ValueError(f"Invalid storage key: {key!r}")
        return os.path.join(self.root, *parts)

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        path = self.path_for(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as out:
            out.write(data)
        return key

    def signed_url(self, key: str, expires_in: int) -> str:
        expires_at = dt.datetime.now(dt.timezone.utc) + dt.timedelta(seconds=int(expires_in))
        token = create_media_token(secret=self.secret, key=key, expires_at=expires_at)
        return f"{self.base_url}/uploads/{quote(key, safe='/')}?token={token}"

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        if os.path.exists(path):
            os.remove(path)
