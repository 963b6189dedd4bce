from __future__ import annotations

import datetime as dt

import bcrypt
import jwt


_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    # bcrypt stores algorithm + cost + salt in the resulting hash string.
    password_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(
            password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        # Invalid hash format.
        return False


def create_access_token(*, secret: str, user_id: int, email: str, ttl_minutes: int) -> str:
    now = dt.datetime.now(dt.timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int((now + dt.timedelta(minutes=ttl_minutes)).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def decode_access_token(token: str, *, secret: str) -> dict:
    """Raises `jwt.PyJWTError` for malformed, tampered or expired tokens."""
    return jwt.decode(token, secret, algorithms=[_ALGORITHM], options={"require": ["sub", "exp"]})


def create_media_token(*, secret: str, key: str, expires_at: dt.datetime) -> str:
    # `aud` keeps media tokens from ever being accepted as access tokens.
    payload = {"key": key, "aud": "media", "exp": int(expires_at.timestamp())}
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def verify_media_token(token: str, *, secret: str, key: str) -> bool:
    try:
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM], audience="media")
    except jwt.PyJWTError:
        return False
    return payload.get("key") == key
