from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from google.auth import exceptions as google_auth_exceptions
from google.auth.transport import requests as google_auth_requests
from google.oauth2 import id_token as google_id_token
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from rentals.context import AppContext
from rentals.deps import Ctx, CurrentUser, DbSession, Principal, get_optional_user
from rentals.errors import Conflict, RentalsError, Unauthenticated, ValidationFailed
from rentals.models import User
from rentals.schemas import GoogleLoginIn, LoginIn, RegisterIn
from rentals.security import create_access_token, hash_password, verify_password


logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


def user_out(u: User) -> dict[str, Any]:
    return {"id": u.id, "email": u.email, "name": u.name or "", "image": u.image or ""}


def _session_out(ctx: AppContext, u: User) -> dict[str, Any]:
    token = create_access_token(
        secret=ctx.settings.jwt_secret,
        user_id=u.id,
        email=u.email,
        ttl_minutes=ctx.settings.access_token_ttl_minutes,
    )
    return {"accessToken": token, "user": user_out(u)}


@router.post("/api/auth/register")
def register(data: RegisterIn, ctx: Ctx, db: DbSession) -> dict[str, Any]:
    email = data.email.strip().lower()
    if not email or "@" not in email:
        raise ValidationFailed(["email"], "Invalid email")

    exists = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if exists:
        raise Conflict("User already exists")

    user = User(email=email, name=(data.name or "").strip(), password_hash=hash_password(data.password))
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        # Concurrent double-submit with the same email.
        db.rollback()
        raise Conflict("User already exists")
    logger.info("User registered user_id=%s", user.id)
    return _session_out(ctx, user)


@router.post("/api/auth/login")
def login(data: LoginIn, ctx: Ctx, db: DbSession) -> dict[str, Any]:
    email = data.email.strip().lower()
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not verify_password(data.password, user.password_hash):
        raise Unauthenticated("Invalid credentials")
    return _session_out(ctx, user)


@router.post("/api/auth/google")
def auth_google(data: GoogleLoginIn, ctx: Ctx, db: DbSession) -> dict[str, Any]:
    """
    Google Sign-In:
    - Verify Google ID token signature/issuer
    - Enforce audience when GOOGLE_OAUTH_CLIENT_ID(S) is configured
    - Create (or reuse) a user by verified email
    - Issue a standard JWT access token
    """
    allowed_aud = ctx.settings.google_client_ids
    if ctx.settings.is_production and not allowed_aud:
        raise RentalsError("Google Sign-In is not configured (missing GOOGLE_OAUTH_CLIENT_ID)")

    try:
        info = google_id_token.verify_oauth2_token(data.id_token.strip(), google_auth_requests.Request())
    except (ValueError, google_auth_exceptions.GoogleAuthError):
        raise Unauthenticated("Invalid Google token")

    aud = str(info.get("aud") or "")
    if allowed_aud and aud not in set(allowed_aud):
        raise Unauthenticated("Google token audience mismatch")

    email = str(info.get("email") or "").strip().lower()
    if not email or "@" not in email:
        raise Unauthenticated("Google token missing email")
    if info.get("email_verified") is False:
        raise Unauthenticated("Google email is not verified")

    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user:
        user = User(
            email=email,
            name=str(info.get("name") or info.get("given_name") or "").strip(),
            image=str(info.get("picture") or "").strip(),
            password_hash=None,
        )
        db.add(user)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            raise Conflict("User already exists")
        logger.info("User created via Google sign-in user_id=%s", user.id)
    return _session_out(ctx, user)


@router.get("/api/auth-status")
def auth_status() -> dict[str, Any]:
    return {"status": "ok", "message": "Authentication system is running"}


@router.get("/api/session-status")
def session_status(me: Annotated[Principal | None, Depends(get_optional_user)]) -> dict[str, Any]:
    if me is None:
        return {"authenticated": False}
    return {"authenticated": True, "userId": me.id, "userEmail": me.email}


@router.get("/api/me")
def me_profile(me: CurrentUser, db: DbSession) -> dict[str, Any]:
    return user_out(db.get(User, me.id))
