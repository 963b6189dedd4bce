from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated, Iterator

import jwt
from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from rentals.context import AppContext
from rentals.db import session_scope
from rentals.errors import Unauthenticated
from rentals.models import User
from rentals.security import decode_access_token


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    id: int
    email: str


def get_ctx(request: Request) -> AppContext:
    return request.app.state.ctx


def get_db(ctx: Annotated[AppContext, Depends(get_ctx)]) -> Iterator[Session]:
    with session_scope(ctx.session_factory) as db:
        yield db


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    if not authorization.lower().startswith("bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None


def _resolve_principal(ctx: AppContext, db: Session, token: str) -> Principal | None:
    try:
        payload = decode_access_token(token, secret=ctx.settings.jwt_secret)
        user_id = int(payload.get("sub") or 0)
    except (jwt.PyJWTError, ValueError):
        return None
    user = db.get(User, user_id) if user_id else None
    if not user:
        return None
    return Principal(id=user.id, email=user.email)


def get_current_user(
    ctx: Annotated[AppContext, Depends(get_ctx)],
    db: Annotated[Session, Depends(get_db)],
    authorization: Annotated[str | None, Header()] = None,
) -> Principal:
    token = _bearer_token(authorization)
    if not token:
        raise Unauthenticated("Not authenticated")
    principal = _resolve_principal(ctx, db, token)
    if principal is None:
        logger.info("Rejected bearer credential")
        raise Unauthenticated("Invalid or expired session")
    return principal


def get_optional_user(
    ctx: Annotated[AppContext, Depends(get_ctx)],
    db: Annotated[Session, Depends(get_db)],
    authorization: Annotated[str | None, Header()] = None,
) -> Principal | None:
    token = _bearer_token(authorization)
    if not token:
        return None
    return _resolve_principal(ctx, db, token)


CurrentUser = Annotated[Principal, Depends(get_current_user)]
DbSession = Annotated[Session, Depends(get_db)]
Ctx = Annotated[AppContext, Depends(get_ctx)]
