from __future__ import annotations

import logging
import mimetypes
import os
import sys

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response
from starlette.middleware.trustedhost import TrustedHostMiddleware

from rentals.config import Settings, enforce_secure_secrets, load_settings
from rentals.context import AppContext, build_context
from rentals.errors import RentalsError
from rentals.models import Base
from rentals.routes import auth, chats, properties, upload
from rentals.security import verify_media_token
from rentals.storage import ObjectStorage
from rentals.utils.local_storage import LocalDiskStorage


logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    root = logging.getLogger()
    if not any(getattr(h, "_rentals", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        handler._rentals = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(getattr(logging, level, logging.INFO))


def _validation_fields(exc: RequestValidationError) -> list[str]:
    fields: list[str] = []
    for err in exc.errors():
        loc = [str(x) for x in (err.get("loc") or ()) if x not in {"body", "query", "path", "header"}]
        name = loc[0] if loc else "body"
        if name not in fields:
            fields.append(name)
    return fields


def _register_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(RentalsError)
    async def rentals_error_handler(request: Request, exc: RentalsError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.code)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        fields = _validation_fields(exc)
        logger.warning("Validation failed for %s %s fields=%s", request.method, request.url.path, fields)
        issues = [{"loc": [str(x) for x in e.get("loc", ())], "msg": str(e.get("msg", ""))} for e in exc.errors()]
        return JSONResponse(
            status_code=400,
            content={"error": "validation_failed", "message": "Validation failed", "details": {"fields": fields, "issues": issues}},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        content = {"error": "internal_error", "message": "Internal server error"}
        if settings.app_env == "local":
            content["details"] = {"exception": exc.__class__.__name__}
        return JSONResponse(status_code=500, content=content)


def create_app(settings: Settings | None = None, *, storage: ObjectStorage | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    # Production hardening: ensure we don't run with dangerous defaults.
    enforce_secure_secrets(settings)

    ctx: AppContext = build_context(settings, storage=storage)
    if ctx.engine.dialect.name == "sqlite":
        # Local dev / tests; real databases are migrated with Alembic.
        Base.metadata.create_all(ctx.engine)

    app = FastAPI(title="Rentals API")
    app.state.ctx = ctx

    @app.middleware("http")
    async def _security_headers(request, call_next):
        resp = await call_next(request)
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        resp.headers.setdefault("Referrer-Policy", "no-referrer")
        return resp

    # Optional host protection (recommend configuring ALLOWED_HOSTS in prod).
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app, settings)

    app.include_router(auth.router)
    app.include_router(properties.router)
    app.include_router(chats.router)
    app.include_router(upload.router)

    @app.get("/health")
    def health():
        return {"ok": True, "env": settings.app_env}

    @app.get("/uploads/{key:path}", include_in_schema=False)
    def serve_upload(key: str, token: str = Query(default="")):
        """
        Serve locally-stored media to holders of a signed URL.

        Only active with LocalDiskStorage; Cloudinary URLs point at Cloudinary.
        """
        store = ctx.storage
        if not isinstance(store, LocalDiskStorage):
            return Response(status_code=404)
        if not token or not verify_media_token(token, secret=settings.jwt_secret, key=key):
            return JSONResponse(status_code=403, content={"error": "forbidden", "message": "Invalid or expired media link"})
        try:
            path = store.path_for(key)
        except ValueError:
            return Response(status_code=404)
        if not os.path.exists(path):
            return Response(status_code=404)
        media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        return FileResponse(path, media_type=media_type)

    logger.info("Application ready env=%s db=%s", settings.app_env, ctx.engine.dialect.name)
    return app
