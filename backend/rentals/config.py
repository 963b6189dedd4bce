from __future__ import annotations

import os
from dataclasses import dataclass


MIB = 1024 * 1024


def _load_dotenv_if_present() -> None:
    """
    Load environment variables from a local `.env` file (dev convenience).

    Production deployments should set real environment variables instead.
    """
    from dotenv import load_dotenv

    # Do not override existing environment variables.
    load_dotenv(override=False)


def _int_env(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    try:
        return int(raw or default)
    except ValueError:
        return default


def database_url() -> str:
    url = os.environ.get("DATABASE_URL") or "sqlite:///./local.db"
    # Some managed providers still supply `postgres://...` which SQLAlchemy treats as invalid.
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def jwt_secret() -> str:
    return os.environ.get("JWT_SECRET") or "dev-secret-change-me"


def is_local_dev() -> bool:
    """
    We treat the app as "local dev" when DATABASE_URL is not set, because
    `database_url()` falls back to sqlite in that case.
    """
    return not (os.environ.get("DATABASE_URL") or "").strip()


def app_env() -> str:
    """
    Application environment marker:
    - local (default when running with sqlite fallback)
    - staging
    - prod
    """
    raw = (os.environ.get("APP_ENV") or "").strip().lower()
    if raw:
        return raw
    return "local" if is_local_dev() else "prod"


def allowed_hosts() -> list[str]:
    """
    Comma-separated list for TrustedHost middleware.
    Example: ALLOWED_HOSTS=api.example.com,example.com
    """
    raw = (os.environ.get("ALLOWED_HOSTS") or "").strip()
    if not raw:
        return ["*"]
    hosts = [h.strip() for h in raw.split(",") if h.strip()]
    return hosts or ["*"]


def cors_origins() -> list[str]:
    raw = (os.environ.get("CORS_ORIGINS") or "").strip()
    if raw:
        return [o.strip() for o in raw.split(",") if o.strip()]
    # Expo web / local dev servers.
    return [
        "http://localhost:8081",
        "http://127.0.0.1:8081",
        "http://localhost:19006",
        "http://localhost:3000",
    ]


def access_token_ttl_minutes() -> int:
    v = _int_env("ACCESS_TOKEN_TTL_MINUTES", 30 * 24 * 60)
    return max(5, v)


def uploads_dir() -> str:
    return os.environ.get("UPLOADS_DIR") or os.path.join(os.path.dirname(__file__), "..", "uploads")


def max_upload_image_bytes() -> int:
    return max(1, _int_env("MAX_UPLOAD_IMAGE_BYTES", 5 * MIB))


def max_upload_video_bytes() -> int:
    """
    Video ceiling depends on the deployment generation: 50 MiB on the
    original tier, up to 200 MiB on later ones. Values outside the range
    are clamped.
    """
    v = _int_env("MAX_UPLOAD_VIDEO_BYTES", 50 * MIB)
    return min(max(v, 50 * MIB), 200 * MIB)


def signed_url_ttl_seconds() -> int:
    v = _int_env("SIGNED_URL_TTL_SECONDS", 3600)
    # Reasonable bounds to avoid foot-guns.
    return min(max(v, 60), 7 * 24 * 3600)


def public_base_url() -> str:
    return (os.environ.get("PUBLIC_BASE_URL") or "").strip().rstrip("/")


def cloudinary_cloud_name() -> str:
    return (os.environ.get("CLOUDINARY_CLOUD_NAME") or "").strip()


def cloudinary_api_key() -> str:
    return (os.environ.get("CLOUDINARY_API_KEY") or "").strip()


def cloudinary_api_secret() -> str:
    return (os.environ.get("CLOUDINARY_API_SECRET") or "").strip()


def cloudinary_folder() -> str:
    return (os.environ.get("CLOUDINARY_FOLDER") or "rentals").strip().strip("/") or "rentals"


def google_oauth_client_ids() -> list[str]:
    """
    Allowed Google OAuth client IDs for verifying Google ID tokens.

    Set one of:
    - GOOGLE_OAUTH_CLIENT_IDS=comma,separated,client,ids
    - GOOGLE_OAUTH_CLIENT_ID=single-client-id
    """
    raw = (os.environ.get("GOOGLE_OAUTH_CLIENT_IDS") or os.environ.get("GOOGLE_OAUTH_CLIENT_ID") or "").strip()
    if not raw:
        return []
    return [x.strip() for x in raw.split(",") if x.strip()]


def log_level() -> str:
    return (os.environ.get("LOG_LEVEL") or "INFO").strip().upper() or "INFO"


@dataclass(frozen=True)
class Settings:
    database_url: str
    app_env: str
    jwt_secret: str
    access_token_ttl_minutes: int
    allowed_hosts: list[str]
    cors_origins: list[str]
    uploads_dir: str
    max_image_bytes: int
    max_video_bytes: int
    signed_url_ttl_seconds: int
    public_base_url: str
    cloudinary_cloud_name: str
    cloudinary_api_key: str
    cloudinary_api_secret: str
    cloudinary_folder: str
    google_client_ids: list[str]
    log_level: str

    @property
    def is_production(self) -> bool:
        return self.app_env in {"prod", "production"}

    @property
    def cloudinary_configured(self) -> bool:
        return bool(self.cloudinary_cloud_name and self.cloudinary_api_key and self.cloudinary_api_secret)


def enforce_secure_secrets(settings: Settings) -> None:
    """
    Fail-fast in production if dangerous defaults are still in use.
    """
    if settings.is_production and settings.jwt_secret == "dev-secret-change-me":
        raise RuntimeError("JWT_SECRET must be set in production (default dev secret detected)")


def load_settings() -> Settings:
    """Read the environment once; the result is handed to `create_app`."""
    _load_dotenv_if_present()
    return Settings(
        database_url=database_url(),
        app_env=app_env(),
        jwt_secret=jwt_secret(),
        access_token_ttl_minutes=access_token_ttl_minutes(),
        allowed_hosts=allowed_hosts(),
        cors_origins=cors_origins(),
        uploads_dir=uploads_dir(),
        max_image_bytes=max_upload_image_bytes(),
        max_video_bytes=max_upload_video_bytes(),
        signed_url_ttl_seconds=signed_url_ttl_seconds(),
        public_base_url=public_base_url(),
        cloudinary_cloud_name=cloudinary_cloud_name(),
        cloudinary_api_key=cloudinary_api_key(),
        cloudinary_api_secret=cloudinary_api_secret(),
        cloudinary_folder=cloudinary_folder(),
        google_client_ids=google_oauth_client_ids(),
        log_level=log_level(),
    )
