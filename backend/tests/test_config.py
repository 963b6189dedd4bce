import pytest

from rentals import config
from rentals.config import MIB


def test_video_ceiling_is_clamped(monkeypatch):
    monkeypatch.setenv("MAX_UPLOAD_VIDEO_BYTES", str(500 * MIB))
    assert config.max_upload_video_bytes() == 200 * MIB
    monkeypatch.setenv("MAX_UPLOAD_VIDEO_BYTES", "10")
    assert config.max_upload_video_bytes() == 50 * MIB
    monkeypatch.delenv("MAX_UPLOAD_VIDEO_BYTES")
    assert config.max_upload_video_bytes() == 50 * MIB


def test_postgres_scheme_is_rewritten(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db/rentals")
    assert config.database_url() == "postgresql://u:p@db/rentals"


def test_production_refuses_default_secret(monkeypatch, settings):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    prod = config.Settings(**{**settings.__dict__, "app_env": "prod", "jwt_secret": config.jwt_secret()})
    with pytest.raises(RuntimeError):
        config.enforce_secure_secrets(prod)
