import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from rentals.config import MIB, Settings
from rentals.main import create_app


@pytest.fixture
def settings(tmp_path):
    """Local settings backed by a throwaway SQLite file and uploads dir."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        app_env="test",
        jwt_secret="test-secret",
        access_token_ttl_minutes=60,
        allowed_hosts=["*"],
        cors_origins=[],
        uploads_dir=str(tmp_path / "uploads"),
        max_image_bytes=5 * MIB,
        max_video_bytes=50 * MIB,
        signed_url_ttl_seconds=3600,
        public_base_url="",
        cloudinary_cloud_name="",
        cloudinary_api_key="",
        cloudinary_api_secret="",
        cloudinary_folder="rentals",
        google_client_ids=[],
        log_level="INFO",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """Create a test client for the FastAPI application."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def register(client):
    """Register a user and return (user_id, auth headers)."""

    def _register(email: str, password: str = "secret123", name: str = ""):
        resp = client.post("/api/auth/register", json={"email": email, "password": password, "name": name})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        return data["user"]["id"], {"Authorization": f"Bearer {data['accessToken']}"}

    return _register


@pytest.fixture
def owner(register):
    return register("owner@example.com", name="Owner")


@pytest.fixture
def inquirer(register):
    return register("inquirer@example.com", name="Inquirer")


@pytest.fixture
def png_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), (200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def sample_property_data():
    """Sample property data for testing."""
    return {
        "title": "Bright 2BR near MTR",
        "description": "Sea view, newly renovated",
        "price": "15000",
        "size": 600,
        "district": "Sha Tin",
        "equipment": "Air conditioner,Washing machine",
        "photos": [],
    }


@pytest.fixture
def create_property(client, sample_property_data):
    def _create(headers, **overrides):
        payload = {**sample_property_data, **overrides}
        resp = client.post("/api/properties", json=payload, headers=headers)
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _create
