import os
import re

from fastapi.testclient import TestClient

from rentals.config import MIB


KEY_RE = re.compile(r"^property-images/(\d+)/(\d{13})-(.+)$")


def _uploaded_files(root):
    found = []
    for dirpath, _dirs, files in os.walk(root):
        found.extend(os.path.join(dirpath, f) for f in files)
    return found


def test_image_upload_returns_stable_key(client: TestClient, owner, png_bytes):
    owner_id, headers = owner
    resp = client.post(
        "/api/upload/property-image",
        files={"image": ("kitchen.png", png_bytes, "image/png")},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    m = KEY_RE.match(body["key"])
    assert m
    assert int(m.group(1)) == owner_id
    assert m.group(3) == "kitchen.png"
    assert body["filename"] == "kitchen.png"


def test_upload_requires_authentication(client: TestClient, png_bytes):
    resp = client.post("/api/upload/property-image", files={"image": ("a.png", png_bytes, "image/png")})
    assert resp.status_code == 401


def test_missing_file_is_reported(client: TestClient, owner):
    _, headers = owner
    resp = client.post("/api/upload/property-image", headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "no_file"


def test_non_image_is_rejected(client: TestClient, owner):
    _, headers = owner
    resp = client.post(
        "/api/upload/property-image",
        files={"image": ("notes.png", b"definitely not a png", "image/png")},
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_failed"


def test_oversize_image_is_rejected_before_storing(client: TestClient, owner, settings):
    _, headers = owner
    payload = b"\x89PNG" + b"0" * (5 * MIB)
    resp = client.post(
        "/api/upload/property-image",
        files={"image": ("huge.png", payload, "image/png")},
        headers=headers,
    )
    assert resp.status_code == 413
    body = resp.json()
    assert body["error"] == "file_too_large"
    assert body["details"]["maxBytes"] == 5 * MIB
    assert _uploaded_files(settings.uploads_dir) == []


def test_video_upload(client: TestClient, owner):
    owner_id, headers = owner
    resp = client.post(
        "/api/upload/virtual-tour-video",
        files={"video": ("walkthrough.mp4", b"\x00\x00\x00\x18ftypmp42", "video/mp4")},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["key"].startswith(f"virtual-tour-videos/{owner_id}/")


def test_filename_is_sanitized(client: TestClient, owner, png_bytes):
    _, headers = owner
    resp = client.post(
        "/api/upload/property-image",
        files={"image": ("../../etc/50%off?.png", png_bytes, "image/png")},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    key = resp.json()["key"]
    assert key.endswith("-50_off_.png")
    assert ".." not in key


def test_signed_url_serves_file_and_rejects_bad_token(client: TestClient, owner, create_property, png_bytes):
    _, headers = owner
    key = client.post(
        "/api/upload/property-image",
        files={"image": ("view from balcony.png", png_bytes, "image/png")},
        headers=headers,
    ).json()["key"]
    p = create_property(headers, photos=[key])

    url = p["photos"][0]
    resp = client.get(url)
    assert resp.status_code == 200
    assert resp.content == png_bytes

    base, _token = url.split("?token=", 1)
    assert client.get(f"{base}?token=forged").status_code == 403
    assert client.get(base).status_code == 403


def test_extension_is_lowercased_in_key(client: TestClient, owner, png_bytes):
    _, headers = owner
    resp = client.post(
        "/api/upload/property-image",
        files={"image": ("IMG_0001.PNG", png_bytes, "image/png")},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["key"].endswith("-IMG_0001.png")
    assert resp.json()["filename"] == "IMG_0001.PNG"
