from fastapi.testclient import TestClient

from rentals.routes import auth as auth_routes


def test_health(client: TestClient):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "env": "test"}


def test_auth_status(client: TestClient):
    assert client.get("/api/auth-status").json()["status"] == "ok"


def test_protected_route_requires_token(client: TestClient):
    resp = client.get("/api/my-listings")
    assert resp.status_code == 401
    assert resp.json()["error"] == "unauthenticated"


def test_invalid_token_is_rejected(client: TestClient):
    resp = client.get("/api/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_register_login_and_me(client: TestClient, register):
    user_id, _ = register("Alice@Example.com", password="hunter22", name="Alice")

    resp = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "hunter22"})
    assert resp.status_code == 200
    token = resp.json()["accessToken"]

    me = client.get("/api/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me == {"id": user_id, "email": "alice@example.com", "name": "Alice", "image": ""}


def test_duplicate_registration_conflicts(client: TestClient, register):
    register("dup@example.com")
    resp = client.post("/api/auth/register", json={"email": "dup@example.com", "password": "secret123"})
    assert resp.status_code == 409


def test_wrong_password(client: TestClient, register):
    register("bob@example.com", password="correct-horse")
    resp = client.post("/api/auth/login", json={"email": "bob@example.com", "password": "wrong-horse"})
    assert resp.status_code == 401


def test_session_status(client: TestClient, owner):
    owner_id, headers = owner
    assert client.get("/api/session-status").json() == {"authenticated": False}
    resp = client.get("/api/session-status", headers=headers).json()
    assert resp == {"authenticated": True, "userId": owner_id, "userEmail": "owner@example.com"}


def test_google_sign_in_creates_user(client: TestClient, mocker):
    verify = mocker.patch.object(
        auth_routes.google_id_token,
        "verify_oauth2_token",
        return_value={"email": "Gina@Example.com", "email_verified": True, "name": "Gina", "aud": "client-1"},
    )
    resp = client.post("/api/auth/google", json={"idToken": "google-token"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["user"]["email"] == "gina@example.com"
    assert verify.call_args.args[0] == "google-token"

    again = client.post("/api/auth/google", json={"idToken": "google-token"}).json()
    assert again["user"]["id"] == resp.json()["user"]["id"]


def test_google_sign_in_rejects_bad_token(client: TestClient, mocker):
    mocker.patch.object(auth_routes.google_id_token, "verify_oauth2_token", side_effect=ValueError("bad"))
    resp = client.post("/api/auth/google", json={"idToken": "junk"})
    assert resp.status_code == 401
