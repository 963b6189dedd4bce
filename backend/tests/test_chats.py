from fastapi.testclient import TestClient
from sqlalchemy import func, select

from rentals.chats import ChatRepository
from rentals.db import session_scope
from rentals.models import Chat


def _start(client: TestClient, property_id: int, headers):
    resp = client.get(f"/api/chats/{property_id}/start", headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_start_chat_is_idempotent(client: TestClient, owner, inquirer, create_property):
    owner_id, owner_headers = owner
    inquirer_id, inquirer_headers = inquirer
    p = create_property(owner_headers)

    first = _start(client, p["id"], inquirer_headers)
    second = _start(client, p["id"], inquirer_headers)
    assert first["chatId"] == second["chatId"]
    assert first["renterId"] == owner_id
    assert first["renteeId"] == inquirer_id
    assert first["propertyId"] == p["id"]


def test_cannot_chat_with_own_property(client: TestClient, owner, create_property):
    _, headers = owner
    p = create_property(headers)
    resp = client.get(f"/api/chats/{p['id']}/start", headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "bad_request"


def test_start_chat_for_missing_property(client: TestClient, inquirer):
    _, headers = inquirer
    resp = client.get("/api/chats/4242/start", headers=headers)
    assert resp.status_code == 404


def test_non_participant_is_forbidden(client: TestClient, owner, inquirer, register, create_property):
    _, owner_headers = owner
    _, inquirer_headers = inquirer
    _, outsider_headers = register("outsider@example.com")
    p = create_property(owner_headers)
    chat = _start(client, p["id"], inquirer_headers)

    resp = client.get(f"/api/chats/{chat['chatId']}/messages", headers=outsider_headers)
    assert resp.status_code == 403
    resp = client.post(f"/api/chats/{chat['chatId']}/messages", json={"content": "hi"}, headers=outsider_headers)
    assert resp.status_code == 403


def test_messages_update_preview_and_keep_order(client: TestClient, owner, inquirer, create_property):
    _, owner_headers = owner
    inquirer_id, inquirer_headers = inquirer
    p = create_property(owner_headers)
    chat_id = _start(client, p["id"], inquirer_headers)["chatId"]

    sent = []
    for headers, text in [
        (inquirer_headers, "Is it still available?"),
        (owner_headers, "Yes, viewing on Saturday?"),
        (inquirer_headers, "Saturday works."),
    ]:
        resp = client.post(f"/api/chats/{chat_id}/messages", json={"content": text}, headers=headers)
        assert resp.status_code == 200, resp.text
        sent.append(resp.json())

    assert sent[0]["senderId"] == inquirer_id
    stamps = [m["createdAt"] for m in sent]
    assert stamps == sorted(stamps)

    msgs = client.get(f"/api/chats/{chat_id}/messages", headers=owner_headers).json()
    assert [m["content"] for m in msgs] == ["Is it still available?", "Yes, viewing on Saturday?", "Saturday works."]

    chats = client.get("/api/chats", headers=owner_headers).json()
    assert len(chats) == 1
    assert chats[0]["lastMessage"] == "Saturday works."
    assert chats[0]["lastMessageAt"] is not None
    assert chats[0]["property"]["id"] == p["id"]


def test_blank_message_is_rejected(client: TestClient, owner, inquirer, create_property):
    _, owner_headers = owner
    _, inquirer_headers = inquirer
    p = create_property(owner_headers)
    chat_id = _start(client, p["id"], inquirer_headers)["chatId"]

    resp = client.post(f"/api/chats/{chat_id}/messages", json={"content": "   "}, headers=inquirer_headers)
    assert resp.status_code == 400
    assert resp.json()["details"]["fields"] == ["content"]


def test_chat_list_orders_by_latest_activity(client: TestClient, owner, inquirer, create_property):
    _, owner_headers = owner
    _, inquirer_headers = inquirer
    older = create_property(owner_headers, title="Older")
    newer = create_property(owner_headers, title="Newer")
    older_chat = _start(client, older["id"], inquirer_headers)["chatId"]
    _start(client, newer["id"], inquirer_headers)

    client.post(f"/api/chats/{older_chat}/messages", json={"content": "bump"}, headers=inquirer_headers)
    chats = client.get("/api/chats", headers=inquirer_headers).json()
    assert [c["id"] for c in chats][0] == older_chat


def test_concurrent_first_contact_reuses_existing_chat(client: TestClient, app, owner, inquirer, create_property, mocker):
    _, owner_headers = owner
    _, inquirer_headers = inquirer
    p = create_property(owner_headers)
    existing = _start(client, p["id"], inquirer_headers)["chatId"]

    # The lookup misses as if the other request had not committed yet, so the
    # insert hits the unique constraint and the stored row must be re-read.
    real_find = ChatRepository._find
    lookups = []

    def racing_find(self, *args):
        lookups.append(args)
        return None if len(lookups) == 1 else real_find(self, *args)

    mocker.patch.object(ChatRepository, "_find", autospec=True, side_effect=racing_find)

    again = _start(client, p["id"], inquirer_headers)
    assert again["chatId"] == existing
    assert len(lookups) == 2

    with session_scope(app.state.ctx.session_factory) as db:
        assert db.execute(select(func.count()).select_from(Chat)).scalar_one() == 1
