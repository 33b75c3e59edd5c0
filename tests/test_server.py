import asyncio
import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from chatapp.server.auth import TOKEN_STORE
from chatapp.server.database import Base, engine
from chatapp.server.hub import ChangeHub
from chatapp.server.main import app
from chatapp.shared.schemas import MessageRecord


@pytest.fixture
def client():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    TOKEN_STORE.clear()
    with TestClient(app) as test_client:
        yield test_client


def register(client, email, name="Ada", password="secret-pass"):
    resp = client.post(
        "/auth/register",
        json={"name": name, "last_name": "Lovelace", "email": email, "password": password, "image": "aW1n"},
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    return body["user"]["id"], {"Authorization": f"Bearer {body['token']}"}


def send(client, headers, receiver_id, body, sent_at):
    resp = client.post(
        "/chat", json={"receiver_id": receiver_id, "body": body, "sent_at": sent_at.isoformat()}, headers=headers
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def read_events(text):
    events = []
    for block in text.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines() if not line.startswith(":"))
        events.append((lines["event"], json.loads(lines["data"])))
    return events


def test_register_and_login(client):
    user_id, _ = register(client, "ada@example.com")

    resp = client.post("/auth/login", json={"email": "ADA@example.com", "password": "secret-pass"})

    assert resp.status_code == 200
    assert resp.json()["user"]["id"] == user_id
    assert resp.json()["user"]["push_token"] is None


def test_register_rejects_duplicate_and_invalid_email(client):
    register(client, "ada@example.com")

    duplicate = client.post(
        "/auth/register",
        json={"name": "A", "last_name": "B", "email": "ada@example.com", "password": "x"},
    )
    invalid = client.post("/auth/register", json={"name": "A", "last_name": "B", "email": "nope", "password": "x"})

    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "Email already registered"
    assert invalid.status_code == 400


def test_login_with_wrong_password_fails(client):
    register(client, "ada@example.com")

    resp = client.post("/auth/login", json={"email": "ada@example.com", "password": "wrong"})

    assert resp.status_code == 401


def test_users_require_token(client):
    assert client.get("/users").status_code == 401
    assert client.get("/users", headers={"Authorization": "Bearer bogus"}).status_code == 401


def test_list_users_and_push_token_lifecycle(client):
    ada_id, ada = register(client, "ada@example.com")
    register(client, "bob@example.com", name="Bob")

    assert client.put("/users/me/push_token", json={"token": "device-1"}, headers=ada).status_code == 200
    users = {u["id"]: u for u in client.get("/users", headers=ada).json()}
    assert users[ada_id]["push_token"] == "device-1"
    assert users[ada_id]["image"] == "aW1n"
    assert "password_hash" not in users[ada_id]

    assert client.delete("/users/me/push_token", headers=ada).status_code == 200
    users = {u["id"]: u for u in client.get("/users", headers=ada).json()}
    assert users[ada_id]["push_token"] is None


def test_insert_and_list_one_direction(client):
    ada_id, ada = register(client, "ada@example.com")
    bob_id, bob = register(client, "bob@example.com", name="Bob")
    sent_at = datetime(2024, 3, 5, 10, 2, 30, 123000, tzinfo=timezone.utc)

    stored = send(client, ada, bob_id, "hello bob", sent_at)
    send(client, bob, ada_id, "hello ada", sent_at)

    assert stored["sender_id"] == ada_id
    assert MessageRecord.model_validate(stored).sent_at == sent_at
    listed = client.get("/chat", params={"sender_id": ada_id, "receiver_id": bob_id}, headers=bob).json()
    assert [m["body"] for m in listed] == ["hello bob"]


def test_insert_to_unknown_user_is_404(client):
    _, ada = register(client, "ada@example.com")

    resp = client.post(
        "/chat", json={"receiver_id": 999, "body": "x", "sent_at": "2024-03-05T10:00:00+00:00"}, headers=ada
    )

    assert resp.status_code == 404


def test_message_to_yourself_is_400(client):
    ada_id, ada = register(client, "ada@example.com")

    resp = client.post(
        "/chat", json={"receiver_id": ada_id, "body": "x", "sent_at": "2024-03-05T10:00:00+00:00"}, headers=ada
    )

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Cannot send a message to yourself"


def test_outsiders_cannot_read_or_watch(client):
    ada_id, _ = register(client, "ada@example.com")
    bob_id, _ = register(client, "bob@example.com", name="Bob")
    _, eve = register(client, "eve@example.com", name="Eve")
    params = {"sender_id": ada_id, "receiver_id": bob_id}

    assert client.get("/chat", params=params, headers=eve).status_code == 403
    assert client.get("/chat/watch", params={**params, "follow": False}, headers=eve).status_code == 403


def test_watch_snapshot_contains_matching_records_after_cursor(client):
    ada_id, ada = register(client, "ada@example.com")
    bob_id, bob = register(client, "bob@example.com", name="Bob")
    first = send(client, ada, bob_id, "one", datetime(2024, 3, 5, 10, 1, tzinfo=timezone.utc))
    send(client, bob, ada_id, "other direction", datetime(2024, 3, 5, 10, 2, tzinfo=timezone.utc))
    send(client, ada, bob_id, "two", datetime(2024, 3, 5, 10, 3, tzinfo=timezone.utc))

    resp = client.get(
        "/chat/watch", params={"sender_id": ada_id, "receiver_id": bob_id, "follow": False}, headers=bob
    )
    resumed = client.get(
        "/chat/watch",
        params={"sender_id": ada_id, "receiver_id": bob_id, "after": first["id"], "follow": False},
        headers=bob,
    )

    assert resp.headers["content-type"].startswith("text/event-stream")
    [(event, payload)] = read_events(resp.text)
    assert event == "changes"
    assert [c["type"] for c in payload["changes"]] == ["added", "added"]
    assert [c["message"]["body"] for c in payload["changes"]] == ["one", "two"]
    [(_, resumed_payload)] = read_events(resumed.text)
    assert [c["message"]["body"] for c in resumed_payload["changes"]] == ["two"]


def test_watch_snapshot_is_sent_even_when_empty(client):
    ada_id, ada = register(client, "ada@example.com")
    bob_id, _ = register(client, "bob@example.com", name="Bob")

    resp = client.get("/chat/watch", params={"sender_id": bob_id, "receiver_id": ada_id, "follow": False}, headers=ada)

    assert read_events(resp.text) == [("changes", {"changes": []})]


def test_hub_wakes_only_matching_watchers():
    hub = ChangeHub()

    async def scenario():
        matching = hub.subscribe(1, 2)
        reverse = hub.subscribe(2, 1)
        woken = hub.publish(1, 2)
        hub.unsubscribe(1, 2, matching)
        return woken, matching.is_set(), reverse.is_set(), hub.watcher_count(1, 2)

    assert asyncio.run(scenario()) == (1, True, False, 0)
