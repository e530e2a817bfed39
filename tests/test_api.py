import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from peerflex.database.connection import mongo_db_dependency
from peerflex.main import app
from peerflex.store.preferences import PreferencesStore
from peerflex.utils.change_feed import ChangeFeed
from peerflex.utils.dependencies import change_feed_dependency
from peerflex.utils.realtime_bus import LocalBus


PASSWORD = "Secret123"


@pytest.fixture
def client(db, tmp_path):
    feed = ChangeFeed(LocalBus())
    app.dependency_overrides[mongo_db_dependency] = lambda: db
    app.dependency_overrides[change_feed_dependency] = lambda: feed
    app.state.preferences = PreferencesStore(tmp_path / "prefs.json")
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, email: str, full_name: str) -> dict:
    res = client.post("/auth/register", json={"email": email, "password": PASSWORD, "full_name": full_name})
    assert res.status_code == 201, res.text
    token = client.post("/auth/login", json={"email": email, "password": PASSWORD}).json()["access_token"]
    return {"id": res.json()["id"], "token": token, "headers": {"Authorization": f"Bearer {token}"}}


def test_register_and_login(client):
    alice = register(client, "alice@example.com", "Alice Smith")

    me = client.get("/auth/me", headers=alice["headers"])
    assert me.status_code == 200
    assert me.json()["profile"]["full_name"] == "Alice Smith"

    dup = client.post("/auth/register", json={"email": "alice@example.com", "password": PASSWORD, "full_name": "A"})
    assert dup.status_code == 422
    assert dup.json()["detail"] == "Email already registered"

    bad = client.post("/auth/login", json={"email": "alice@example.com", "password": "Wrong1234"})
    assert bad.status_code == 401
    assert bad.json()["detail"] == "Invalid credentials"


def test_password_policy(client):
    res = client.post("/auth/register", json={"email": "weak@example.com", "password": "alllowercase1", "full_name": "W"})
    assert res.status_code == 422


def test_scoped_routes_require_a_session(client):
    res = client.get("/conversations")
    assert res.status_code == 401
    assert res.json()["detail"] == "Not authenticated"

    res = client.get("/conversations", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


def test_chat_over_rest(client):
    alice = register(client, "alice@example.com", "Alice Smith")
    bob = register(client, "bob@example.com", "Bob Jones")

    room = client.post(f"/conversations/direct/{bob['id']}", headers=alice["headers"]).json()
    sent = client.post(f"/messages/{room['id']}", json={"content": "hello bob"}, headers=alice["headers"])
    assert sent.status_code == 201

    [conversation] = client.get("/conversations", headers=bob["headers"]).json()["items"]
    assert conversation["name"] == "Alice Smith"
    assert conversation["unread"] == 1

    client.post(f"/messages/{room['id']}/read", headers=bob["headers"])
    [conversation] = client.get("/conversations", headers=bob["headers"]).json()["items"]
    assert conversation["unread"] == 0

    blank = client.post(f"/messages/{room['id']}", json={"content": "  "}, headers=alice["headers"])
    assert blank.status_code == 422


def test_connections_over_rest(client):
    alice = register(client, "alice@example.com", "Alice Smith")
    bob = register(client, "bob@example.com", "Bob Jones")

    request = client.post("/connections/requests", json={"to_user_id": bob["id"]}, headers=alice["headers"]).json()
    again = client.post("/connections/requests", json={"to_user_id": bob["id"]}, headers=alice["headers"])
    assert again.status_code == 409

    status = client.get(f"/connections/status/{alice['id']}", headers=bob["headers"]).json()
    assert status["state"] == "pending"
    assert status["request_from_me"] is False

    assert client.post(f"/connections/requests/{request['id']}/accept", headers=bob["headers"]).status_code == 200
    status = client.get(f"/connections/status/{bob['id']}", headers=alice["headers"]).json()
    assert status["state"] == "connected"

    notifications = client.get("/notifications", headers=bob["headers"]).json()["items"]
    assert [n["type"] for n in notifications] == ["friend_request"]


def test_events_over_rest(client):
    alice = register(client, "alice@example.com", "Alice Smith")
    bob = register(client, "bob@example.com", "Bob Jones")
    body = {"title": "Hack night", "start_time": "2030-03-01T18:00:00Z", "max_attendees": 1}

    assert client.post("/events", json=body).status_code == 401
    event = client.post("/events", json=body, headers=alice["headers"]).json()

    assert client.post(f"/events/{event['id']}/register", headers=bob["headers"]).status_code == 201
    assert client.post(f"/events/{event['id']}/register", headers=bob["headers"]).status_code == 409
    full = client.post(f"/events/{event['id']}/register", headers=alice["headers"])
    assert full.status_code == 409
    assert full.json()["detail"] == "Event is at full capacity"

    listed = client.get("/events").json()["items"]
    assert [e["registered_count"] for e in listed] == [1]
    assert client.get("/events/64b7f0c2a1b2c3d4e5f60718").status_code == 404

    patch = client.patch(f"/events/{event['id']}", json={"title": "Mine"}, headers=bob["headers"])
    assert patch.status_code == 403


def test_preferences(client):
    assert client.get("/preferences").json() == {"theme": "light", "language": "en", "is_menu_open": False}

    res = client.patch("/preferences", json={"theme": "dark", "language": "hi"})
    assert res.json()["theme"] == "dark"
    assert client.patch("/preferences", json={"language": "fr"}).status_code == 422


def test_chat_socket_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/chat?token=nope") as ws:
            ws.receive_json()


def receive_until(ws, predicate, limit: int = 30) -> dict:
    for _ in range(limit):
        message = ws.receive_json()
        if message["type"] == "state" and predicate(message):
            return message
    raise AssertionError("expected state never arrived")


def test_chat_socket_flow(client):
    alice = register(client, "alice@example.com", "Alice Smith")
    bob = register(client, "bob@example.com", "Bob Jones")
    room = client.post(f"/conversations/direct/{bob['id']}", headers=alice["headers"]).json()
    client.post(f"/messages/{room['id']}", json={"content": "hi alice"}, headers=bob["headers"])

    with client.websocket_connect(f"/ws/chat?token={alice['token']}") as ws:
        state = receive_until(ws, lambda s: not s["loading"])
        assert [c["id"] for c in state["conversations"]] == [room["id"]]
        assert state["conversations"][0]["unread"] == 1

        ws.send_json({"type": "select", "conversation_id": room["id"]})
        state = receive_until(ws, lambda s: len(s["messages"]) == 1)
        assert state["current_conversation"]["id"] == room["id"]

        ws.send_json({"type": "send", "room_id": room["id"], "content": "hi bob"})
        state = receive_until(ws, lambda s: len(s["messages"]) == 2)
        assert [m["content"] for m in state["messages"]] == ["hi alice", "hi bob"]

        ws.send_json({"type": "send", "room_id": room["id"], "content": "   "})
        error = ws.receive_json()
        while error["type"] != "error":
            error = ws.receive_json()
        assert error["detail"] == "Message content cannot be empty"

        ws.send_json({"type": "dance"})
        error = ws.receive_json()
        while error["type"] != "error":
            error = ws.receive_json()
        assert error["detail"] == "Unknown message type: dance"


def test_connection_transitions_follow_the_state_machine(client):
    alice = register(client, "alice@example.com", "Alice Smith")
    bob = register(client, "bob@example.com", "Bob Jones")

    sent = client.post(f"/connections/status/{bob['id']}/request", json={"message": "hi"}, headers=alice["headers"])
    assert sent.status_code == 200
    assert sent.json()["state"] == "pending"
    assert sent.json()["request_from_me"] is True

    own = client.post(f"/connections/status/{bob['id']}/accept", headers=alice["headers"])
    assert own.status_code == 409

    accepted = client.post(f"/connections/status/{alice['id']}/accept", headers=bob["headers"])
    assert accepted.json()["state"] == "connected"

    assert client.post(f"/connections/status/{alice['id']}/dance", headers=bob["headers"]).status_code == 404
    removed = client.post(f"/connections/status/{alice['id']}/remove", headers=bob["headers"])
    assert removed.json()["state"] == "not_connected"


def test_live_sockets_reject_bad_token(client):
    for path in ("/ws/notifications", "/ws/events", "/ws/connections"):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"{path}?token=nope") as ws:
                ws.receive_json()


def test_notification_socket_flow(client):
    alice = register(client, "alice@example.com", "Alice Smith")
    bob = register(client, "bob@example.com", "Bob Jones")
    carol = register(client, "carol@example.com", "Carol White")
    client.post("/connections/requests", json={"to_user_id": alice["id"]}, headers=bob["headers"])

    with client.websocket_connect(f"/ws/notifications?token={alice['token']}") as ws:
        state = receive_until(ws, lambda s: not s["loading"])
        assert state["unread_count"] == 1
        [notification] = state["notifications"]

        ws.send_json({"type": "read", "notification_id": notification["id"]})
        state = receive_until(ws, lambda s: s["unread_count"] == 0)
        assert state["notifications"][0]["is_read"] is True

        client.post("/connections/requests", json={"to_user_id": alice["id"]}, headers=carol["headers"])
        state = receive_until(ws, lambda s: len(s["notifications"]) == 2)
        assert state["unread_count"] == 1

        ws.send_json({"type": "read"})
        error = ws.receive_json()
        while error["type"] != "error":
            error = ws.receive_json()
        assert error["detail"] == "Missing field notification_id"


def test_event_socket_flow(client):
    alice = register(client, "alice@example.com", "Alice Smith")
    bob = register(client, "bob@example.com", "Bob Jones")
    body = {"title": "Hack night", "start_time": "2030-03-01T18:00:00Z", "max_attendees": 5}
    event = client.post("/events", json=body, headers=alice["headers"]).json()

    with client.websocket_connect(f"/ws/events?token={bob['token']}") as ws:
        state = receive_until(ws, lambda s: not s["loading"])
        assert [e["id"] for e in state["events"]] == [event["id"]]

        ws.send_json({"type": "register", "event_id": event["id"]})
        state = receive_until(ws, lambda s: s["events"] and s["events"][0]["registered_count"] == 1)
        assert state["error"] is None

        client.post("/events", json={**body, "title": "Board games"}, headers=alice["headers"])
        state = receive_until(ws, lambda s: len(s["events"]) == 2)
        assert state["events"][0]["title"] == "Board games"


def test_connections_socket_flow(client):
    alice = register(client, "alice@example.com", "Alice Smith")
    bob = register(client, "bob@example.com", "Bob Jones")

    with client.websocket_connect(f"/ws/connections?token={alice['token']}") as ws:
        receive_until(ws, lambda s: not s["loading"])
        ws.send_json({"type": "send", "to_user_id": bob["id"]})
        state = receive_until(ws, lambda s: not s["loading"])
        assert state["error"] is None

    with client.websocket_connect(f"/ws/connections?token={bob['token']}") as ws:
        state = receive_until(ws, lambda s: not s["loading"])
        [request] = state["pending_requests"]

        ws.send_json({"type": "accept", "request_id": request["id"]})
        state = receive_until(ws, lambda s: len(s["connections"]) == 1)
        assert state["pending_requests"] == []
