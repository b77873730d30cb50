"""End-to-end checks of the /ws protocol and the REST routes."""
import pytest
from fastapi.testclient import TestClient

from taskhub.main import app


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as client:
        yield client


def barrier(ws):
    """Every frame sent before this one has been handled once the error comes back."""
    ws.send_json({"event": "barrier"})
    assert ws.receive_json() == {"event": "error", "data": {"message": "Unknown event: barrier"}}


def subscribe(ws, user_id):
    ws.send_json({"event": "subscribe:notifications", "data": user_id})
    ack = ws.receive_json()
    assert ack["event"] == "subscription:ack"
    assert ack["data"]["userId"] == user_id
    return ack["data"]["socketId"]


# ─────────────────────────────────────────────
# WebSocket protocol
# ─────────────────────────────────────────────

def test_chat_message_echoes_to_sender_and_room(client):
    with client.websocket_connect("/ws?user_id=carol") as c, client.websocket_connect("/ws?user_id=dave") as d:
        c_id = subscribe(c, "carol")
        c.send_json({"event": "join:chat", "data": "e2e-chat"})
        d.send_json({"event": "join:chat", "data": "e2e-chat"})
        barrier(c)
        barrier(d)

        c.send_json({"event": "chat:message", "data": {"roomId": "e2e-chat", "message": "hi"}})

        for ws in (c, d):
            frame = ws.receive_json()
            assert frame["event"] == "chat:message"
            assert frame["data"]["sender"] == c_id
            assert frame["data"]["message"] == "hi"
            assert frame["data"]["timestamp"]


def test_typing_skips_sender(client):
    with client.websocket_connect("/ws") as c, client.websocket_connect("/ws") as d:
        c_id = subscribe(c, "typing-c")
        c.send_json({"event": "join:chat", "data": "e2e-typing"})
        d.send_json({"event": "join:chat", "data": "e2e-typing"})
        barrier(c)
        barrier(d)

        c.send_json({"event": "typing", "data": "e2e-typing"})

        assert d.receive_json() == {"event": "typing", "data": c_id}
        barrier(c)  # nothing was queued for the sender ahead of the barrier reply


def test_messages_arrive_in_send_order(client):
    with client.websocket_connect("/ws") as c, client.websocket_connect("/ws") as d:
        c.send_json({"event": "join:chat", "data": "e2e-order"})
        d.send_json({"event": "join:chat", "data": "e2e-order"})
        barrier(c)
        barrier(d)

        for i in range(20):
            c.send_json({"event": "chat:message", "data": {"roomId": "e2e-order", "message": i}})

        assert [d.receive_json()["data"]["message"] for _ in range(20)] == list(range(20))


def test_member_leaving_does_not_break_room(client):
    with client.websocket_connect("/ws") as c:
        c.send_json({"event": "join:chat", "data": "e2e-leave"})
        with client.websocket_connect("/ws") as d:
            d.send_json({"event": "join:chat", "data": "e2e-leave"})
            barrier(d)
        barrier(c)

        c.send_json({"event": "chat:message", "data": {"roomId": "e2e-leave", "message": "still here"}})
        assert c.receive_json()["data"]["message"] == "still here"


def test_invalid_frames_keep_connection_open(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("{not json")
        assert ws.receive_json() == {"event": "error", "data": {"message": "Invalid frame"}}

        ws.send_json({"event": "chat:message", "data": {"message": "no room"}})
        assert ws.receive_json() == {"event": "error", "data": {"message": "Invalid payload for chat:message"}}

        barrier(ws)


# ─────────────────────────────────────────────
# REST
# ─────────────────────────────────────────────

def test_publish_notification_reaches_topic_only(client):
    with client.websocket_connect("/ws") as mine, client.websocket_connect("/ws") as other:
        subscribe(mine, "acc-1")
        subscribe(other, "acc-2")

        resp = client.post(
            "/notifications/acc-1",
            json={"category": "LEAD", "title": "New Lead Assigned", "body": "Acme", "actionUrl": "/user/leads/7"},
        )
        assert resp.status_code == 200
        assert resp.json()["actionUrl"] == "/user/leads/7"

        frame = mine.receive_json()
        assert frame["event"] == "notification"
        assert frame["data"]["title"] == "New Lead Assigned"
        assert frame["data"]["id"] == resp.json()["id"]
        barrier(other)


def test_publish_notification_without_subscribers(client):
    resp = client.post("/notifications/nobody", json={"title": "Ping"})
    assert resp.status_code == 200
    assert resp.json()["level"] == "INFO"


def test_rooms_endpoints(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "join:chat", "data": "e2e-rooms"})
        barrier(ws)

        listed = client.get("/rooms").json()
        assert {"room": "e2e-rooms", "member_count": 1} in listed

        room = client.get("/rooms/e2e-rooms").json()
        assert room["member_count"] == 1

    assert client.get("/rooms/does-not-exist").status_code == 404


def test_push_preview_defaults(client):
    resp = client.post("/push/preview", json={})
    assert resp.json() == {
        "title": "Notification", "body": "", "icon": "/favicon.png", "badge": "/badge.png", "data": {},
    }


def test_push_preview_keeps_data(client):
    resp = client.post("/push/preview", json={"title": "Lead", "data": {"actionUrl": "https://x/y"}})
    assert resp.json()["data"] == {"actionUrl": "https://x/y"}


def test_health_root_and_metrics(client):
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["pub_sub_service"] == "memory"

    root = client.get("/").json()
    assert "chat:message" in root["events"]
    assert "subscribe:notifications" in root["events"]

    metrics = client.get("/metrics").json()
    assert metrics["total_messages"] >= 0
    assert "concurrent_connections" in metrics
