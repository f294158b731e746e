"""End-to-end WebSocket scenarios against the ASGI app."""
import pytest
from fastapi.testclient import TestClient

from lighttrails.client.state import ClientState
from lighttrails.server.app import create_app
from lighttrails.server.config import Settings


@pytest.fixture
def client():
    app = create_app(Settings(meteors_enabled=False, heartbeat_interval_s=3600))
    with TestClient(app) as c:
        yield c


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": True, "clients": 0}


def test_settings_update_acked_and_relayed(client):
    with client.websocket_connect("/ws") as b:
        welcome_b = b.receive_json()
        assert welcome_b["type"] == "welcome"
        assert welcome_b["clientCount"] == 1
        assert welcome_b["allSettings"] == []

        with client.websocket_connect("/ws") as a:
            welcome_a = a.receive_json()
            a_id = welcome_a["clientId"]
            assert welcome_a["clientCount"] == 2
            assert [p["clientId"] for p in welcome_a["allSettings"]] == [welcome_b["clientId"]]

            joined = b.receive_json()
            assert joined["type"] == "clientJoined"
            assert joined["clientId"] == a_id

            a.send_json({"type": "updateSettings", "color": "#112233"})
            ack = a.receive_json()
            assert ack["type"] == "settingsAck"
            expected = {
                "color": "#112233",
                "size": 1.0,
                "glow": 1.2,
                "cursorMode": "halo",
                "username": f"Star-{a_id[-4:].upper()}",
            }
            assert ack["settings"] == expected

            note = b.receive_json()
            assert note == {"type": "userSettings", "clientId": a_id, "settings": expected}


def test_disconnect_broadcasts_client_left_and_peer_forgets(client):
    with client.websocket_connect("/ws") as b:
        b.receive_json()
        peer = ClientState()
        with client.websocket_connect("/ws") as a:
            a_id = a.receive_json()["clientId"]
            b.receive_json()  # clientJoined
            a.send_json({"type": "lightTrail", "trail": {"x": 10, "y": 10}, "color": "#00ff00"})
            a.send_json({"type": "mousePosition", "x": 11, "y": 10})
            for _ in range(2):
                peer.handle(b.receive_json(), now=0)
            assert a_id in peer.store.trails
            assert a_id in peer.store.cursors

        left = b.receive_json()
        assert left == {"type": "clientLeft", "clientId": a_id, "clientCount": 1}
        peer.handle(left, now=1)
        frame = peer.tick(2)
        assert a_id not in frame.trails
        assert a_id not in frame.cursors


def test_malformed_and_unknown_messages_stay_private(client):
    with client.websocket_connect("/ws") as b:
        b.receive_json()
        with client.websocket_connect("/ws") as a:
            a.receive_json()
            b.receive_json()  # clientJoined

            a.send_text("{definitely not json")
            assert a.receive_json() == {"type": "error", "message": "Invalid message format"}
            a.send_json({"type": "mousePosition", "x": "left"})
            assert a.receive_json()["type"] == "error"
            a.send_json({"type": "somethingNew"})
            a.send_bytes(b"\x00\x01")
            a.send_json({"type": "ping"})
            assert a.receive_json()["type"] == "pong"

            # nothing leaked to b: its next message is its own pong
            b.send_json({"type": "ping"})
            assert b.receive_json()["type"] == "pong"


def test_clear_and_trail_relay(client):
    with client.websocket_connect("/ws") as b:
        b.receive_json()
        with client.websocket_connect("/ws") as a:
            a_id = a.receive_json()["clientId"]
            b.receive_json()
            a.send_json({"type": "lightTrail", "trail": {"x": 1.5, "y": 2.5}, "size": 7, "username": "  Vega  "})
            trail = b.receive_json()
            assert trail["type"] == "lightTrail"
            assert trail["clientId"] == a_id
            assert trail["trail"] == {"x": 1.5, "y": 2.5}
            assert trail["size"] == 3.0
            assert trail["username"] == "Vega"
            assert isinstance(trail["timestamp"], int)

            a.send_json({"type": "clear"})
            cleared = b.receive_json()
            assert cleared["type"] == "clear"
            assert cleared["clientId"] == a_id
