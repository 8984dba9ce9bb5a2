import pytest
from fastapi import WebSocketDisconnect

from chatline.core.security import create_access_token


def _token(user) -> str:
    return create_access_token(user.id, user.email)


def _drain_connect(ws):
    """Consume the frames every new connection receives first."""
    status = ws.receive_json()
    online = ws.receive_json()
    assert status["event"] == "user:status"
    assert online["event"] == "users:online"
    return status, online


def test_handshake_without_token_is_rejected(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/api/v1/ws"):
            pass

    assert exc_info.value.code == 1008


def test_handshake_with_bad_token_is_rejected(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/api/v1/ws?token=not-a-jwt"):
            pass

    assert exc_info.value.code == 1008


def test_connect_with_query_token(client, alice):
    with client.websocket_connect(f"/api/v1/ws?token={_token(alice)}") as ws:
        status, online = _drain_connect(ws)

    assert status["data"]["userId"] == str(alice.id)
    assert status["data"]["status"] == "ONLINE"
    assert online["data"] == [str(alice.id)]


def test_invalid_frame_keeps_connection_open(client, alice):
    with client.websocket_connect(f"/api/v1/ws?token={_token(alice)}") as ws:
        _drain_connect(ws)

        ws.send_text("not json")
        assert ws.receive_json() == {"event": "error", "data": {"message": "Invalid JSON format"}}

        ws.send_json({"event": "status:update", "data": {"status": "AWAY"}})
        frame = ws.receive_json()
        assert frame["event"] == "user:status"
        assert frame["data"]["status"] == "AWAY"


def test_message_round_trip(client, alice, bob, direct_session):
    with client.websocket_connect(f"/api/v1/ws?token={_token(alice)}") as alice_ws:
        _drain_connect(alice_ws)

        with client.websocket_connect(
            "/api/v1/ws",
            headers={"Authorization": f"Bearer {_token(bob)}"},
        ) as bob_ws:
            _drain_connect(bob_ws)
            bob_online = alice_ws.receive_json()
            assert bob_online["event"] == "user:status"
            assert bob_online["data"]["userId"] == str(bob.id)

            alice_ws.send_json(
                {
                    "event": "message:send",
                    "data": {
                        "sessionId": str(direct_session.id),
                        "content": "hi bob",
                        "receiverId": str(bob.id),
                    },
                }
            )

            delivered = bob_ws.receive_json()
            notification = bob_ws.receive_json()
            echoed = alice_ws.receive_json()

    assert delivered["event"] == "message:new"
    assert delivered["data"]["content"] == "hi bob"
    assert delivered["data"]["senderId"] == str(alice.id)
    assert notification == {
        "event": "notification:new",
        "data": {"type": "message", "message": delivered["data"]},
    }
    assert echoed == delivered


def test_rest_send_is_pushed_to_socket(client, alice, bob, direct_session, auth_headers):
    with client.websocket_connect(f"/api/v1/ws?token={_token(bob)}") as bob_ws:
        _drain_connect(bob_ws)

        response = client.post(
            f"/api/v1/chat/sessions/{direct_session.id}/messages",
            json={"content": "sent over http"},
            headers=auth_headers(alice),
        )

        delivered = bob_ws.receive_json()
        notification = bob_ws.receive_json()

    assert response.status_code == 201
    assert delivered == {"event": "message:new", "data": response.json()}
    assert notification["event"] == "notification:new"


def test_binary_frame_gets_error_and_connection_stays_open(client, alice):
    with client.websocket_connect(f"/api/v1/ws?token={_token(alice)}") as ws:
        _drain_connect(ws)

        ws.send_bytes(b'{"event":"typing:start"}')
        assert ws.receive_json() == {"event": "error", "data": {"message": "Invalid JSON format"}}

        ws.send_json({"event": "status:update", "data": {"status": "AWAY"}})
        frame = ws.receive_json()
        assert frame["event"] == "user:status"
        assert frame["data"]["status"] == "AWAY"
