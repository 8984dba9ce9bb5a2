import json
import uuid

import pytest
from sqlalchemy.exc import OperationalError

from chatline.chat.messages import MessageHandler
from chatline.core.database import SessionLocal
from chatline.core.security import create_access_token, create_refresh_token
from chatline.models import User


def _frame(event, data=None) -> str:
    return json.dumps({"event": event, "data": data or {}})


def _stored_status(user_id):
    with SessionLocal() as db:
        return db.get(User, user_id).status


@pytest.mark.asyncio
async def test_connect_announces_presence_and_lists_online_users(gateway, connect, alice, bob):
    first = await connect(alice)
    assert [frame["event"] for frame in first.websocket.sent] == ["user:status", "users:online"]
    assert first.websocket.events("users:online")[0]["data"] == [str(alice.id)]

    first.websocket.clear()
    second = await connect(bob)

    assert first.websocket.events("user:status")[0]["data"]["userId"] == str(bob.id)
    online = second.websocket.events("users:online")[0]["data"]
    assert set(online) == {str(alice.id), str(bob.id)}
    assert _stored_status(bob.id) == "ONLINE"


@pytest.mark.asyncio
async def test_connect_subscribes_to_member_sessions(gateway, connect, alice, direct_session):
    connection = await connect(alice)

    assert connection in gateway.hub.rooms.members(direct_session.id)


@pytest.mark.asyncio
async def test_disconnect_broadcasts_offline(gateway, connect, alice, bob):
    watcher = await connect(alice)
    leaving = await connect(bob)
    watcher.websocket.clear()

    await gateway.disconnect(leaving)

    status = watcher.websocket.events("user:status")[0]["data"]
    assert status["userId"] == str(bob.id)
    assert status["status"] == "OFFLINE"
    assert not gateway.hub.is_online(bob.id)
    assert _stored_status(bob.id) == "OFFLINE"


@pytest.mark.asyncio
async def test_replaced_connection_closing_keeps_user_online(gateway, connect, alice, bob):
    watcher = await connect(bob)
    old = await connect(alice)
    new = await connect(alice)
    watcher.websocket.clear()

    await gateway.disconnect(old)

    assert watcher.websocket.sent == []
    assert gateway.hub.registry.lookup(alice.id) is new

    await gateway.disconnect(new)

    assert watcher.websocket.events("user:status")[0]["data"]["status"] == "OFFLINE"


@pytest.mark.asyncio
async def test_dispatch_rejects_invalid_json(gateway, connect, alice):
    connection = await connect(alice)
    connection.websocket.clear()

    await gateway.dispatch(connection, "{not json")

    assert connection.websocket.sent == [{"event": "error", "data": {"message": "Invalid JSON format"}}]


@pytest.mark.asyncio
async def test_dispatch_rejects_unknown_event(gateway, connect, alice):
    connection = await connect(alice)
    connection.websocket.clear()

    await gateway.dispatch(connection, _frame("room:explode"))
    await gateway.dispatch(connection, json.dumps(["not", "an", "object"]))

    assert connection.websocket.sent == [
        {"event": "error", "data": {"message": "Unknown event"}},
        {"event": "error", "data": {"message": "Unknown event"}},
    ]


@pytest.mark.asyncio
async def test_dispatch_rejects_invalid_payload(gateway, connect, alice):
    connection = await connect(alice)
    connection.websocket.clear()

    await gateway.dispatch(connection, _frame("typing:start", {"sessionId": "not-a-uuid"}))

    assert connection.websocket.sent == [
        {"event": "error", "data": {"message": "Invalid payload for typing:start"}}
    ]


@pytest.mark.asyncio
async def test_status_update_is_global(gateway, connect, alice, bob):
    sender = await connect(alice)
    stranger = await connect(bob)
    sender.websocket.clear()
    stranger.websocket.clear()

    await gateway.dispatch(sender, _frame("status:update", {"status": "AWAY"}))

    for connection in (sender, stranger):
        status = connection.websocket.events("user:status")[0]["data"]
        assert status["userId"] == str(alice.id)
        assert status["status"] == "AWAY"
    assert _stored_status(alice.id) == "AWAY"


@pytest.mark.asyncio
async def test_message_send_through_dispatch(gateway, connect, alice, bob, direct_session):
    sender = await connect(alice)
    receiver = await connect(bob)
    receiver.websocket.clear()

    await gateway.dispatch(
        sender,
        _frame(
            "message:send",
            {"sessionId": str(direct_session.id), "content": "hey", "receiverId": str(bob.id)},
        ),
    )

    assert [frame["event"] for frame in receiver.websocket.sent] == ["message:new", "notification:new"]


@pytest.mark.asyncio
async def test_session_join_and_leave(gateway, connect, alice):
    connection = await connect(alice)
    session_id = uuid.uuid4()

    await gateway.dispatch(connection, _frame("session:join", {"sessionId": str(session_id)}))
    assert connection in gateway.hub.rooms.members(session_id)

    await gateway.dispatch(connection, _frame("session:leave", {"sessionId": str(session_id)}))
    assert connection not in gateway.hub.rooms.members(session_id)


@pytest.mark.asyncio
async def test_read_receipt_goes_to_sender(gateway, connect, alice, bob, direct_session):
    with SessionLocal() as db:
        message = MessageHandler.create_message(
            db,
            session_id=direct_session.id,
            sender_id=alice.id,
            content="did you see this?",
            receiver_id=bob.id,
        )
        message_id = message.id

    sender = await connect(alice)
    reader = await connect(bob)
    sender.websocket.clear()

    await gateway.dispatch(reader, _frame("message:read", {"messageId": str(message_id)}))

    receipt = sender.websocket.events("message:read")[0]["data"]
    assert receipt["messageId"] == str(message_id)
    assert receipt["readAt"]
    with SessionLocal() as db:
        assert MessageHandler.get_message(db, message_id).is_read is True


@pytest.mark.asyncio
async def test_read_receipt_for_foreign_message(gateway, connect, alice, bob, carol, direct_session):
    with SessionLocal() as db:
        message_id = MessageHandler.create_message(
            db, session_id=direct_session.id, sender_id=alice.id, content="private"
        ).id

    outsider = await connect(carol)
    outsider.websocket.clear()

    await gateway.dispatch(outsider, _frame("message:read", {"messageId": str(message_id)}))

    assert outsider.websocket.sent == [{"event": "error", "data": {"message": "Message not found"}}]


def test_authenticate(gateway, alice):
    assert gateway.authenticate(create_access_token(alice.id, alice.email)) == (alice.id, alice.email)
    assert gateway.authenticate(None) is None
    assert gateway.authenticate("garbage") is None
    # Refresh tokens cannot open a socket
    assert gateway.authenticate(create_refresh_token(alice.id, alice.email)) is None
    assert gateway.authenticate(create_access_token(uuid.uuid4(), "ghost@example.com")) is None


def test_authenticate_rejects_inactive_user(gateway, make_user):
    user = make_user("dormant", is_active=False)

    assert gateway.authenticate(create_access_token(user.id, user.email)) is None


@pytest.mark.asyncio
async def test_handler_failure_is_reported(gateway, connect, alice, monkeypatch):
    connection = await connect(alice)
    connection.websocket.clear()

    async def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(gateway.typing, "start", explode)

    await gateway.dispatch(connection, _frame("typing:start", {"sessionId": str(uuid.uuid4())}))

    assert connection.websocket.sent == [{"event": "error", "data": {"message": "Internal server error"}}]


@pytest.mark.asyncio
async def test_connection_emit_reports_failure(make_connection, alice):
    connection = make_connection(alice.id, fail=True)

    assert await connection.emit("user:status", {}) is False


@pytest.mark.asyncio
async def test_read_receipt_persistence_failure(gateway, connect, alice, bob, direct_session, monkeypatch):
    with SessionLocal() as db:
        message_id = MessageHandler.create_message(
            db, session_id=direct_session.id, sender_id=alice.id, content="hi", receiver_id=bob.id
        ).id

    sender = await connect(alice)
    reader = await connect(bob)
    sender.websocket.clear()
    reader.websocket.clear()

    def broken_mark_read(*args, **kwargs):
        raise OperationalError("UPDATE messages", {}, Exception("database is locked"))

    monkeypatch.setattr(MessageHandler, "mark_read", broken_mark_read)

    await gateway.dispatch(reader, _frame("message:read", {"messageId": str(message_id)}))

    assert reader.websocket.sent == [
        {"event": "error", "data": {"message": "Failed to mark message as read"}}
    ]
    assert sender.websocket.sent == []
