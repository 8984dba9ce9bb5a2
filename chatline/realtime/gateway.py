"""Connection lifecycle and event dispatch for the real-time channel."""

import json
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

from fastapi import WebSocket, WebSocketDisconnect, status
from jose import JWTError
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatline.chat.sessions import ChatSessionManager
from chatline.core.messages import (
    AUTH_ERROR,
    ERROR_INTERNAL_SERVER,
    WS_INVALID_JSON,
    WS_INVALID_PAYLOAD,
    WS_UNKNOWN_EVENT,
)
from chatline.core.security import decode_identity
from chatline.users.service import UserService
from . import events
from .connection import Connection
from .hub import RealtimeHub
from .presence import PresenceBroadcaster
from .relays import MessageRelay, ReadReceiptRelay, SessionSubscriptionRelay, TypingRelay


logger = logging.getLogger("chatline.realtime.gateway")

Handler = Callable[[Connection, Any], Awaitable[None]]


class RealtimeGateway:
    """Authenticates sockets, runs connect/disconnect, routes inbound events.

    Events from one connection are handled strictly in the order they
    arrive: the receive loop awaits each handler before reading the next
    frame. Handlers for different connections interleave only at await
    points.
    """

    def __init__(self, hub: RealtimeHub, session_factory: Callable[[], Session]) -> None:
        self.hub = hub
        self._session_factory = session_factory
        self.presence = PresenceBroadcaster(hub, session_factory)
        self.messages = MessageRelay(hub, session_factory)
        self.typing = TypingRelay(hub)
        self.receipts = ReadReceiptRelay(hub, session_factory)
        self.subscriptions = SessionSubscriptionRelay(hub)

        self._routes: Dict[str, Tuple[Type[BaseModel], Handler]] = {
            events.TYPING_START: (events.SessionPayload, self._on_typing_start),
            events.TYPING_STOP: (events.SessionPayload, self._on_typing_stop),
            events.MESSAGE_SEND: (events.SendMessagePayload, self._on_message_send),
            events.MESSAGE_READ: (events.ReadPayload, self._on_message_read),
            events.SESSION_JOIN: (events.SessionPayload, self._on_session_join),
            events.SESSION_LEAVE: (events.SessionPayload, self._on_session_leave),
            events.STATUS_UPDATE: (events.StatusPayload, self._on_status_update),
        }

    def authenticate(self, token: Optional[str]) -> Optional[Tuple[uuid.UUID, str]]:
        """Verify a handshake token and return ``(user_id, email)``."""
        if not token:
            return None
        try:
            user_id, email = decode_identity(token)
        except JWTError as e:
            logger.warning("WebSocket authentication failed: %s", e)
            return None

        try:
            with self._session_factory() as db:
                user = UserService.get_active_user(db, user_id)
        except SQLAlchemyError:
            logger.error("WebSocket authentication lookup failed: user_id=%s", user_id, exc_info=True)
            return None
        if user is None:
            logger.warning("WebSocket authentication failed: unknown user_id=%s", user_id)
            return None
        return user_id, email or user.email

    async def serve(self, websocket: WebSocket, token: Optional[str]) -> None:
        """Run one socket from handshake to disconnect."""
        identity = self.authenticate(token)
        if identity is None:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=AUTH_ERROR)
            return

        await websocket.accept()
        connection = Connection(websocket, *identity)
        await self.connect(connection)
        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(frame.get("code", status.WS_1000_NORMAL_CLOSURE))
                raw = frame.get("text")
                if raw is None:
                    # Binary frames are not part of the protocol
                    await connection.emit(events.ERROR, {"message": WS_INVALID_JSON})
                    continue
                await self.dispatch(connection, raw)
        except WebSocketDisconnect:
            logger.info("User disconnected: user_id=%s", connection.user_id)
        finally:
            await self.disconnect(connection)

    async def connect(self, connection: Connection) -> None:
        logger.info(
            "User connected: user_id=%s, connection_id=%s",
            connection.user_id,
            connection.id,
            extra={"user_id": connection.user_id, "connection_id": connection.id},
        )
        self.hub.attach(connection)
        self.hub.rooms.subscribe_all(connection, self._member_session_ids(connection.user_id))

        await self.presence.online(connection.user_id)
        online = sorted(str(user_id) for user_id in self.hub.registry.list_online_user_ids())
        await connection.emit(events.USERS_ONLINE, online)

    async def disconnect(self, connection: Connection) -> None:
        if self.hub.detach(connection):
            await self.presence.offline(connection.user_id)
        else:
            logger.info(
                "Stale connection closed: user_id=%s, connection_id=%s",
                connection.user_id,
                connection.id,
            )

    async def dispatch(self, connection: Connection, raw: str) -> None:
        """Decode one inbound frame and run its handler."""
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            await connection.emit(events.ERROR, {"message": WS_INVALID_JSON})
            return

        event = frame.get("event") if isinstance(frame, dict) else None
        route = self._routes.get(event) if isinstance(event, str) else None
        if route is None:
            await connection.emit(events.ERROR, {"message": WS_UNKNOWN_EVENT})
            return

        payload_model, handler = route
        try:
            payload = payload_model.model_validate(frame.get("data") or {})
        except ValidationError as e:
            logger.info("Invalid %s payload from user_id=%s: %s", event, connection.user_id, e)
            await connection.emit(events.ERROR, {"message": WS_INVALID_PAYLOAD.format(event=event)})
            return

        try:
            await handler(connection, payload)
        except Exception:
            logger.error(
                "Unhandled error in %s handler",
                event,
                exc_info=True,
                extra={"user_id": connection.user_id, "connection_id": connection.id, "event": event},
            )
            await connection.emit(events.ERROR, {"message": ERROR_INTERNAL_SERVER})

    def _member_session_ids(self, user_id: uuid.UUID) -> list[uuid.UUID]:
        try:
            with self._session_factory() as db:
                return ChatSessionManager.list_user_session_ids(db, user_id)
        except SQLAlchemyError:
            logger.error("Failed to load sessions for user_id=%s", user_id, exc_info=True)
            return []

    async def _on_typing_start(self, connection: Connection, payload: events.SessionPayload) -> None:
        await self.typing.start(connection, payload.session_id)

    async def _on_typing_stop(self, connection: Connection, payload: events.SessionPayload) -> None:
        await self.typing.stop(connection, payload.session_id)

    async def _on_message_send(self, connection: Connection, payload: events.SendMessagePayload) -> None:
        await self.messages.send(connection, payload)

    async def _on_message_read(self, connection: Connection, payload: events.ReadPayload) -> None:
        await self.receipts.mark_read(connection, payload.message_id)

    async def _on_session_join(self, connection: Connection, payload: events.SessionPayload) -> None:
        self.subscriptions.join(connection, payload.session_id)

    async def _on_session_leave(self, connection: Connection, payload: events.SessionPayload) -> None:
        self.subscriptions.leave(connection, payload.session_id)

    async def _on_status_update(self, connection: Connection, payload: events.StatusPayload) -> None:
        await self.presence.set_status(connection.user_id, payload.status)
