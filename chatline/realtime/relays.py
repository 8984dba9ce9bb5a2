"""Handlers for the domain events a client can emit."""

import logging
import uuid
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatline.chat.messages import MessageHandler
from chatline.chat.models import MessageType
from chatline.chat.sessions import ChatSessionManager
from chatline.core.messages import (
    CHAT_MESSAGE_NOT_FOUND,
    CHAT_MESSAGE_READ_FAILED,
    CHAT_MESSAGE_SEND_FAILED,
    WS_SESSION_NOT_FOUND,
)
from chatline.models.base import utcnow
from .connection import Connection
from .events import (
    ERROR,
    MESSAGE_NEW,
    MESSAGE_READ,
    NOTIFICATION_NEW,
    USER_TYPING,
    SendMessagePayload,
)
from .hub import RealtimeHub


logger = logging.getLogger("chatline.realtime.relays")

SessionFactory = Callable[[], Session]


class MessageRelay:
    """Validate, persist and fan out a new chat message.

    The sender's membership is re-checked against the database on every
    send; room subscriptions alone are never trusted. The message row is
    committed before anything is broadcast.
    """

    def __init__(self, hub: RealtimeHub, session_factory: SessionFactory) -> None:
        self.hub = hub
        self._session_factory = session_factory

    async def send(
        self,
        connection: Connection,
        payload: SendMessagePayload,
    ) -> Optional[Dict[str, Any]]:
        sender_id = connection.user_id
        session_id = payload.session_id
        message_type = MessageType.normalize(payload.type)

        try:
            with self._session_factory() as db:
                if not ChatSessionManager.is_member(db, session_id, sender_id):
                    logger.warning(
                        "Rejected send: user_id=%s is not a member of session_id=%s",
                        sender_id,
                        session_id,
                    )
                    await connection.emit(ERROR, {"message": WS_SESSION_NOT_FOUND})
                    return None

                receiver_id = payload.receiver_id
                if receiver_id is not None and not ChatSessionManager.is_member(
                    db, session_id, receiver_id
                ):
                    logger.warning(
                        "Ignoring receiver_id=%s outside session_id=%s",
                        receiver_id,
                        session_id,
                    )
                    receiver_id = None

                message = MessageHandler.create_message(
                    db,
                    session_id=session_id,
                    sender_id=sender_id,
                    content=payload.content,
                    message_type=message_type,
                    receiver_id=receiver_id,
                )
                ChatSessionManager.touch(db, session_id)
                wire = MessageHandler.serialize(message)
        except SQLAlchemyError:
            logger.error(
                "Send message error: user_id=%s, session_id=%s",
                sender_id,
                session_id,
                exc_info=True,
            )
            await connection.emit(ERROR, {"message": CHAT_MESSAGE_SEND_FAILED})
            return None

        await self.deliver(session_id, wire, receiver_id)
        return wire

    async def deliver(
        self,
        session_id: uuid.UUID,
        message: Dict[str, Any],
        receiver_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Broadcast an already persisted message and notify its receiver."""
        await self.hub.emit_room(session_id, MESSAGE_NEW, message)

        if receiver_id is not None and self.hub.is_online(receiver_id):
            await self.hub.emit_user(
                receiver_id,
                NOTIFICATION_NEW,
                {"type": "message", "message": message},
            )


class TypingRelay:
    """Ephemeral typing indicators; nothing is stored."""

    def __init__(self, hub: RealtimeHub) -> None:
        self.hub = hub

    async def start(self, connection: Connection, session_id: uuid.UUID) -> int:
        return await self._relay(connection, session_id, True)

    async def stop(self, connection: Connection, session_id: uuid.UUID) -> int:
        return await self._relay(connection, session_id, False)

    async def _relay(self, connection: Connection, session_id: uuid.UUID, is_typing: bool) -> int:
        return await self.hub.emit_room(
            session_id,
            USER_TYPING,
            {
                "userId": str(connection.user_id),
                "sessionId": str(session_id),
                "isTyping": is_typing,
            },
            exclude=connection,
        )


class ReadReceiptRelay:
    """Marks a message read and tells its sender, if they are online."""

    def __init__(self, hub: RealtimeHub, session_factory: SessionFactory) -> None:
        self.hub = hub
        self._session_factory = session_factory

    async def mark_read(self, connection: Connection, message_id: uuid.UUID) -> bool:
        try:
            with self._session_factory() as db:
                message = MessageHandler.get_message(db, message_id)
                if message is None or not ChatSessionManager.is_member(
                    db, message.session_id, connection.user_id
                ):
                    await connection.emit(ERROR, {"message": CHAT_MESSAGE_NOT_FOUND})
                    return False
                MessageHandler.mark_read(db, message)
                sender_id = message.sender_id
        except SQLAlchemyError:
            logger.error("Mark message as read error: message_id=%s", message_id, exc_info=True)
            await connection.emit(ERROR, {"message": CHAT_MESSAGE_READ_FAILED})
            return False

        await self.hub.emit_user(
            sender_id,
            MESSAGE_READ,
            {"messageId": str(message_id), "readAt": utcnow().isoformat()},
        )
        return True


class SessionSubscriptionRelay:
    """Client-driven room changes for sessions created mid-connection."""

    def __init__(self, hub: RealtimeHub) -> None:
        self.hub = hub

    def join(self, connection: Connection, session_id: uuid.UUID) -> None:
        self.hub.rooms.join(connection, session_id)
        logger.info("User %s joined session %s", connection.user_id, session_id)

    def leave(self, connection: Connection, session_id: uuid.UUID) -> None:
        self.hub.rooms.leave(connection, session_id)
        logger.info("User %s left session %s", connection.user_id, session_id)
