"""Message handling for chat system."""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, or_
from sqlalchemy.orm import Session, selectinload

from .models import Message, MessageType
from .schemas import MessageOut


logger = logging.getLogger("chatline.chat.messages")


class MessageHandler:
    """Handles message creation and retrieval."""

    @staticmethod
    def create_message(
        db: Session,
        session_id: uuid.UUID,
        sender_id: uuid.UUID,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        receiver_id: Optional[uuid.UUID] = None,
    ) -> Message:
        """Persist a new message; the row is committed when this returns."""
        message = Message(
            session_id=session_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            type=MessageType.normalize(message_type).value,
        )

        db.add(message)
        db.commit()
        db.refresh(message)

        logger.info(
            "Message created: message_id=%s, session_id=%s, type=%s",
            message.id,
            session_id,
            message.type,
        )

        return message

    @staticmethod
    def get_message(db: Session, message_id: uuid.UUID) -> Optional[Message]:
        return (
            db.query(Message)
            .options(selectinload(Message.sender))
            .filter(Message.id == message_id)
            .first()
        )

    @staticmethod
    def get_session_messages(
        db: Session,
        session_id: uuid.UUID,
        limit: int = 50,
        before: Optional[datetime] = None,
    ) -> List[Message]:
        """Get the newest ``limit`` messages older than ``before``, oldest first."""
        query = (
            db.query(Message)
            .options(selectinload(Message.sender))
            .filter(Message.session_id == session_id)
        )

        if before is not None:
            query = query.filter(Message.created_at < before)

        messages = query.order_by(desc(Message.created_at)).limit(limit).all()
        messages.reverse()
        return messages

    @staticmethod
    def get_messages_by_type(
        db: Session,
        session_id: uuid.UUID,
        message_type: MessageType,
    ) -> List[Message]:
        return (
            db.query(Message)
            .options(selectinload(Message.sender))
            .filter(
                Message.session_id == session_id,
                Message.type == message_type.value,
            )
            .order_by(desc(Message.created_at))
            .all()
        )

    @staticmethod
    def get_link_messages(db: Session, session_id: uuid.UUID) -> List[Message]:
        return (
            db.query(Message)
            .options(selectinload(Message.sender))
            .filter(
                Message.session_id == session_id,
                or_(
                    Message.content.contains("http://"),
                    Message.content.contains("https://"),
                ),
            )
            .order_by(desc(Message.created_at))
            .all()
        )

    @staticmethod
    def mark_read(db: Session, message: Message) -> Message:
        message.is_read = True
        db.add(message)
        db.commit()
        db.refresh(message)
        return message

    @staticmethod
    def serialize(message: Message) -> Dict[str, Any]:
        """Wire representation with the sender's minimal profile attached."""
        return MessageOut.model_validate(message).to_wire()
