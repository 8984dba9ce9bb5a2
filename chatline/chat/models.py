"""Chat models for 1:1 sessions and their messages."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chatline.models.base import TimestampedUUIDModel, utcnow
from chatline.models.user import User


class MessageType(str, enum.Enum):
    TEXT = "TEXT"
    IMAGE = "IMAGE"
    FILE = "FILE"
    SYSTEM = "SYSTEM"

    @classmethod
    def normalize(cls, value: object) -> "MessageType":
        """Map any client-supplied value onto a known type, defaulting to TEXT."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.TEXT


class ChatSession(TimestampedUUIDModel):
    """A conversation between its member users; one broadcast room per row."""

    __tablename__ = "chat_sessions"

    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_group: Mapped[bool] = mapped_column(Boolean, default=False)

    users: Mapped[list["ChatSessionUser"]] = relationship(
        back_populates="session", cascade="all, delete-orphan"
    )


class ChatSessionUser(TimestampedUUIDModel):
    """Session membership; the authoritative source for room access."""

    __tablename__ = "chat_session_users"
    __table_args__ = (UniqueConstraint("session_id", "user_id", name="uq_chat_session_user"),)

    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_read_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    session: Mapped[ChatSession] = relationship(back_populates="users")
    user: Mapped[User] = relationship()


class Message(TimestampedUUIDModel):
    """Individual message in a chat session."""

    __tablename__ = "messages"

    content: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False, default=MessageType.TEXT.value)
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)

    sender: Mapped[User] = relationship(foreign_keys=[sender_id])
