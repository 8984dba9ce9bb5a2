"""Chat session and membership management."""

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session, selectinload

from chatline.models.base import utcnow
from .models import ChatSession, ChatSessionUser, Message


logger = logging.getLogger("chatline.chat.sessions")


def _members_with_users():
    return selectinload(ChatSession.users).selectinload(ChatSessionUser.user)


class ChatSessionManager:
    """Manages chat session lifecycle and membership lookups."""

    @staticmethod
    def list_user_session_ids(db: Session, user_id: uuid.UUID) -> List[uuid.UUID]:
        """IDs of every session the user currently belongs to."""
        rows = db.execute(
            select(ChatSessionUser.session_id).where(ChatSessionUser.user_id == user_id)
        )
        return [row[0] for row in rows]

    @staticmethod
    def get_member_session(
        db: Session,
        session_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> Optional[ChatSession]:
        """Get a session only if ``user_id`` is currently a member of it."""
        return (
            db.query(ChatSession)
            .options(_members_with_users())
            .join(ChatSessionUser, ChatSessionUser.session_id == ChatSession.id)
            .filter(
                ChatSession.id == session_id,
                ChatSessionUser.user_id == user_id,
            )
            .first()
        )

    @staticmethod
    def is_member(db: Session, session_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        membership = (
            db.query(ChatSessionUser.id)
            .filter(
                ChatSessionUser.session_id == session_id,
                ChatSessionUser.user_id == user_id,
            )
            .first()
        )
        return membership is not None

    @staticmethod
    def list_sessions(db: Session, user_id: uuid.UUID) -> List[ChatSession]:
        """List the user's sessions, most recently active first."""
        member_of = select(ChatSessionUser.session_id).where(ChatSessionUser.user_id == user_id)
        return (
            db.query(ChatSession)
            .options(_members_with_users())
            .filter(ChatSession.id.in_(member_of))
            .order_by(desc(ChatSession.updated_at))
            .all()
        )

    @staticmethod
    def find_direct_session(
        db: Session,
        user_id: uuid.UUID,
        participant_id: uuid.UUID,
    ) -> Optional[ChatSession]:
        """Find the existing 1:1 session between two users, if any."""
        first = select(ChatSessionUser.session_id).where(ChatSessionUser.user_id == user_id)
        second = select(ChatSessionUser.session_id).where(ChatSessionUser.user_id == participant_id)
        return (
            db.query(ChatSession)
            .options(_members_with_users())
            .filter(
                ChatSession.is_group.is_(False),
                ChatSession.id.in_(first),
                ChatSession.id.in_(second),
            )
            .first()
        )

    @staticmethod
    def create_direct_session(
        db: Session,
        user_id: uuid.UUID,
        participant_id: uuid.UUID,
    ) -> Tuple[ChatSession, bool]:
        """Create or get the 1:1 session between two users.

        Returns:
            Tuple of (session, created) where ``created`` is False when the
            session already existed.
        """
        existing = ChatSessionManager.find_direct_session(db, user_id, participant_id)
        if existing:
            return existing, False

        session = ChatSession(is_group=False)
        session.users = [
            ChatSessionUser(user_id=user_id),
            ChatSessionUser(user_id=participant_id),
        ]
        db.add(session)
        db.commit()

        logger.info(
            "Chat session created: session_id=%s, members=%s,%s",
            session.id,
            user_id,
            participant_id,
        )
        return ChatSessionManager.get_member_session(db, session.id, user_id), True

    @staticmethod
    def touch(db: Session, session_id: uuid.UUID) -> None:
        """Bump ``updated_at`` so the session sorts first in session lists."""
        session = db.get(ChatSession, session_id)
        if session is None:
            return
        session.updated_at = utcnow()
        db.add(session)
        db.commit()

    @staticmethod
    def other_member_id(session: ChatSession, user_id: uuid.UUID) -> Optional[uuid.UUID]:
        for member in session.users:
            if member.user_id != user_id:
                return member.user_id
        return None

    @staticmethod
    def last_message(db: Session, session_id: uuid.UUID) -> Optional[Message]:
        return (
            db.query(Message)
            .options(selectinload(Message.sender))
            .filter(Message.session_id == session_id)
            .order_by(desc(Message.created_at))
            .first()
        )

    @staticmethod
    def unread_count(db: Session, session_id: uuid.UUID, user_id: uuid.UUID) -> int:
        return (
            db.query(func.count(Message.id))
            .filter(
                Message.session_id == session_id,
                Message.receiver_id == user_id,
                Message.is_read.is_(False),
            )
            .scalar()
            or 0
        )
