"""Persistence for AI assistant conversations."""

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from chatline.core.messages import AI_DEFAULT_TITLE
from chatline.models.base import utcnow
from .models import AIChatSession, AIMessage, AIMessageRole


logger = logging.getLogger("chatline.ai.sessions")


class AIChatService:
    """Query and update helpers for AI chat sessions."""

    @staticmethod
    def list_sessions(db: Session, user_id: uuid.UUID) -> List[Tuple[AIChatSession, int]]:
        """The user's sessions with their message counts, newest activity first."""
        counts = (
            db.query(AIMessage.session_id, func.count(AIMessage.id).label("n"))
            .group_by(AIMessage.session_id)
            .subquery()
        )
        rows = (
            db.query(AIChatSession, func.coalesce(counts.c.n, 0))
            .outerjoin(counts, counts.c.session_id == AIChatSession.id)
            .filter(AIChatSession.user_id == user_id)
            .order_by(desc(AIChatSession.updated_at))
            .all()
        )
        return [(session, count) for session, count in rows]

    @staticmethod
    def create_session(db: Session, user_id: uuid.UUID, title: Optional[str] = None) -> AIChatSession:
        session = AIChatSession(user_id=user_id, title=(title or "").strip() or AI_DEFAULT_TITLE)
        db.add(session)
        db.commit()
        db.refresh(session)
        logger.info("AI chat session created: session_id=%s, user_id=%s", session.id, user_id)
        return session

    @staticmethod
    def get_session(db: Session, session_id: uuid.UUID, user_id: uuid.UUID) -> Optional[AIChatSession]:
        return (
            db.query(AIChatSession)
            .filter(AIChatSession.id == session_id, AIChatSession.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_messages(db: Session, session_id: uuid.UUID) -> List[AIMessage]:
        return (
            db.query(AIMessage)
            .filter(AIMessage.session_id == session_id)
            .order_by(AIMessage.created_at)
            .all()
        )

    @staticmethod
    def recent_history(db: Session, session_id: uuid.UUID, limit: int) -> List[AIMessage]:
        """The last ``limit`` messages, oldest first."""
        messages = (
            db.query(AIMessage)
            .filter(AIMessage.session_id == session_id)
            .order_by(desc(AIMessage.created_at))
            .limit(limit)
            .all()
        )
        messages.reverse()
        return messages

    @staticmethod
    def add_message(
        db: Session,
        session: AIChatSession,
        role: AIMessageRole,
        content: str,
    ) -> AIMessage:
        message = AIMessage(session_id=session.id, role=role.value, content=content)
        session.updated_at = utcnow()
        db.add_all([message, session])
        db.commit()
        db.refresh(message)
        return message

    @staticmethod
    def delete_session(db: Session, session: AIChatSession) -> None:
        db.delete(session)
        db.commit()
        logger.info("AI chat session deleted: session_id=%s", session.id)
