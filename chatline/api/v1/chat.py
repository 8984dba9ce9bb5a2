"""Chat session and message endpoints."""

import logging
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatline.api.dependencies import CurrentUser
from chatline.chat import ChatSessionManager, MessageHandler, MessageType
from chatline.chat.models import ChatSession
from chatline.chat.schemas import (
    ChatSessionOut,
    ChatSessionSummary,
    CreateSessionRequest,
    MessageOut,
    SendMessageRequest,
)
from chatline.core.database import get_db
from chatline.core.messages import (
    AUTH_NOT_AUTHORIZED,
    CHAT_MESSAGE_NOT_FOUND,
    CHAT_MESSAGE_SEND_FAILED,
    CHAT_PARTICIPANT_NOT_FOUND,
    CHAT_PARTICIPANT_SELF,
    CHAT_SESSION_CREATE_FAILED,
    CHAT_SESSION_NOT_FOUND,
)
from chatline.realtime import gateway
from chatline.users.service import UserService


logger = logging.getLogger("chatline.api.chat")

router = APIRouter(prefix="/chat", tags=["chat"])


def _member_session_or_404(db: Session, session_id: uuid.UUID, user_id: uuid.UUID) -> ChatSession:
    session = ChatSessionManager.get_member_session(db, session_id, user_id)
    if not session:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CHAT_SESSION_NOT_FOUND)
    return session


def _messages_out(messages) -> list[dict]:
    return [MessageOut.model_validate(m).to_wire() for m in messages]


@router.get("/sessions")
def list_sessions(current_user: CurrentUser, db: Session = Depends(get_db)):
    """Sessions of the current user with their last message and unread count."""
    result = []
    for session in ChatSessionManager.list_sessions(db, current_user.id):
        summary = ChatSessionSummary.model_validate(session)
        last_message = ChatSessionManager.last_message(db, session.id)
        summary.last_message = MessageOut.model_validate(last_message) if last_message else None
        summary.unread_count = ChatSessionManager.unread_count(db, session.id, current_user.id)
        result.append(summary.to_wire())
    return result


@router.get("/sessions/{session_id}")
def get_session(session_id: uuid.UUID, current_user: CurrentUser, db: Session = Depends(get_db)):
    session = _member_session_or_404(db, session_id, current_user.id)
    return ChatSessionOut.model_validate(session).to_wire()


@router.post("/sessions", status_code=status.HTTP_201_CREATED)
def create_session(
    payload: CreateSessionRequest,
    response: Response,
    current_user: CurrentUser,
    db: Session = Depends(get_db),
):
    """Create the 1:1 session with ``participantId``, or return the existing one."""
    if payload.participant_id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=CHAT_PARTICIPANT_SELF)

    if not UserService.get_user(db, payload.participant_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CHAT_PARTICIPANT_NOT_FOUND)

    try:
        session, created = ChatSessionManager.create_direct_session(
            db, current_user.id, payload.participant_id
        )
    except SQLAlchemyError:
        db.rollback()
        logger.error("Create chat session error", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=CHAT_SESSION_CREATE_FAILED,
        )

    if not created:
        response.status_code = status.HTTP_200_OK
    return ChatSessionOut.model_validate(session).to_wire()


@router.get("/sessions/{session_id}/messages")
def list_messages(
    session_id: uuid.UUID,
    current_user: CurrentUser,
    limit: int = Query(50, ge=1, le=200),
    before: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    """Page of history, oldest first; pass ``before`` to walk further back."""
    _member_session_or_404(db, session_id, current_user.id)
    messages = MessageHandler.get_session_messages(db, session_id, limit=limit, before=before)
    return _messages_out(messages)


@router.post("/sessions/{session_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_message(
    session_id: uuid.UUID,
    payload: SendMessageRequest,
    current_user: CurrentUser,
    db: Session = Depends(get_db),
):
    """Persist a message and push it to the session room like ``message:send``."""
    session = _member_session_or_404(db, session_id, current_user.id)
    receiver_id = ChatSessionManager.other_member_id(session, current_user.id)

    try:
        message = MessageHandler.create_message(
            db,
            session_id=session_id,
            sender_id=current_user.id,
            content=payload.content,
            message_type=payload.type,
            receiver_id=receiver_id,
        )
        ChatSessionManager.touch(db, session_id)
        wire = MessageHandler.serialize(message)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Send message error: session_id=%s", session_id, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=CHAT_MESSAGE_SEND_FAILED,
        )

    await gateway.messages.deliver(session_id, wire, receiver_id)
    return wire


@router.patch("/messages/{message_id}/read")
def mark_message_read(message_id: uuid.UUID, current_user: CurrentUser, db: Session = Depends(get_db)):
    message = MessageHandler.get_message(db, message_id)
    if not message:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CHAT_MESSAGE_NOT_FOUND)

    # Only the receiver can mark a message as read
    if message.receiver_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=AUTH_NOT_AUTHORIZED)

    message = MessageHandler.mark_read(db, message)
    return MessageOut.model_validate(message).to_wire()


@router.get("/sessions/{session_id}/media")
def list_media(session_id: uuid.UUID, current_user: CurrentUser, db: Session = Depends(get_db)):
    _member_session_or_404(db, session_id, current_user.id)
    return _messages_out(MessageHandler.get_messages_by_type(db, session_id, MessageType.IMAGE))


@router.get("/sessions/{session_id}/links")
def list_links(session_id: uuid.UUID, current_user: CurrentUser, db: Session = Depends(get_db)):
    _member_session_or_404(db, session_id, current_user.id)
    return _messages_out(MessageHandler.get_link_messages(db, session_id))


@router.get("/sessions/{session_id}/docs")
def list_docs(session_id: uuid.UUID, current_user: CurrentUser, db: Session = Depends(get_db)):
    _member_session_or_404(db, session_id, current_user.id)
    return _messages_out(MessageHandler.get_messages_by_type(db, session_id, MessageType.FILE))
