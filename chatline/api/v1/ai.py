"""AI assistant chat endpoints."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from openai import OpenAIError
from sqlalchemy.orm import Session

from chatline.ai import AIChatService, AIMessageRole
from chatline.ai.models import AIChatSession
from chatline.ai.schemas import (
    AIChatSessionOut,
    AIMessageOut,
    CreateAISessionRequest,
    SendAIMessageRequest,
)
from chatline.api.dependencies import CurrentUser
from chatline.core.config import settings
from chatline.core.database import get_db
from chatline.core.messages import (
    AI_EMPTY_RESPONSE,
    AI_MESSAGE_FAILED,
    AI_SERVICE_NOT_CONFIGURED,
    AI_SESSION_DELETED,
    AI_SESSION_NOT_FOUND,
)
from chatline.services.ai_service import AIProvider, ChatTurn, OpenAIProvider


logger = logging.getLogger("chatline.api.ai")

router = APIRouter(prefix="/ai", tags=["ai"])

_PROVIDER_ROLES = {
    AIMessageRole.USER.value: "user",
    AIMessageRole.ASSISTANT.value: "assistant",
}


def get_ai_provider() -> AIProvider:
    """Get OpenAI provider instance."""
    if not settings.OPENAI_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=AI_SERVICE_NOT_CONFIGURED,
        )
    return OpenAIProvider(api_key=settings.OPENAI_API_KEY, default_model=settings.AI_MODEL)


def _owned_session_or_404(db: Session, session_id: uuid.UUID, user_id: uuid.UUID) -> AIChatSession:
    session = AIChatService.get_session(db, session_id, user_id)
    if not session:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=AI_SESSION_NOT_FOUND)
    return session


@router.get("/sessions")
def list_sessions(current_user: CurrentUser, db: Session = Depends(get_db)):
    result = []
    for session, count in AIChatService.list_sessions(db, current_user.id):
        out = AIChatSessionOut.model_validate(session)
        out.message_count = count
        result.append(out.to_wire())
    return result


@router.post("/sessions", status_code=status.HTTP_201_CREATED)
def create_session(
    current_user: CurrentUser,
    payload: CreateAISessionRequest | None = None,
    db: Session = Depends(get_db),
):
    title = payload.title if payload else None
    session = AIChatService.create_session(db, current_user.id, title)
    return AIChatSessionOut.model_validate(session).to_wire()


@router.get("/sessions/{session_id}/messages")
def list_messages(session_id: uuid.UUID, current_user: CurrentUser, db: Session = Depends(get_db)):
    _owned_session_or_404(db, session_id, current_user.id)
    return [AIMessageOut.model_validate(m).to_wire() for m in AIChatService.get_messages(db, session_id)]


@router.post("/sessions/{session_id}/messages")
async def send_message(
    session_id: uuid.UUID,
    payload: SendAIMessageRequest,
    current_user: CurrentUser,
    db: Session = Depends(get_db),
    provider: AIProvider = Depends(get_ai_provider),
):
    """Store the user's message, ask the model, store and return its reply."""
    session = _owned_session_or_404(db, session_id, current_user.id)

    history = [
        ChatTurn(role=_PROVIDER_ROLES.get(m.role, "system"), content=m.content)
        for m in AIChatService.recent_history(db, session_id, settings.AI_HISTORY_LIMIT)
    ]
    user_message = AIChatService.add_message(db, session, AIMessageRole.USER, payload.content)

    try:
        response = await provider.chat_completion(history, payload.content)
    except OpenAIError:
        logger.error("Send AI message error: session_id=%s", session_id, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=AI_MESSAGE_FAILED,
        )

    ai_message = AIChatService.add_message(
        db, session, AIMessageRole.ASSISTANT, response.content or AI_EMPTY_RESPONSE
    )

    return {
        "userMessage": AIMessageOut.model_validate(user_message).to_wire(),
        "aiMessage": AIMessageOut.model_validate(ai_message).to_wire(),
    }


@router.delete("/sessions/{session_id}")
def delete_session(session_id: uuid.UUID, current_user: CurrentUser, db: Session = Depends(get_db)):
    session = _owned_session_or_404(db, session_id, current_user.id)
    AIChatService.delete_session(db, session)
    return {"message": AI_SESSION_DELETED}
