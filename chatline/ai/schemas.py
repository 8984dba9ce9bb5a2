"""Pydantic schemas for AI chat."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from chatline.core.schemas import CamelModel
from .models import AIMessageRole


class AIChatSessionOut(CamelModel):
    id: UUID
    user_id: UUID
    title: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    message_count: int = 0


class AIMessageOut(CamelModel):
    id: UUID
    session_id: UUID
    role: AIMessageRole
    content: str
    created_at: Optional[datetime] = None


class CreateAISessionRequest(CamelModel):
    title: Optional[str] = Field(None, max_length=200)


class SendAIMessageRequest(CamelModel):
    content: str = Field(..., min_length=1)
