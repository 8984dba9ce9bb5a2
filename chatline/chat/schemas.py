"""Pydantic schemas for chat sessions and messages."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from chatline.core.schemas import CamelModel
from chatline.users.schemas import UserPublic, UserSummary
from .models import MessageType


class MessageOut(CamelModel):
    id: UUID
    content: str
    type: MessageType
    sender_id: UUID
    receiver_id: Optional[UUID] = None
    session_id: UUID
    is_read: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    sender: Optional[UserSummary] = None


class SessionMemberOut(CamelModel):
    id: UUID
    user_id: UUID
    session_id: UUID
    joined_at: Optional[datetime] = None
    last_read_at: Optional[datetime] = None
    user: UserPublic


class ChatSessionOut(CamelModel):
    id: UUID
    name: Optional[str] = None
    is_group: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    users: List[SessionMemberOut] = []


class ChatSessionSummary(ChatSessionOut):
    last_message: Optional[MessageOut] = None
    unread_count: int = 0


class CreateSessionRequest(CamelModel):
    participant_id: UUID


class SendMessageRequest(CamelModel):
    content: str = Field(..., min_length=1)
    type: MessageType = MessageType.TEXT
