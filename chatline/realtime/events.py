"""Event names and inbound payload schemas for the real-time channel."""

from typing import Any, Optional
from uuid import UUID

from pydantic import Field

from chatline.core.schemas import CamelModel
from chatline.models.user import UserStatus

# Inbound (client -> server)
TYPING_START = "typing:start"
TYPING_STOP = "typing:stop"
MESSAGE_SEND = "message:send"
MESSAGE_READ = "message:read"
SESSION_JOIN = "session:join"
SESSION_LEAVE = "session:leave"
STATUS_UPDATE = "status:update"

# Outbound (server -> client)
USER_STATUS = "user:status"
USERS_ONLINE = "users:online"
USER_TYPING = "user:typing"
MESSAGE_NEW = "message:new"
NOTIFICATION_NEW = "notification:new"
# MESSAGE_READ is reused for the read receipt sent to the original sender
ERROR = "error"


class SessionPayload(CamelModel):
    session_id: UUID


class SendMessagePayload(CamelModel):
    session_id: UUID
    content: str = Field(..., min_length=1)
    # Unknown or missing types are normalised to TEXT, never rejected
    type: Optional[Any] = None
    receiver_id: Optional[UUID] = None


class ReadPayload(CamelModel):
    message_id: UUID


class StatusPayload(CamelModel):
    status: UserStatus
