"""Chat sessions, membership and messages."""

from .models import ChatSession, ChatSessionUser, Message, MessageType
from .sessions import ChatSessionManager
from .messages import MessageHandler

__all__ = [
    "ChatSession",
    "ChatSessionUser",
    "Message",
    "MessageType",
    "ChatSessionManager",
    "MessageHandler",
]
