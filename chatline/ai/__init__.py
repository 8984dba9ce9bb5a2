"""Conversations with the AI assistant."""

from .models import AIChatSession, AIMessage, AIMessageRole
from .service import AIChatService

__all__ = ["AIChatSession", "AIMessage", "AIMessageRole", "AIChatService"]
