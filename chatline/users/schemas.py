"""Pydantic schemas for user profiles and presence."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, HttpUrl

from chatline.core.schemas import CamelModel
from chatline.models.user import UserStatus


class UserSummary(CamelModel):
    """Minimal profile attached to every message."""
    id: UUID
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class UserPublic(UserSummary):
    email: str
    username: Optional[str] = None
    bio: Optional[str] = None
    status: UserStatus
    last_seen: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ProfileUpdate(CamelModel):
    display_name: Optional[str] = Field(None, max_length=100)
    username: Optional[str] = Field(None, min_length=1, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)
    avatar_url: Optional[HttpUrl] = None


class StatusUpdate(CamelModel):
    status: UserStatus


class StatusOut(CamelModel):
    id: UUID
    status: UserStatus
    last_seen: Optional[datetime] = None
