import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import TimestampedUUIDModel


class RefreshToken(TimestampedUUIDModel):
    """Issued refresh tokens; a token is only honoured while its row exists."""

    __tablename__ = "refresh_tokens"

    token: Mapped[str] = mapped_column(String(1024), unique=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
