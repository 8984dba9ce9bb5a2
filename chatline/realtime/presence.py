"""Durable presence state plus the global ``user:status`` broadcast."""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatline.models.base import utcnow
from chatline.models.user import UserStatus
from chatline.users.service import UserService
from .events import USER_STATUS
from .hub import RealtimeHub


logger = logging.getLogger("chatline.realtime.presence")


class PresenceUpdateError(Exception):
    """A status change could not be saved and the caller asked to know."""


class PresenceBroadcaster:
    """Persists status transitions and announces them to every connection.

    ONLINE on connect, OFFLINE on disconnect, anything else only when the
    client asks for it. There is no idle detection. A failed write is
    logged and the broadcast still goes out, so the database can briefly
    lag behind what clients were told.
    """

    def __init__(self, hub: RealtimeHub, session_factory: Callable[[], Session]) -> None:
        self.hub = hub
        self._session_factory = session_factory

    async def online(self, user_id: uuid.UUID) -> Dict[str, Any]:
        return await self.set_status(user_id, UserStatus.ONLINE)

    async def offline(self, user_id: uuid.UUID) -> Dict[str, Any]:
        return await self.set_status(user_id, UserStatus.OFFLINE)

    async def set_status(
        self,
        user_id: uuid.UUID,
        status: UserStatus,
        require_persisted: bool = False,
    ) -> Dict[str, Any]:
        """Save and announce a status.

        With ``require_persisted`` a failed write raises
        ``PresenceUpdateError`` and nothing is broadcast.
        """
        seen_at = utcnow()
        if not self._persist(user_id, status, seen_at) and require_persisted:
            raise PresenceUpdateError(f"status {status.value} not saved for {user_id}")

        payload = {
            "userId": str(user_id),
            "status": status.value,
            "lastSeen": seen_at.isoformat(),
        }
        await self.hub.emit_all(USER_STATUS, payload)
        return payload

    def _persist(self, user_id: uuid.UUID, status: UserStatus, seen_at: datetime) -> bool:
        try:
            with self._session_factory() as db:
                if UserService.set_status(db, user_id, status, seen_at=seen_at) is None:
                    logger.warning("Presence update for unknown user_id=%s", user_id)
                return True
        except SQLAlchemyError:
            logger.error(
                "Failed to persist presence: user_id=%s, status=%s",
                user_id,
                status.value,
                exc_info=True,
            )
            return False
