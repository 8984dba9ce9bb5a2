"""A single authenticated real-time connection."""

import logging
import uuid
from typing import Any

from fastapi import WebSocket


logger = logging.getLogger("chatline.realtime")


class Connection:
    """One accepted WebSocket bound to the identity it authenticated with.

    The identity is fixed for the lifetime of the connection. Frames are
    JSON objects of the form ``{"event": <name>, "data": <payload>}``.
    """

    def __init__(self, websocket: WebSocket, user_id: uuid.UUID, email: str) -> None:
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.user_id = user_id
        self.email = email

    async def emit(self, event: str, data: Any) -> bool:
        """Send one event frame. Returns False if the socket could not be written."""
        try:
            await self.websocket.send_json({"event": event, "data": data})
            return True
        except Exception as e:
            logger.warning(
                "Failed to send %s to connection %s (user_id=%s): %s",
                event,
                self.id,
                self.user_id,
                e,
            )
            return False

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, user_id={self.user_id!s})"
