"""Fan-out over the live connection set."""

import logging
import uuid
from typing import Any, Iterable, Optional, Set

from .connection import Connection
from .registry import ConnectionRegistry
from .rooms import RoomManager


logger = logging.getLogger("chatline.realtime.hub")


class RealtimeHub:
    """Owns every live connection plus the registry and room subscriptions.

    All mutation happens from connection handlers on the event loop, so
    no locking is needed; broadcasts iterate over snapshots because a send
    may suspend and let another handler attach or detach a connection.
    """

    def __init__(self) -> None:
        self.registry = ConnectionRegistry()
        self.rooms = RoomManager()
        self.connections: Set[Connection] = set()

    def attach(self, connection: Connection) -> None:
        self.connections.add(connection)
        self.registry.register(connection.user_id, connection)
        logger.info(
            "Connection attached: connection_id=%s, user_id=%s, total_connections=%d",
            connection.id,
            connection.user_id,
            len(self.connections),
        )

    def detach(self, connection: Connection) -> bool:
        """Forget a connection. Returns True if it was the user's registry entry."""
        self.connections.discard(connection)
        self.rooms.drop(connection)
        removed = self.registry.unregister(connection.user_id, connection)
        logger.info(
            "Connection detached: connection_id=%s, user_id=%s, total_connections=%d",
            connection.id,
            connection.user_id,
            len(self.connections),
        )
        return removed

    async def emit_all(self, event: str, data: Any) -> int:
        """Send to every live connection."""
        return await self._deliver(list(self.connections), event, data)

    async def emit_room(
        self,
        session_id: uuid.UUID | str,
        event: str,
        data: Any,
        exclude: Optional[Connection] = None,
    ) -> int:
        """Send to every connection subscribed to a session's room."""
        targets = [c for c in self.rooms.members(session_id) if c is not exclude]
        return await self._deliver(targets, event, data)

    async def emit_user(self, user_id: uuid.UUID, event: str, data: Any) -> bool:
        """Send to the user's registered connection, if they are online."""
        connection = self.registry.lookup(user_id)
        if connection is None:
            return False
        return await self._deliver([connection], event, data) == 1

    def is_online(self, user_id: uuid.UUID) -> bool:
        return user_id in self.registry

    async def _deliver(self, targets: Iterable[Connection], event: str, data: Any) -> int:
        sent_count = 0
        failed = []
        for connection in targets:
            if await connection.emit(event, data):
                sent_count += 1
            else:
                failed.append(connection)

        # Stop fanning out to dead sockets; the registry entry is released
        # by the connection's own disconnect sequence.
        for connection in failed:
            self.connections.discard(connection)
            self.rooms.drop(connection)

        return sent_count
