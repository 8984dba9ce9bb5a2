"""In-memory map from user identity to their live connection."""

import logging
import uuid
from typing import Dict, Optional, Set

from .connection import Connection


logger = logging.getLogger("chatline.realtime.registry")


class ConnectionRegistry:
    """Tracks which connection currently speaks for each user.

    At most one entry per user: registering a second connection for the
    same user replaces the first (last-connected-wins). The map is
    process-local and starts empty on every boot.
    """

    def __init__(self) -> None:
        self._connections: Dict[uuid.UUID, Connection] = {}

    def register(self, user_id: uuid.UUID, connection: Connection) -> None:
        previous = self._connections.get(user_id)
        self._connections[user_id] = connection
        if previous is not None and previous is not connection:
            logger.info(
                "Registry entry replaced: user_id=%s, old=%s, new=%s",
                user_id,
                previous.id,
                connection.id,
            )

    def unregister(self, user_id: uuid.UUID, connection: Optional[Connection] = None) -> bool:
        """Remove the user's entry.

        When ``connection`` is given the entry is only removed if it still
        points at that connection. Returns True if an entry was removed.
        """
        current = self._connections.get(user_id)
        if current is None:
            return False
        if connection is not None and current is not connection:
            return False
        del self._connections[user_id]
        return True

    def lookup(self, user_id: uuid.UUID) -> Optional[Connection]:
        return self._connections.get(user_id)

    def list_online_user_ids(self) -> Set[uuid.UUID]:
        return set(self._connections)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)
