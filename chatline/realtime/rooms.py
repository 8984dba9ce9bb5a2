"""Broadcast groups, one per chat session."""

import logging
import uuid
from typing import Dict, Iterable, List, Set

from .connection import Connection


logger = logging.getLogger("chatline.realtime.rooms")

ROOM_PREFIX = "chat:"


def room_key(session_id: uuid.UUID | str) -> str:
    if isinstance(session_id, str) and session_id.startswith(ROOM_PREFIX):
        return session_id
    return f"{ROOM_PREFIX}{session_id}"


class RoomManager:
    """Subscribes connections to session rooms.

    Subscriptions are optimistic: ``join`` does not check membership. The
    message relay re-checks membership against the database before any
    write, so a stale or unauthorised subscription can never be used to
    post into a session.
    """

    def __init__(self) -> None:
        self._members: Dict[str, Set[Connection]] = {}
        self._rooms_by_connection: Dict[Connection, Set[str]] = {}

    def join(self, connection: Connection, session_id: uuid.UUID | str) -> str:
        key = room_key(session_id)
        self._members.setdefault(key, set()).add(connection)
        self._rooms_by_connection.setdefault(connection, set()).add(key)
        return key

    def subscribe_all(
        self,
        connection: Connection,
        session_ids: Iterable[uuid.UUID | str],
    ) -> List[str]:
        return [self.join(connection, session_id) for session_id in session_ids]

    def leave(self, connection: Connection, session_id: uuid.UUID | str) -> None:
        key = room_key(session_id)
        members = self._members.get(key)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._members[key]

        rooms = self._rooms_by_connection.get(connection)
        if rooms is not None:
            rooms.discard(key)
            if not rooms:
                del self._rooms_by_connection[connection]

    def drop(self, connection: Connection) -> None:
        """Remove a connection from every room it was subscribed to."""
        for key in self._rooms_by_connection.pop(connection, set()):
            members = self._members.get(key)
            if members is None:
                continue
            members.discard(connection)
            if not members:
                del self._members[key]

    def members(self, session_id: uuid.UUID | str) -> Set[Connection]:
        return set(self._members.get(room_key(session_id), set()))

    def rooms_of(self, connection: Connection) -> Set[str]:
        return set(self._rooms_by_connection.get(connection, set()))
