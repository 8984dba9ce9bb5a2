"""Real-time presence and message delivery over WebSockets."""

from chatline.core.database import SessionLocal
from .connection import Connection
from .gateway import RealtimeGateway
from .hub import RealtimeHub
from .presence import PresenceBroadcaster, PresenceUpdateError
from .registry import ConnectionRegistry
from .relays import MessageRelay, ReadReceiptRelay, SessionSubscriptionRelay, TypingRelay
from .rooms import RoomManager, room_key

# Process-wide instances; the registry lives and dies with this process
hub = RealtimeHub()
gateway = RealtimeGateway(hub, SessionLocal)

__all__ = [
    "Connection",
    "ConnectionRegistry",
    "MessageRelay",
    "PresenceBroadcaster",
    "PresenceUpdateError",
    "ReadReceiptRelay",
    "RealtimeGateway",
    "RealtimeHub",
    "RoomManager",
    "SessionSubscriptionRelay",
    "TypingRelay",
    "gateway",
    "hub",
    "room_key",
]
