"""WebSocket endpoint for presence, typing and message delivery."""

from typing import Optional

from fastapi import APIRouter, Query, WebSocket

from chatline.realtime import gateway


router = APIRouter(tags=["realtime"])


def _bearer_token(websocket: WebSocket) -> Optional[str]:
    header = websocket.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


@router.websocket("/ws")
async def realtime_websocket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
):
    """
    Real-time channel.

    Connection URL: ws://localhost:8000/api/v1/ws?token={access_token}
    (or send ``Authorization: Bearer {access_token}`` on the handshake).

    Frame format, both directions:
    {
        "event": "message:send" | "typing:start" | ... ,
        "data": {...}
    }
    """
    await gateway.serve(websocket, token or _bearer_token(websocket))
