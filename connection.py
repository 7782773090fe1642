import json
from dataclasses import dataclass
from typing import Optional

from fastapi import WebSocket
from fastapi.websockets import WebSocketState

from constants import TRUST_FORWARDED_FOR
from logging_config import get_logger

logger = get_logger(__name__)


def get_client_address(websocket: WebSocket, trust_forwarded_for: bool = TRUST_FORWARDED_FOR) -> str:
    """Originating address used for rate limiting.

    Behind a reverse proxy the first X-Forwarded-For hop is the real client.
    """
    if trust_forwarded_for:
        forwarded = websocket.headers.get("x-forwarded-for")
        if forwarded:
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop
    if websocket.client and websocket.client.host:
        return websocket.client.host
    return "unknown"


class PeerHandle:
    """Send side of one participant's WebSocket."""

    def __init__(self, websocket: WebSocket, connection_id: str):
        self.websocket = websocket
        self.connection_id = connection_id

    def __repr__(self):
        return f"PeerHandle({self.connection_id})"

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, message: dict) -> bool:
        """Best-effort send. Returns False when the frame could not be delivered."""
        if not self.is_open:
            logger.debug(f"Dropping {message.get('type')} for closed connection {self.connection_id}")
            return False
        try:
            await self.websocket.send_text(json.dumps(message))
            return True
        except Exception as e:
            logger.warning(f"Error sending {message.get('type')} to connection {self.connection_id}: {e}")
            return False

    async def close(self, code: int = 1000, reason: str = ""):
        if WebSocketState.DISCONNECTED in (self.websocket.client_state, self.websocket.application_state):
            return
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.debug(f"Error closing connection {self.connection_id}: {e}")


@dataclass
class ConnectionSession:
    """Per-connection join state. ``code`` and ``peer_id`` are bound exactly once."""

    connection_id: str
    address: str
    code: Optional[str] = None
    peer_id: Optional[str] = None

    @property
    def joined(self) -> bool:
        return self.code is not None

    def bind(self, code: str, peer_id: str):
        if self.joined:
            raise RuntimeError(f"Connection {self.connection_id} already joined room {self.code}")
        self.code = code
        self.peer_id = peer_id
