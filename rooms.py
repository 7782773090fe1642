import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from constants import LOCK_THRESHOLD, ROOM_CAPACITY
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class PeerEntry:
    handle: Any
    nickname: Optional[str] = None
    avatar: Optional[str] = None


@dataclass
class Room:
    code: str
    created_at: float
    peers: Dict[str, PeerEntry] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.peers)

    def handles(self) -> list:
        return [entry.handle for entry in self.peers.values()]


@dataclass
class RemovalResult:
    removed: bool
    room_deleted: bool = False
    remaining: List[Any] = field(default_factory=list)


@dataclass
class JoinCheck:
    allowed: bool
    error: Optional[str] = None


class RoomTable:
    """Code -> Room. Rooms exist only while they have at least one peer."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._rooms: Dict[str, Room] = {}

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, code: str) -> bool:
        return code in self._rooms

    def get(self, code: str) -> Optional[Room]:
        return self._rooms.get(code)

    def codes(self) -> List[str]:
        return list(self._rooms)

    def get_or_create(self, code: str) -> Room:
        room = self._rooms.get(code)
        if room is None:
            room = Room(code=code, created_at=self.clock())
            self._rooms[code] = room
            logger.info(f"Room {code} created")
        return room

    def add_peer(self, code: str, peer_id: str, handle, nickname: Optional[str] = None, avatar: Optional[str] = None) -> Room:
        # Capacity is checked by RoomLock.can_join before we get here
        room = self.get_or_create(code)
        room.peers[peer_id] = PeerEntry(handle=handle, nickname=nickname, avatar=avatar)
        logger.info(f"Peer {peer_id} joined room {code} ({room.size} peers)")
        return room

    def remove_peer(self, code: str, peer_id: str, handle=None) -> RemovalResult:
        """Detach a peer; deletes the room when it becomes empty.

        When ``handle`` is given the peer is only removed if it is still bound
        to that handle.
        """
        room = self._rooms.get(code)
        if room is None:
            return RemovalResult(removed=False)
        entry = room.peers.get(peer_id)
        if entry is None or (handle is not None and entry.handle is not handle):
            return RemovalResult(removed=False)

        del room.peers[peer_id]
        logger.info(f"Peer {peer_id} left room {code} ({room.size} peers)")
        if room.size == 0:
            del self._rooms[code]
            logger.info(f"Room {code} deleted")
            return RemovalResult(removed=True, room_deleted=True)
        return RemovalResult(removed=True, remaining=room.handles())

    def delete(self, code: str) -> Optional[Room]:
        room = self._rooms.pop(code, None)
        if room is not None:
            logger.info(f"Room {code} deleted with {room.size} peers")
        return room


class RoomLock:
    """Process-wide gate: once a room reaches two peers it is the only joinable code."""

    def __init__(self, rooms: RoomTable, capacity: int = ROOM_CAPACITY, lock_threshold: int = LOCK_THRESHOLD):
        self.rooms = rooms
        self.capacity = capacity
        self.lock_threshold = lock_threshold
        self.locked_code: Optional[str] = None
        self.locked_at: Optional[float] = None

    @property
    def is_locked(self) -> bool:
        return self.locked_code is not None

    def can_join(self, code: str) -> JoinCheck:
        if self.locked_code is not None and code != self.locked_code:
            return JoinCheck(
                allowed=False,
                error="A session is already active. Please use the correct code to join.",
            )
        room = self.rooms.get(code)
        if room is not None and room.size >= self.capacity:
            return JoinCheck(
                allowed=False,
                error=f"Room is full. Maximum {self.capacity} participants allowed.",
            )
        return JoinCheck(allowed=True)

    def lock_if_needed(self, code: str):
        if self.locked_code is not None:
            return
        room = self.rooms.get(code)
        if room is not None and room.size >= self.lock_threshold:
            self.locked_code = code
            self.locked_at = room.created_at
            logger.info(f"Room locked to code {code}")

    def unlock_if_empty(self, code: str):
        if self.locked_code == code and code not in self.rooms:
            self.clear()
            logger.info("Room unlocked - session ended")

    def clear(self):
        self.locked_code = None
        self.locked_at = None
