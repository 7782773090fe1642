import asyncio
import re
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from connection import ConnectionSession
from constants import CODE_LENGTH, ROOM_CAPACITY, SESSION_MAX_AGE_SECONDS
from logging_config import get_logger
from rate_limiter import RateLimiter
from rooms import RoomLock, RoomTable
from schemas.signaling import JoinedMessage, PeerJoinedMessage, PeerLeftMessage, SessionExpiredMessage

logger = get_logger(__name__)

Outbound = List[Tuple[Any, dict]]


async def deliver(outbound: Outbound):
    """Fire-and-forget fan-out; one failing recipient never affects the others."""
    if not outbound:
        return
    results = await asyncio.gather(*(handle.send(message) for handle, message in outbound), return_exceptions=True)
    for (handle, message), result in zip(outbound, results):
        if isinstance(result, Exception):
            logger.warning(f"Delivery of {message.get('type')} to {handle} failed: {result}")


class RoomService:
    """Owns the room table, the process-wide lock and the rate limiter.

    Every operation runs inside one ``asyncio.Lock`` critical section, so
    message handlers and the expiration sweeper never observe a half-applied
    mutation. Network sends happen after the critical section is released.
    """

    def __init__(
        self,
        code_length: int = CODE_LENGTH,
        capacity: int = ROOM_CAPACITY,
        session_max_age: float = SESSION_MAX_AGE_SECONDS,
        rate_limiter: Optional[RateLimiter] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.clock = clock
        self.code_length = code_length
        self.session_max_age = session_max_age
        self.code_pattern = re.compile(f"[0-9]{{{code_length}}}")
        self.rooms = RoomTable(clock=clock)
        self.room_lock = RoomLock(self.rooms, capacity=capacity)
        self.rate_limiter = rate_limiter or RateLimiter(clock=clock)
        self.connections: Dict[str, Any] = {}
        self._lock = asyncio.Lock()
        logger.info(f"RoomService initialized: code_length={code_length}, capacity={capacity}, session_max_age={session_max_age}s")

    @property
    def invalid_code_error(self) -> str:
        return f"Invalid code. Please use {self.code_length} digits."

    def is_valid_code(self, code) -> bool:
        return isinstance(code, str) and self.code_pattern.fullmatch(code) is not None

    def open_session(self, handle, address: str) -> ConnectionSession:
        self.connections[handle.connection_id] = handle
        logger.debug(f"Connection {handle.connection_id} opened from {address} ({len(self.connections)} open)")
        return ConnectionSession(connection_id=handle.connection_id, address=address)

    async def join(self, session: ConnectionSession, handle, code, peer_id: str, nickname: Optional[str] = None, avatar: Optional[str] = None) -> JoinedMessage:
        """Attach a connection to the room for ``code``; the reply is sent to ``handle``."""
        outbound: Outbound = []
        async with self._lock:
            reply = self._join_locked(session, handle, code, peer_id, nickname, avatar, outbound)
        outbound.append((handle, reply.to_message()))
        await deliver(outbound)
        return reply

    def _join_locked(self, session, handle, code, peer_id, nickname, avatar, outbound: Outbound) -> JoinedMessage:
        address = session.address
        if session.joined:
            logger.warning(f"Connection {session.connection_id} sent a second join (already in room {session.code})")
            return JoinedMessage(success=False, error="Already joined a room on this connection.")

        if not self.is_valid_code(code):
            logger.info(f"Join rejected from {address}: invalid code format")
            return JoinedMessage(success=False, error=self.invalid_code_error)

        rate_limit = self.rate_limiter.check(address)
        if not rate_limit.allowed:
            logger.info(f"Join rejected from {address}: locked out for {rate_limit.remaining_seconds}s")
            return JoinedMessage(success=False, error=rate_limit.error, remaining_seconds=rate_limit.remaining_seconds)

        join_check = self.room_lock.can_join(code)
        if not join_check.allowed:
            self.rate_limiter.record_failure(address)
            logger.info(f"Join rejected from {address}: {join_check.error}")
            return JoinedMessage(success=False, error=join_check.error)

        existing = self.rooms.get(code)
        if existing is not None and peer_id in existing.peers:
            logger.warning(f"Join rejected from {address}: peer id {peer_id} already in room {code}")
            return JoinedMessage(success=False, error="Peer id already in use in this room.")

        self.rate_limiter.clear(address)
        session.bind(code, peer_id)

        room = self.rooms.get_or_create(code)
        existing_peers = list(room.peers.keys())
        notice = PeerJoinedMessage(peer_id=peer_id, nickname=nickname, avatar=avatar).to_message()
        outbound.extend((entry.handle, notice) for entry in room.peers.values())

        room = self.rooms.add_peer(code, peer_id, handle, nickname=nickname, avatar=avatar)
        self.room_lock.lock_if_needed(code)
        return JoinedMessage(success=True, room_size=room.size, existing_peers=existing_peers)

    async def relay(self, session: ConnectionSession, message: dict) -> bool:
        """Forward a negotiation message to ``message['to']`` in the sender's room."""
        if not session.joined:
            return False
        target_id = message.get("to")
        if not isinstance(target_id, str):
            logger.debug(f"Dropping {message.get('type')} from {session.peer_id}: missing target")
            return False
        async with self._lock:
            room = self.rooms.get(session.code)
            entry = room.peers.get(target_id) if room else None
            target = entry.handle if entry else None
        if target is None or not target.is_open:
            logger.debug(f"Dropping {message.get('type')} from {session.peer_id}: {target_id} not in room {session.code}")
            return False
        return await target.send({**message, "from": session.peer_id})

    async def disconnect(self, session: ConnectionSession, handle):
        outbound: Outbound = []
        async with self._lock:
            self.connections.pop(handle.connection_id, None)
            if session.joined:
                self._remove_peer_locked(session.code, session.peer_id, handle, outbound)
        await deliver(outbound)

    def _remove_peer_locked(self, code: str, peer_id: str, handle, outbound: Outbound):
        result = self.rooms.remove_peer(code, peer_id, handle=handle)
        if not result.removed:
            return
        if result.room_deleted:
            self.room_lock.unlock_if_empty(code)
            return
        notice = PeerLeftMessage(peer_id=peer_id).to_message()
        outbound.extend((remaining, notice) for remaining in result.remaining)

    async def expire_sessions(self) -> bool:
        """Force-close the locked room once it exceeds the maximum session age.

        Also reclaims expired rate limit lockouts. Returns True if a session expired.
        """
        expired_handles = []
        expired = False
        async with self._lock:
            now = self.clock()
            locked_at = self.room_lock.locked_at
            if self.room_lock.is_locked and locked_at is not None and now - locked_at >= self.session_max_age:
                code = self.room_lock.locked_code
                room = self.rooms.delete(code)
                self.room_lock.clear()
                expired = True
                if room is not None:
                    expired_handles = room.handles()
                logger.info(f"Room {code} expired after {self.session_max_age}s with {len(expired_handles)} peers")
            self.rate_limiter.sweep(now)

        if expired_handles:
            notice = SessionExpiredMessage(
                message=f"Session expired after {self.session_max_age / 3600:g} hours. Please start a new session."
            ).to_message()
            await asyncio.gather(*(self._expire_connection(handle, notice) for handle in expired_handles), return_exceptions=True)
        return expired

    async def _expire_connection(self, handle, notice: dict):
        if handle.is_open:
            await handle.send(notice)
        await handle.close(code=1000, reason="Session expired")

    async def shutdown(self):
        """Close every open connection and drop all state."""
        async with self._lock:
            handles = list(self.connections.values())
            self.connections.clear()
            for code in self.rooms.codes():
                self.rooms.delete(code)
            self.room_lock.clear()
        logger.info(f"RoomService shutting down, closing {len(handles)} connections")
        await asyncio.gather(*(handle.close(code=1001, reason="Server shutting down") for handle in handles), return_exceptions=True)

    def status(self) -> dict:
        return {
            "active_rooms": len(self.rooms),
            "locked": self.room_lock.is_locked,
            "connections": len(self.connections),
        }
