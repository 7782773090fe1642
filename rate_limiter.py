import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from constants import RATE_LIMIT_LOCKOUT_SECONDS, RATE_LIMIT_MAX_ATTEMPTS
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitEntry:
    attempts: int = 0
    locked_until: Optional[float] = None
    last_failure_at: Optional[float] = None


@dataclass
class RateLimitResult:
    allowed: bool
    error: Optional[str] = None
    remaining_seconds: Optional[int] = None


class RateLimiter:
    """Failed join attempts per originating address.

    After ``max_attempts`` failures the address is locked out for
    ``lockout_seconds``. Expired lockouts are dropped lazily by ``check`` and
    in bulk by ``sweep``, which also forgets addresses that stopped failing
    ``lockout_seconds`` ago without reaching the threshold.
    """

    def __init__(
        self,
        max_attempts: int = RATE_LIMIT_MAX_ATTEMPTS,
        lockout_seconds: float = RATE_LIMIT_LOCKOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self.clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, address: str) -> Optional[RateLimitEntry]:
        return self._entries.get(address)

    def check(self, address: str) -> RateLimitResult:
        now = self.clock()
        entry = self._entries.get(address)
        if entry and entry.locked_until is not None:
            if now < entry.locked_until:
                remaining_seconds = math.ceil(entry.locked_until - now)
                return RateLimitResult(
                    allowed=False,
                    error=f"Too many failed attempts. Please wait {remaining_seconds} seconds.",
                    remaining_seconds=remaining_seconds,
                )
            del self._entries[address]
            logger.debug(f"Lockout expired for {address}")
        return RateLimitResult(allowed=True)

    def record_failure(self, address: str):
        entry = self._entries.setdefault(address, RateLimitEntry())
        now = self.clock()
        entry.attempts += 1
        entry.last_failure_at = now
        logger.debug(f"Failed join attempt {entry.attempts}/{self.max_attempts} from {address}")
        if entry.attempts >= self.max_attempts and entry.locked_until is None:
            entry.locked_until = now + self.lockout_seconds
            logger.warning(f"Rate limit lockout for {address} ({self.lockout_seconds}s)")

    def clear(self, address: str):
        if self._entries.pop(address, None) is not None:
            logger.debug(f"Cleared rate limit record for {address}")

    def sweep(self, now: Optional[float] = None) -> int:
        """Remove expired lockouts and idle partial counters. Returns the count removed."""
        if now is None:
            now = self.clock()
        expired = [
            address
            for address, entry in self._entries.items()
            if self._is_expired(entry, now)
        ]
        for address in expired:
            del self._entries[address]
        if expired:
            logger.info(f"Swept {len(expired)} expired rate limit entries")
        return len(expired)

    def _is_expired(self, entry: RateLimitEntry, now: float) -> bool:
        if entry.locked_until is not None:
            return now >= entry.locked_until
        return entry.last_failure_at is not None and now - entry.last_failure_at >= self.lockout_seconds
