import asyncio
from typing import Optional

from backend import RoomService
from constants import SWEEP_INTERVAL_SECONDS
from logging_config import get_logger

logger = get_logger(__name__)


class ExpirationSweeper:
    """Background task that expires the locked session and old lockouts."""

    def __init__(self, service: RoomService, interval: float = SWEEP_INTERVAL_SECONDS):
        self.service = service
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"Expiration sweeper started (every {self.interval}s)")

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiration sweeper stopped")

    async def run_once(self) -> bool:
        return await self.service.expire_sessions()

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in expiration sweep: {e}", exc_info=True)
