"""ExpirationSweeper tests"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from sweeper import ExpirationSweeper


class TestExpirationSweeper:
    @pytest.mark.asyncio
    async def test_run_once_expires_locked_room(self, service, connect, clock):
        for peer_id in ("alice", "bob"):
            session, handle = connect()
            await service.join(session, handle, "1234", peer_id)
        sweeper = ExpirationSweeper(service, interval=60)

        clock.advance(4 * 60 * 60)
        assert await sweeper.run_once()

        assert service.rooms.get("1234") is None
        assert not service.room_lock.is_locked
        assert handle.of_type("session-expired")

    @pytest.mark.asyncio
    async def test_runs_periodically_until_stopped(self, service):
        service.expire_sessions = AsyncMock(return_value=False)
        sweeper = ExpirationSweeper(service, interval=0.01)

        sweeper.start()
        assert sweeper.running
        await asyncio.sleep(0.1)
        await sweeper.stop()

        assert not sweeper.running
        assert service.expire_sessions.await_count >= 2

    @pytest.mark.asyncio
    async def test_errors_do_not_stop_the_loop(self, service):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return False

        service.expire_sessions = AsyncMock(side_effect=flaky)
        sweeper = ExpirationSweeper(service, interval=0.01)

        sweeper.start()
        await asyncio.sleep(0.1)
        assert sweeper.running
        await sweeper.stop()

        assert service.expire_sessions.await_count >= 2

    @pytest.mark.asyncio
    async def test_stop_without_start(self, service):
        await ExpirationSweeper(service).stop()
