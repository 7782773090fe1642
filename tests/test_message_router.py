"""MessageRouter frame parsing and dispatch tests"""

import json

import pytest

from message_router import MessageRouter


@pytest.fixture
def router(service):
    return MessageRouter(service)


class TestMessageRouter:
    @pytest.mark.asyncio
    async def test_join_frame(self, router, service, connect):
        session, handle = connect()

        await router.handle_frame(session, handle, json.dumps({"type": "join", "code": "1234", "peerId": "alice", "nickname": "Al"}))

        assert handle.last() == {"type": "joined", "success": True, "roomSize": 1, "existingPeers": []}
        assert service.rooms.get("1234").peers["alice"].nickname == "Al"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("frame", ["not json", "[1, 2]", '"join"', "{}", '{"type": 5}', '{"type": "chat", "text": "hi"}'])
    async def test_malformed_frames_ignored(self, router, service, connect, frame):
        session, handle = connect()

        await router.handle_frame(session, handle, frame)

        assert handle.sent == []
        assert handle.is_open
        assert not session.joined

    @pytest.mark.asyncio
    async def test_join_without_peer_id_rejected(self, router, connect, service):
        session, handle = connect()

        await router.handle_frame(session, handle, json.dumps({"type": "join", "code": "1234"}))

        assert handle.last() == {"type": "joined", "success": False, "error": "Invalid join request.", "roomSize": 0}
        assert service.rate_limiter.get("10.0.0.1") is None

    @pytest.mark.asyncio
    async def test_join_with_numeric_code_rejected_as_invalid_code(self, router, connect, service):
        session, handle = connect()

        await router.handle_frame(session, handle, json.dumps({"type": "join", "code": 1234, "peerId": "alice"}))

        assert handle.last()["error"] == "Invalid code. Please use 4 digits."
        assert len(service.rooms) == 0

    @pytest.mark.asyncio
    async def test_relay_before_join_dropped(self, router, service, connect):
        bob_session, bob = connect()
        await router.handle_frame(bob_session, bob, json.dumps({"type": "join", "code": "1234", "peerId": "bob"}))
        session, handle = connect()

        await router.handle_frame(session, handle, json.dumps({"type": "offer", "to": "bob", "offer": {"sdp": "x"}}))

        assert bob.of_type("offer") == []
        assert handle.sent == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message_type", ["offer", "answer", "ice-candidate"])
    async def test_relay_types_forwarded(self, router, connect, message_type):
        alice_session, alice = connect()
        bob_session, bob = connect()
        await router.handle_frame(alice_session, alice, json.dumps({"type": "join", "code": "1234", "peerId": "alice"}))
        await router.handle_frame(bob_session, bob, json.dumps({"type": "join", "code": "1234", "peerId": "bob"}))

        payload = {"type": message_type, "to": "alice", "data": {"nested": [1, "two", None]}}
        await router.handle_frame(bob_session, bob, json.dumps(payload))

        assert alice.last() == {**payload, "from": "bob"}
