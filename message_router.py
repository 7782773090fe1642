import json

from pydantic import ValidationError

from backend import RoomService
from connection import ConnectionSession
from logging_config import get_logger
from schemas.signaling import RELAY_TYPES, JoinedMessage, JoinRequest

logger = get_logger(__name__)


class MessageRouter:
    """Validates inbound signaling frames and dispatches them to the RoomService.

    Malformed frames are logged and ignored; they never close the connection.
    Until a join succeeds every other frame from the connection is dropped.
    """

    def __init__(self, service: RoomService):
        self.service = service

    async def handle_frame(self, session: ConnectionSession, handle, data: str):
        try:
            message = json.loads(data)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Ignoring malformed frame from connection {session.connection_id}: {e}")
            return
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            logger.warning(f"Ignoring frame without a type from connection {session.connection_id}")
            return
        await self.dispatch(session, handle, message)

    async def dispatch(self, session: ConnectionSession, handle, message: dict):
        message_type = message["type"]
        if message_type == "join":
            await self.handle_join(session, handle, message)
        elif message_type in RELAY_TYPES:
            if not session.joined:
                logger.debug(f"Dropping {message_type} from unjoined connection {session.connection_id}")
                return
            await self.service.relay(session, message)
        else:
            logger.warning(f"Ignoring unknown message type {message_type!r} from connection {session.connection_id}")

    async def handle_join(self, session: ConnectionSession, handle, message: dict):
        try:
            request = JoinRequest.model_validate(message)
        except ValidationError as e:
            logger.info(f"Invalid join request from connection {session.connection_id}: {e.error_count()} errors")
            if any(error["loc"] and error["loc"][0] == "code" for error in e.errors()):
                error = self.service.invalid_code_error
            else:
                error = "Invalid join request."
            await handle.send(JoinedMessage(success=False, error=error).to_message())
            return
        await self.service.join(
            session,
            handle,
            request.code,
            request.peer_id,
            nickname=request.nickname,
            avatar=request.avatar,
        )
