import uuid

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect

from connection import PeerHandle, get_client_address
from logging_config import get_logger
from message_router import MessageRouter
from schemas.signaling import HealthResponse

logger = get_logger(__name__)

signaling_router = APIRouter(tags=["signaling"])


@signaling_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    service = request.app.state.room_service
    return HealthResponse(status="ok", **service.status())


@signaling_router.websocket("/ws")
async def signaling_endpoint(websocket: WebSocket):
    """Signaling socket. The first useful frame is ``join``; after that
    offer/answer/ice-candidate frames are relayed to peers in the same room.
    """
    service = websocket.app.state.room_service
    router = MessageRouter(service)

    await websocket.accept()
    connection_id = str(uuid.uuid4())
    address = get_client_address(websocket)
    handle = PeerHandle(websocket, connection_id)
    session = service.open_session(handle, address)
    logger.info(f"WebSocket connection {connection_id} accepted from {address}")

    message_count = 0
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            message_count += 1
            logger.debug(f"Received frame #{message_count} from connection {connection_id}")

            data = message.get("text")
            if data is None and message.get("bytes") is not None:
                try:
                    data = message["bytes"].decode("utf-8")
                except UnicodeDecodeError:
                    logger.warning(f"Ignoring non UTF-8 binary frame from connection {connection_id}")
                    continue
            if data is None:
                logger.warning(f"Ignoring empty frame from connection {connection_id}")
                continue
            await router.handle_frame(session, handle, data)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for connection {connection_id} (peer {session.peer_id}, room {session.code})")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        await service.disconnect(session, handle)
        await handle.close()
