from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend import RoomService
from constants import CORS_ALLOW_ORIGINS, LOG_FILE, LOG_LEVEL, SWEEP_INTERVAL_SECONDS
from logging_config import get_logger, setup_logging
from routers.signaling import signaling_router
from sweeper import ExpirationSweeper

setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


def create_app(service: RoomService = None, sweep_interval: float = SWEEP_INTERVAL_SECONDS) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        room_service = service or RoomService()
        sweeper = ExpirationSweeper(room_service, interval=sweep_interval)
        app.state.room_service = room_service
        app.state.sweeper = sweeper
        sweeper.start()
        logger.info("Signaling service started")
        try:
            yield
        finally:
            await sweeper.stop()
            await room_service.shutdown()
            logger.info("Signaling service stopped")

    app = FastAPI(title="Voice Code Signaling", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(signaling_router)
    return app


app = create_app()

logger.info("FastAPI application initialized")
