from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from backend import create_backend
from constants import LOG_FILE, LOG_LEVEL, UPLOAD_DIR, UPLOAD_URL_PREFIX
from coordinator import RoomCoordinator
from gateway import ConnectionGateway
from logging_config import get_logger, setup_logging
from presence import PresenceTracker
from routers.rooms import rooms_router
from routers.uploads import uploads_router
from store import RoomStore
from uploads import MediaIngestService

logger = get_logger(__name__)


def create_app(backend=None, upload_dir: Optional[str] = None) -> FastAPI:
    """Build the application and the objects it owns.

    The room store is loaded when the app starts and flushed when it stops.
    """
    backend = backend if backend is not None else create_backend()
    upload_dir = upload_dir or UPLOAD_DIR

    store = RoomStore(backend)
    presence = PresenceTracker()
    media_service = MediaIngestService(store, upload_dir=upload_dir)
    coordinator = RoomCoordinator(store, presence, media_validator=media_service.claim)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.load()
        logger.info("Room store loaded, accepting connections")
        yield
        await store.flush()
        store.persist()
        logger.info("Room store flushed on shutdown")

    app = FastAPI(lifespan=lifespan)

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.store = store
    app.state.presence = presence
    app.state.media_service = media_service
    app.state.coordinator = coordinator

    app.include_router(rooms_router)
    app.include_router(uploads_router)
    app.mount(UPLOAD_URL_PREFIX.rstrip("/"), StaticFiles(directory=upload_dir), name="uploads")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Real-time channel: join_room, send_text, send_media in; join_result, history, presence, new_message out."""
        await ConnectionGateway(websocket, coordinator).run()

    logger.info("FastAPI application initialized")
    return app


def build_default_app() -> FastAPI:
    setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
    return create_app()
