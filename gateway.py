import json
from typing import Optional

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from coordinator import RoomCoordinator
from errors import ChatError
from logging_config import get_logger
from schemas.rooms import Frame, JoinResult, JoinRoomRequest, SendMediaRequest, SendTextRequest
from session import Connection

logger = get_logger(__name__)


class ConnectionGateway:
    """Bridges one client WebSocket to the room coordinator.

    Inbound frames look like ``{"event": "join_room", "data": {...}}``; outbound
    frames use the same envelope. Frames that cannot be parsed are logged and
    ignored, the connection stays open.
    """

    def __init__(self, websocket: WebSocket, coordinator: RoomCoordinator):
        self.websocket = websocket
        self.coordinator = coordinator
        self.conn: Optional[Connection] = None
        self._handlers = {
            "join_room": self.on_join_room,
            "send_text": self.on_send_text,
            "send_media": self.on_send_media,
        }

    async def send(self, frame: dict):
        await self.websocket.send_text(json.dumps(frame, ensure_ascii=False))

    async def run(self):
        await self.websocket.accept()
        self.conn = self.coordinator.connect(self.send)
        logger.info(f"WebSocket connection accepted: {self.conn.connection_id}")

        message_count = 0
        try:
            while True:
                try:
                    data = await self.websocket.receive_text()
                except WebSocketDisconnect:
                    logger.info(f"WebSocket disconnected normally for connection {self.conn.connection_id}")
                    break
                message_count += 1
                logger.debug(f"Received frame #{message_count} from connection {self.conn.connection_id}")
                await self.handle_frame(data)
        except Exception as e:
            logger.error(f"WebSocket error for connection {self.conn.connection_id}: {e}", exc_info=True)
        finally:
            await self.coordinator.disconnect(self.conn)
            try:
                await self.websocket.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")

    async def handle_frame(self, data: str):
        try:
            frame = Frame.model_validate_json(data)
        except ValidationError:
            logger.debug(f"Ignoring malformed frame from connection {self.conn.connection_id}")
            return

        handler = self._handlers.get(frame.event)
        if handler is None:
            logger.debug(f"Ignoring unknown event {frame.event!r} from connection {self.conn.connection_id}")
            return
        await handler(frame.data or {})

    async def on_join_room(self, data):
        try:
            request = JoinRoomRequest.model_validate(data)
            await self.coordinator.join(self.conn, request.roomCode, request.password, request.name)
        except ValidationError:
            self.conn.emit("join_result", JoinResult(
                ok=False, reason="invalid_input", message="Room code, password and name are required",
            ).model_dump(exclude_none=True))
        except ChatError as e:
            self.conn.emit("join_result", JoinResult(
                ok=False, reason=e.reason, message=e.message,
            ).model_dump(exclude_none=True))

    async def on_send_text(self, data):
        try:
            request = SendTextRequest.model_validate(data)
        except ValidationError:
            return
        await self.coordinator.send_text(self.conn, request.text)

    async def on_send_media(self, data):
        try:
            request = SendMediaRequest.model_validate(data)
        except ValidationError:
            return
        await self.coordinator.send_media(self.conn, request.type, request.url)
