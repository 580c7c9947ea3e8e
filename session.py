import asyncio
import uuid
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Optional

from constants import OUTBOX_LIMIT, SEND_TIMEOUT_SECONDS
from logging_config import get_logger

logger = get_logger(__name__)

# Receives one outbound frame: {"event": ..., "data": ...}
Sender = Callable[[dict], Awaitable[None]]

_CLOSE = object()


class ConnectionState(Enum):
    UNJOINED = auto()
    JOINED = auto()
    DISCONNECTED = auto()


class Connection:
    """One client connection as the coordinator sees it.

    Outbound frames are queued by ``emit`` and written by a per-connection
    writer task, so callers never wait on the client's socket. Frames reach
    the client in ``emit`` order. A client that stops reading (queue full or a
    send taking longer than ``send_timeout``) is marked stalled and gets no
    further frames.
    """

    def __init__(self, sender: Sender, connection_id: Optional[str] = None,
                 send_timeout: float = SEND_TIMEOUT_SECONDS, outbox_limit: int = OUTBOX_LIMIT):
        self.connection_id = connection_id or str(uuid.uuid4())
        self.sender = sender
        self.send_timeout = send_timeout
        self.state = ConnectionState.UNJOINED
        self.room_code: Optional[str] = None
        self.name: Optional[str] = None
        self.stalled = False
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=outbox_limit)
        self._writer: Optional[asyncio.Task] = None
        self._closing = False

    @property
    def joined(self) -> bool:
        return self.state == ConnectionState.JOINED

    def mark_joined(self, room_code: str, name: str):
        if self.state != ConnectionState.UNJOINED:
            raise RuntimeError(f"Connection {self.connection_id} cannot join from state {self.state.name}")
        self.state = ConnectionState.JOINED
        self.room_code = room_code
        self.name = name

    def mark_disconnected(self):
        self.state = ConnectionState.DISCONNECTED

    def start(self):
        if self._writer is None:
            self._writer = asyncio.get_running_loop().create_task(self._write_outbox())

    def emit(self, event: str, data: Any = None) -> bool:
        if self.stalled or self._closing:
            return False
        try:
            self._outbox.put_nowait({"event": event, "data": data})
        except asyncio.QueueFull:
            logger.warning(f"Outbox full for connection {self.connection_id}, no longer delivering to it")
            self.stalled = True
            return False
        return True

    async def _write_outbox(self):
        while True:
            frame = await self._outbox.get()
            try:
                if frame is _CLOSE:
                    return
                if self.stalled:
                    continue
                try:
                    await asyncio.wait_for(self.sender(frame), timeout=self.send_timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"Sending {frame['event']} to connection {self.connection_id} timed out after "
                                   f"{self.send_timeout}s, no longer delivering to it")
                    self.stalled = True
                except Exception as e:
                    logger.warning(f"Error sending {frame['event']} to connection {self.connection_id}: {e}")
            finally:
                self._outbox.task_done()

    async def drain(self):
        """Wait until every frame queued so far has been handed to the sender."""
        await self._outbox.join()

    async def aclose(self):
        if self._closing:
            return
        self._closing = True
        if self._writer is None:
            return
        if self.stalled:
            self._writer.cancel()
            return
        try:
            self._outbox.put_nowait(_CLOSE)
            await asyncio.wait_for(self._writer, timeout=self.send_timeout)
        except asyncio.QueueFull:
            self._writer.cancel()
        except asyncio.TimeoutError:
            logger.warning(f"Connection {self.connection_id} did not flush its outbox on close")

    def __repr__(self):
        return f"Connection({self.connection_id[:8]}, {self.state.name}, room={self.room_code}, name={self.name})"
