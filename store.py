import asyncio
import time
from typing import Dict, Optional

from pydantic import ValidationError

from constants import HISTORY_LIMIT, STORED_MESSAGES_LIMIT
from errors import PersistenceError
from logging_config import get_logger
from schemas.rooms import Message, Room

logger = get_logger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class RoomStore:
    """In-memory room table backed by a snapshot backend.

    Every mutation schedules a write of the whole table. Inside an event loop
    writes go through a single background task, so at most one write is in
    flight and each write carries the latest snapshot. A failed write is logged
    and the in-memory table stays authoritative.
    """

    def __init__(self, backend, max_messages: int = STORED_MESSAGES_LIMIT):
        self.backend = backend
        self.max_messages = max_messages
        self._rooms: Dict[str, Room] = {}
        self._dirty = False
        self._writer: Optional[asyncio.Task] = None

    def load(self):
        try:
            table = self.backend.load()
        except PersistenceError as e:
            logger.error(f"Room table unreadable, starting with an empty store: {e}")
            table = {}
        if not isinstance(table, dict):
            logger.error(f"Room table is a {type(table).__name__}, not an object; starting with an empty store")
            table = {}

        rooms = {}
        for code, record in table.items():
            try:
                rooms[code] = Room.from_record(code, record)
            except (ValidationError, TypeError) as e:
                logger.warning(f"Skipping malformed room {code!r} in stored table: {e}")
        self._rooms = rooms
        logger.info(f"Loaded {len(self._rooms)} rooms")

    def __contains__(self, code: str) -> bool:
        return code in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)

    def get(self, code: str) -> Optional[Room]:
        return self._rooms.get(code)

    def create_if_absent(self, code: str, password: str) -> Room:
        room = self._rooms.get(code)
        if room is not None:
            return room
        room = Room(code=code, password=password, messages=[], created_at=now_ms())
        self._rooms[code] = room
        logger.info(f"Room {code} created")
        self.schedule_persist()
        return room

    def append_message(self, code: str, message: Message):
        room = self._rooms[code]
        room.messages.append(message)
        if len(room.messages) > self.max_messages:
            del room.messages[:-self.max_messages]
        self.schedule_persist()

    def history(self, code: str, limit: int = HISTORY_LIMIT) -> list[Message]:
        room = self._rooms.get(code)
        if room is None or limit <= 0:
            return []
        return list(room.messages[-limit:])

    def snapshot(self) -> dict:
        return {code: room.to_record() for code, room in self._rooms.items()}

    def persist(self):
        try:
            self.backend.save(self.snapshot())
        except PersistenceError as e:
            logger.error(f"Persisting room table failed: {e}")

    def schedule_persist(self):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.persist()
            return
        self._dirty = True
        if self._writer is None or self._writer.done():
            self._writer = loop.create_task(self._write_pending())

    async def _write_pending(self):
        loop = asyncio.get_running_loop()
        while self._dirty:
            self._dirty = False
            # snapshot on the loop thread so the table cannot change underneath it
            snapshot = self.snapshot()
            try:
                await loop.run_in_executor(None, self.backend.save, snapshot)
            except PersistenceError as e:
                logger.error(f"Persisting room table failed: {e}")

    async def flush(self):
        if self._writer is not None and not self._writer.done():
            await self._writer
