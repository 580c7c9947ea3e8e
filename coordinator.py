import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from constants import (
    HISTORY_LIMIT,
    MAX_NAME_LENGTH,
    MAX_PASSWORD_LENGTH,
    MAX_ROOM_CODE_LENGTH,
    MAX_TEXT_LENGTH,
    MAX_URL_LENGTH,
    MEDIA_TYPES,
    SEND_TIMEOUT_SECONDS,
    UPLOAD_URL_PREFIX,
)
from errors import InvalidInput, RoomFull, WrongPassword
from logging_config import get_logger
from presence import PresenceTracker
from schemas.rooms import JoinResult, Message, PresenceEvent
from session import Connection, ConnectionState, Sender
from store import RoomStore, now_ms

logger = get_logger(__name__)

# (room_code, url) -> whether the upload service issued url for that room
MediaValidator = Callable[[str, str], bool]


def normalize_room_code(code) -> str:
    return str(code or "").strip().upper()[:MAX_ROOM_CODE_LENGTH]


def clean_text(value, max_length: int) -> str:
    return str(value or "").strip()[:max_length]


@dataclass
class JoinOutcome:
    room_code: str
    name: str
    history: list = field(default_factory=list)
    members: list = field(default_factory=list)


class RoomCoordinator:
    """Join rules, message ingestion and fan-out for paired rooms.

    Join, send and disconnect for a room code run under that room's lock, so
    occupancy can never pass the presence capacity and broadcast order matches
    append order. Outbound frames are only queued under the lock; each
    connection writes its own queue, so a slow client never holds up the room.
    The first join to take the lock for an unused code creates the room and
    fixes its password.
    """

    def __init__(self, store: RoomStore, presence: PresenceTracker,
                 media_validator: Optional[MediaValidator] = None,
                 upload_url_prefix: str = UPLOAD_URL_PREFIX,
                 history_limit: int = HISTORY_LIMIT,
                 send_timeout: float = SEND_TIMEOUT_SECONDS):
        self.store = store
        self.presence = presence
        self.media_validator = media_validator
        self.upload_url_prefix = upload_url_prefix
        self.history_limit = history_limit
        self.send_timeout = send_timeout
        self._connections: Dict[str, Connection] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, code: str) -> asyncio.Lock:
        lock = self._locks.get(code)
        if lock is None:
            lock = self._locks[code] = asyncio.Lock()
        return lock

    def connect(self, sender: Sender) -> Connection:
        conn = Connection(sender, send_timeout=self.send_timeout)
        conn.start()
        self._connections[conn.connection_id] = conn
        logger.debug(f"Connection {conn.connection_id} registered ({len(self._connections)} live)")
        return conn

    async def join(self, conn: Connection, room_code, password, name) -> JoinOutcome:
        """Admit ``conn`` to a room, creating the room on first use.

        On success the joiner is sent ``join_result`` and ``history``, then the
        whole room gets ``presence``, all before the room lock is released, so
        no message sent meanwhile can reach the joiner ahead of its history.
        """
        code = normalize_room_code(room_code)
        password = clean_text(password, MAX_PASSWORD_LENGTH)
        name = clean_text(name, MAX_NAME_LENGTH)

        if not code or not password or not name:
            logger.info(f"Join rejected for connection {conn.connection_id}: missing room code, password or name")
            raise InvalidInput("Room code, password and name are required")

        async with self._lock_for(code):
            if conn.state != ConnectionState.UNJOINED:
                logger.info(f"Join rejected for connection {conn.connection_id}: state {conn.state.name}")
                raise InvalidInput("This connection cannot join a room")

            room = self.store.get(code)
            if room is None:
                room = self.store.create_if_absent(code, password)

            if room.password != password:
                logger.warning(f"Join rejected: wrong password for room {code} from {name}")
                raise WrongPassword("Wrong password")

            if not self.presence.try_bind(code, conn.connection_id, name):
                logger.info(f"Join rejected: room {code} is full, {name} turned away")
                raise RoomFull(f"Room is full (max {self.presence.capacity} people)")

            conn.mark_joined(code, name)
            history = self.store.history(code, self.history_limit)
            members = self.presence.members_of(code)

            conn.emit("join_result", JoinResult(ok=True, roomCode=code, name=name).model_dump(exclude_none=True))
            conn.emit("history", [message.to_wire() for message in history])
            self._broadcast(code, "presence", PresenceEvent(members=members).model_dump())

        logger.info(f"{name} joined room {code} ({len(members)}/{self.presence.capacity}), replaying {len(history)} messages")
        return JoinOutcome(room_code=code, name=name, history=history, members=members)

    async def send_text(self, conn: Connection, text) -> Optional[Message]:
        if not conn.joined:
            return None
        text = clean_text(text, MAX_TEXT_LENGTH)
        if not text:
            return None
        return await self._ingest(conn, type="text", text=text)

    async def send_media(self, conn: Connection, kind, url) -> Optional[Message]:
        if not conn.joined:
            return None
        if kind not in MEDIA_TYPES:
            logger.debug(f"Dropped media from {conn.connection_id}: bad type {kind!r}")
            return None
        url = clean_text(url, MAX_URL_LENGTH)
        if not url.startswith(self.upload_url_prefix) or ".." in url:
            logger.debug(f"Dropped media from {conn.connection_id}: url outside {self.upload_url_prefix}")
            return None
        if self.media_validator is not None and not self.media_validator(conn.room_code, url):
            logger.warning(f"Dropped media from {conn.connection_id}: {url} was not issued for room {conn.room_code}")
            return None
        return await self._ingest(conn, type=kind, url=url)

    async def _ingest(self, conn: Connection, **payload) -> Optional[Message]:
        code = conn.room_code
        async with self._lock_for(code):
            # the connection may have dropped while waiting for the lock
            if not conn.joined:
                return None
            message = Message(id=str(uuid.uuid4()), name=conn.name, ts=now_ms(), **payload)
            self.store.append_message(code, message)
            logger.debug(f"Message {message.id} ({message.type}) from {conn.name} appended to room {code}")
            self._broadcast(code, "new_message", message.to_wire())
        return message

    async def disconnect(self, conn: Connection):
        if conn.state == ConnectionState.DISCONNECTED:
            return
        was_joined = conn.joined
        conn.mark_disconnected()
        self._connections.pop(conn.connection_id, None)

        if was_joined:
            code = conn.room_code
            async with self._lock_for(code):
                self.presence.unbind(conn.connection_id)
                members = self.presence.members_of(code)
                logger.info(f"{conn.name} left room {code} ({len(members)} remaining)")
                self._broadcast(code, "presence", PresenceEvent(members=members).model_dump())
        else:
            logger.debug(f"Connection {conn.connection_id} closed before joining")

        await conn.aclose()

    def _broadcast(self, code: str, event: str, data):
        # targets are computed now; delivery happens on each connection's writer task
        targets = [self._connections[cid] for cid in self.presence.connections_of(code) if cid in self._connections]
        queued = sum(1 for conn in targets if conn.emit(event, data))
        if queued < len(targets):
            logger.warning(f"{event} skipped {len(targets) - queued} stalled connections in room {code}")
        logger.debug(f"Queued {event} for {queued} connections in room {code}")
