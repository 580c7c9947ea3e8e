from typing import Dict, Optional

from constants import ROOM_CAPACITY
from logging_config import get_logger

logger = get_logger(__name__)


class PresenceTracker:
    """Which live connections are bound to which room code.

    Bindings are kept in binding order. The tracker knows nothing about
    passwords or messages; callers serialize access per room.
    """

    def __init__(self, capacity: int = ROOM_CAPACITY):
        self.capacity = capacity
        # {room_code: {connection_id: display_name}}
        self._rooms: Dict[str, Dict[str, str]] = {}
        # {connection_id: room_code}
        self._bindings: Dict[str, str] = {}

    def try_bind(self, code: str, connection_id: str, name: str) -> bool:
        if connection_id in self._bindings:
            logger.warning(f"Connection {connection_id} is already bound to room {self._bindings[connection_id]}")
            return False
        members = self._rooms.setdefault(code, {})
        if len(members) >= self.capacity:
            logger.debug(f"Room {code} at capacity ({len(members)}/{self.capacity})")
            return False
        members[connection_id] = name
        self._bindings[connection_id] = code
        logger.debug(f"Bound connection {connection_id} ({name}) to room {code} ({len(members)}/{self.capacity})")
        return True

    def unbind(self, connection_id: str) -> Optional[str]:
        code = self._bindings.pop(connection_id, None)
        if code is None:
            return None
        members = self._rooms.get(code, {})
        members.pop(connection_id, None)
        if not members:
            self._rooms.pop(code, None)
        logger.debug(f"Unbound connection {connection_id} from room {code}")
        return code

    def room_of(self, connection_id: str) -> Optional[str]:
        return self._bindings.get(connection_id)

    def members_of(self, code: str) -> list[str]:
        return list(self._rooms.get(code, {}).values())

    def connections_of(self, code: str) -> list[str]:
        return list(self._rooms.get(code, {}).keys())

    def count(self, code: str) -> int:
        return len(self._rooms.get(code, {}))

    def is_full(self, code: str) -> bool:
        return self.count(code) >= self.capacity
