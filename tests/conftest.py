"""Test configuration and fixtures."""
import uuid

import pytest

from backend import JsonFileBackend
from coordinator import RoomCoordinator
from presence import PresenceTracker
from schemas.rooms import Message
from store import RoomStore


class Recorder:
    """Stands in for a client socket: collects every frame sent to it."""

    def __init__(self):
        self.frames = []

    async def __call__(self, frame: dict):
        self.frames.append(frame)

    def events(self, name: str) -> list:
        return [frame["data"] for frame in self.frames if frame["event"] == name]


def make_message(index: int, name: str = "Alice") -> Message:
    return Message(id=str(uuid.uuid4()), type="text", name=name, text=f"message {index}", ts=1_700_000_000_000 + index)


@pytest.fixture
def rooms_file(tmp_path):
    return str(tmp_path / "data" / "rooms.json")


@pytest.fixture
def backend(rooms_file):
    return JsonFileBackend(rooms_file)


@pytest.fixture
def store(backend):
    store = RoomStore(backend)
    store.load()
    return store


@pytest.fixture
def presence():
    return PresenceTracker()


@pytest.fixture
def coordinator(store, presence):
    return RoomCoordinator(store, presence)
