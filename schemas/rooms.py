from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Literal, Optional


MessageType = Literal["text", "image", "audio"]


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: MessageType
    name: str
    text: Optional[str] = None
    url: Optional[str] = None
    ts: int

    def to_wire(self) -> dict:
        return self.model_dump(exclude_none=True)


class Room(BaseModel):
    """A room record. ``code`` is the table key and is not stored inside the record."""

    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(exclude=True)
    password: str
    messages: list[Message] = Field(default_factory=list)
    created_at: int = Field(alias="createdAt")

    @classmethod
    def from_record(cls, code: str, record: dict) -> "Room":
        return cls.model_validate({**record, "code": code})

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Frame(BaseModel):
    event: str
    data: Any = None


class JoinRoomRequest(BaseModel):
    name: Optional[str] = ""
    roomCode: Optional[str] = ""
    password: Optional[str] = ""

class SendTextRequest(BaseModel):
    text: Optional[str] = ""

class SendMediaRequest(BaseModel):
    type: Optional[str] = ""
    url: Optional[str] = ""

class JoinResult(BaseModel):
    ok: bool
    roomCode: Optional[str] = None
    name: Optional[str] = None
    reason: Optional[str] = None
    message: Optional[str] = None

class PresenceEvent(BaseModel):
    members: list[str]

class RoomDetailsResponse(BaseModel):
    room_code: str
    created_at: int
    message_count: int
    online_users_count: int
    online_users: list[str]
    is_full: bool
