from fastapi import APIRouter, HTTPException, Query, Request
from typing import Optional

from coordinator import clean_text, normalize_room_code
from constants import MAX_PASSWORD_LENGTH
from logging_config import get_logger
from schemas.rooms import RoomDetailsResponse

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("/{room_code}", response_model=RoomDetailsResponse)
async def get_room_details(
    room_code: str,
    request: Request,
    password: Optional[str] = Query(None, description="Room password"),
):
    """
    Get room details including who is online.

    Returns:
    - room_code: Normalized room code
    - created_at: Creation time, epoch milliseconds
    - message_count: Number of stored messages
    - online_users_count / online_users: Members currently in the room
    - is_full: Whether both seats are taken
    """
    client_host = request.client.host if request.client else 'unknown'
    code = normalize_room_code(room_code)
    logger.info(f"Room details request for {code} from {client_host}")

    store = request.app.state.store
    presence = request.app.state.presence

    room = store.get(code)
    if not room:
        logger.warning(f"Room details failed: Room {code} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    if room.password != clean_text(password, MAX_PASSWORD_LENGTH):
        logger.warning(f"Room details failed: Invalid password for room {code}")
        raise HTTPException(status_code=401, detail="Invalid password")

    members = presence.members_of(code)
    return RoomDetailsResponse(
        room_code=code,
        created_at=room.created_at,
        message_count=len(room.messages),
        online_users_count=len(members),
        online_users=members,
        is_full=presence.is_full(code),
    )
