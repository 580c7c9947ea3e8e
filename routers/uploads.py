from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from typing import Optional

from errors import UploadError
from logging_config import get_logger
from schemas.uploads import UploadResponse

logger = get_logger(__name__)

uploads_router = APIRouter(prefix="/api", tags=["uploads"])


def _failure(error: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=UploadResponse(ok=False, error=error).model_dump(exclude_none=True))


@uploads_router.post("/upload")
async def upload_media(
    request: Request,
    file: Optional[UploadFile] = File(None),
    type: Optional[str] = Form(None),
    roomCode: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    name: Optional[str] = Form(None),
):
    # multipart: file (<= 15MB), type: "image" | "audio", roomCode, password, name
    # Response 200: { "ok": true, "url": "/uploads/1700000000000_<uuid>.png" }
    client_host = request.client.host if request.client else "unknown"
    logger.info(f"Upload request from {client_host} for room {roomCode!r}, type: {type!r}")

    service = request.app.state.media_service
    try:
        url = await service.ingest(file, type, roomCode, password, name)
    except UploadError as e:
        return _failure(e.error, e.status_code)
    except Exception as e:
        logger.error(f"Error handling upload: {e}", exc_info=True)
        return _failure("upload_failed", 500)

    return UploadResponse(ok=True, url=url).model_dump(exclude_none=True)
