import asyncio
import os
import re
import uuid
from collections import OrderedDict
from typing import BinaryIO, Dict, Optional

from fastapi import UploadFile

from constants import (
    MAX_NAME_LENGTH,
    MAX_PASSWORD_LENGTH,
    MAX_PENDING_UPLOADS_PER_ROOM,
    MAX_TYPE_LENGTH,
    MAX_UPLOAD_BYTES,
    MEDIA_TYPES,
    UPLOAD_DIR,
    UPLOAD_URL_PREFIX,
)
from coordinator import clean_text, normalize_room_code
from errors import UploadError
from logging_config import get_logger
from store import RoomStore, now_ms

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024
_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


class MediaIngestService:
    """Stores uploaded image/audio files and hands back a URL reference.

    Every URL handed out is remembered for its room until ``claim`` accepts
    it for a message. Each room keeps at most ``max_pending`` unclaimed URLs;
    the oldest is forgotten when another upload comes in.
    """

    def __init__(self, store: RoomStore, upload_dir: str = UPLOAD_DIR, url_prefix: str = UPLOAD_URL_PREFIX,
                 max_bytes: int = MAX_UPLOAD_BYTES, max_pending: int = MAX_PENDING_UPLOADS_PER_ROOM):
        self.store = store
        self.upload_dir = upload_dir
        self.url_prefix = url_prefix
        self.max_bytes = max_bytes
        self.max_pending = max_pending
        # {room_code: OrderedDict{url: None}}
        self._issued: Dict[str, "OrderedDict[str, None]"] = {}
        os.makedirs(self.upload_dir, exist_ok=True)

    def claim(self, room_code: str, url: str) -> bool:
        """Accept ``url`` once, if it was issued for ``room_code``."""
        pending = self._issued.get(room_code)
        if not pending or url not in pending:
            return False
        del pending[url]
        if not pending:
            del self._issued[room_code]
        return True

    def pending_count(self, room_code: str) -> int:
        return len(self._issued.get(room_code, ()))

    def _remember(self, room_code: str, url: str):
        pending = self._issued.setdefault(room_code, OrderedDict())
        pending[url] = None
        while len(pending) > self.max_pending:
            forgotten, _ = pending.popitem(last=False)
            logger.debug(f"Forgetting unsent upload {forgotten} for room {room_code}")

    async def ingest(self, file: Optional[UploadFile], kind, room_code, password, name) -> str:
        code = normalize_room_code(room_code)
        password = clean_text(password, MAX_PASSWORD_LENGTH)
        name = clean_text(name, MAX_NAME_LENGTH)
        kind = clean_text(kind, MAX_TYPE_LENGTH)

        if not code or not password or not name:
            raise UploadError("missing_fields", 400)
        if file is None or not file.filename:
            raise UploadError("no_file", 400)
        if kind not in MEDIA_TYPES:
            raise UploadError("bad_type", 400)

        room = self.store.get(code)
        if room is None:
            logger.warning(f"Upload rejected: room {code} not found")
            raise UploadError("room_not_found", 404)
        if room.password != password:
            logger.warning(f"Upload rejected: wrong password for room {code} from {name}")
            raise UploadError("bad_password", 403)

        if file.size is not None and file.size > self.max_bytes:
            logger.warning(f"Upload rejected: {file.filename} is {file.size} bytes, limit {self.max_bytes}")
            raise UploadError("upload_failed", 413)

        ext = os.path.splitext(os.path.basename(file.filename))[1]
        if not _EXTENSION_RE.match(ext):
            ext = ""
        filename = f"{now_ms()}_{uuid.uuid4()}{ext}"
        path = os.path.join(self.upload_dir, filename)

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._copy, file.file, path)

        url = f"{self.url_prefix}{filename}"
        self._remember(code, url)
        logger.info(f"{name} uploaded {kind} {url} for room {code}")
        return url

    def _copy(self, source: BinaryIO, path: str):
        written = 0
        try:
            source.seek(0)
            with open(path, "wb") as out:
                while True:
                    chunk = source.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise UploadError("upload_failed", 413)
                    out.write(chunk)
        except UploadError:
            logger.warning(f"Upload rejected: {path} grew past {self.max_bytes} bytes")
            self._discard(path)
            raise
        except OSError as e:
            logger.error(f"Writing upload {path} failed: {e}", exc_info=True)
            self._discard(path)
            raise UploadError("upload_failed", 500) from e

    def _discard(self, path: str):
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Could not remove partial upload {path}: {e}")
