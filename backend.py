import json
import os
import tempfile
from typing import Optional

import redis

from constants import DATA_FILE, REDIS_HOST, REDIS_PASSWORD, REDIS_PORT, STORE_BACKEND
from errors import PersistenceError
from logging_config import get_logger
from redis_keys import REDIS_ROOMS_KEY

logger = get_logger(__name__)


class JsonFileBackend:
    """Keeps the room table as one indented JSON file, replaced atomically on save."""

    def __init__(self, path: str = DATA_FILE):
        self.path = path
        logger.info(f"Initializing JsonFileBackend at {self.path}")

    def load(self) -> dict:
        if not os.path.exists(self.path):
            logger.info(f"No room table at {self.path}, starting empty")
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Could not read room table {self.path}: {e}") from e

    def save(self, table: dict):
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".rooms-", suffix=".json", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(table, fh, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Could not write room table {self.path}: {e}") from e
        logger.debug(f"Room table written to {self.path} ({len(table)} rooms)")


class RedisBackend:
    """Keeps the room table as one JSON document under a single redis key."""

    def __init__(self, host: str = REDIS_HOST, port: int = REDIS_PORT, password: Optional[str] = REDIS_PASSWORD,
                 key: str = REDIS_ROOMS_KEY, client: Optional[redis.Redis] = None):
        self.key = key
        logger.info(f"Initializing RedisBackend with connection to {host}:{port}")
        self.redis_client = client or redis.Redis(host=host, port=port, password=password, decode_responses=True)

    def ping(self) -> bool:
        return self.redis_client.ping()

    def load(self) -> dict:
        try:
            raw = self.redis_client.get(self.key)
        except redis.RedisError as e:
            raise PersistenceError(f"Could not read room table from redis key {self.key}: {e}") from e
        if raw is None:
            logger.info(f"No room table under redis key {self.key}, starting empty")
            return {}
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise PersistenceError(f"Room table under redis key {self.key} is not valid JSON: {e}") from e

    def save(self, table: dict):
        try:
            self.redis_client.set(self.key, json.dumps(table, ensure_ascii=False))
        except (redis.RedisError, TypeError, ValueError) as e:
            raise PersistenceError(f"Could not write room table to redis key {self.key}: {e}") from e
        logger.debug(f"Room table written to redis key {self.key} ({len(table)} rooms)")

    def clear(self):
        self.redis_client.delete(self.key)


def create_backend(kind: str = STORE_BACKEND):
    if kind == "redis":
        backend = RedisBackend()
        try:
            backend.ping()
            logger.info(f"Redis client connected successfully to {REDIS_HOST}:{REDIS_PORT}")
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}: {e}", exc_info=True)
            raise
        return backend
    if kind == "file":
        return JsonFileBackend(DATA_FILE)
    raise ValueError(f"Unknown STORE_BACKEND {kind!r}, expected 'file' or 'redis'")
