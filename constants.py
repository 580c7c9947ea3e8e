import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# "file" keeps the room table in DATA_FILE, "redis" keeps it under a single redis key
STORE_BACKEND = os.getenv("STORE_BACKEND", "file")
DATA_FILE = os.getenv("DATA_FILE", os.path.join("data", "rooms.json"))
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

UPLOAD_URL_PREFIX = "/uploads/"
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", 15 * 1024 * 1024))
MEDIA_TYPES = ("image", "audio")
# issued-but-unsent upload URLs remembered per room, oldest forgotten first
MAX_PENDING_UPLOADS_PER_ROOM = 20

ROOM_CAPACITY = 2
HISTORY_LIMIT = 200
STORED_MESSAGES_LIMIT = 500

SEND_TIMEOUT_SECONDS = float(os.getenv("SEND_TIMEOUT_SECONDS", 10))
OUTBOX_LIMIT = 256

MAX_ROOM_CODE_LENGTH = 20
MAX_PASSWORD_LENGTH = 64
MAX_NAME_LENGTH = 20
MAX_TEXT_LENGTH = 500
MAX_URL_LENGTH = 300
MAX_TYPE_LENGTH = 10
