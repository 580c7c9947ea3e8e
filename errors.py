class ChatError(Exception):
    """Base class for errors reported back to a single connection."""

    reason = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"[{self.reason}] {message}")


class InvalidInput(ChatError):
    reason = "invalid_input"


class WrongPassword(ChatError):
    reason = "wrong_password"


class RoomFull(ChatError):
    reason = "room_full"


class PersistenceError(Exception):
    """The room table could not be read from or written to its backend."""


class UploadError(Exception):
    def __init__(self, error: str, status_code: int):
        self.error = error
        self.status_code = status_code
        super().__init__(f"[{status_code}] {error}")
