from pydantic import BaseModel
from typing import Optional


class UploadResponse(BaseModel):
    ok: bool
    url: Optional[str] = None
    error: Optional[str] = None
