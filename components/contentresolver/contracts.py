from __future__ import annotations

from typing import Any, Dict, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict

from components.walrusupload.contracts import ContentBlob, ContentDescriptor, RetentionPeriod

StorageMode = Literal["managed", "external"]
MediaKind = Literal["image", "video"]

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp")
VIDEO_EXTENSIONS = (".mp4", ".webm", ".ogg", ".mov")


def classify_media(url_or_filename: str) -> MediaKind:
    """Image or video by extension; unknown extensions count as images."""
    path = urlparse(url_or_filename).path or url_or_filename
    lowered = path.lower()
    if lowered.endswith(IMAGE_EXTENSIONS):
        return "image"
    if lowered.endswith(VIDEO_EXTENSIONS):
        return "video"
    return "image"


# ---------- Inputs ----------

class ManagedContentInput(BaseModel):
    """A file to upload; the capability is borrowed for the duration of the call."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    blob: ContentBlob
    retention: RetentionPeriod
    caller_address: str
    capability: Any


class ExternalContentInput(BaseModel):
    url: str


# ---------- HTTP ----------

class ErrorInfo(BaseModel):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class Envelope(BaseModel):
    ok: bool
    data: Optional[Any] = None
    error: Optional[ErrorInfo] = None

    @staticmethod
    def success(data: Any) -> "Envelope":
        return Envelope(ok=True, data=data)

    @staticmethod
    def failure(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "Envelope":
        return Envelope(ok=False, error=ErrorInfo(code=code, message=message, details=details))


class ExternalContentBody(BaseModel):
    url: str


class ResolvedContent(BaseModel):
    descriptor: ContentDescriptor
    media_kind: MediaKind
