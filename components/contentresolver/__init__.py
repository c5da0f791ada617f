from .contracts import (
    Envelope,
    ExternalContentInput,
    ManagedContentInput,
    MediaKind,
    StorageMode,
    classify_media,
)
from .http import router as contentresolver_router
from .service import ContentResolver

__all__ = [
    "ContentResolver",
    "Envelope",
    "ExternalContentInput",
    "ManagedContentInput",
    "MediaKind",
    "StorageMode",
    "classify_media",
    "contentresolver_router",
]
