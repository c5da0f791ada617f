from __future__ import annotations

import math
import mimetypes
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Dict, Literal, Optional, Protocol, Union, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, conint, model_validator

SECONDS_PER_EPOCH = 24 * 60 * 60

StorageSource = Literal["managed", "external"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------- Caller input ----------

class ContentBlob(BaseModel):
    """Immutable file payload handed to the orchestrator."""
    model_config = ConfigDict(frozen=True)

    data: bytes
    filename: str = Field(..., min_length=1)
    mime_type: str = "application/octet-stream"
    size_bytes: conint(ge=0)
    last_modified: datetime = Field(default_factory=_now)

    @model_validator(mode="after")
    def check_size(self) -> "ContentBlob":
        if self.size_bytes != len(self.data):
            raise ValueError(f"size_bytes={self.size_bytes} does not match data length {len(self.data)}")
        return self

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        filename: str,
        mime_type: Optional[str] = None,
        last_modified: Optional[datetime] = None,
    ) -> "ContentBlob":
        if mime_type is None:
            mime_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        return cls(
            data=bytes(data),
            filename=filename,
            mime_type=mime_type,
            size_bytes=len(data),
            last_modified=last_modified or _now(),
        )

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "ContentBlob":
        p = Path(path)
        st = p.stat()
        return cls.from_bytes(
            p.read_bytes(),
            p.name,
            last_modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )


class RetentionPeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    requested_seconds: conint(ge=0)

    @classmethod
    def from_days(cls, days: int) -> "RetentionPeriod":
        return cls(requested_seconds=int(days) * SECONDS_PER_EPOCH)

    @property
    def epochs(self) -> int:
        return epochs_for(self.requested_seconds)


def epochs_for(seconds: int) -> int:
    """Storage epochs covering ``seconds``; one epoch is roughly a day."""
    return math.ceil(seconds / SECONDS_PER_EPOCH)


# ---------- Signing ----------

@runtime_checkable
class SigningCapability(Protocol):
    """Wallet-side signer. ``sign`` may block for as long as the user takes."""

    def sign(self, request: Any) -> Union[Any, Awaitable[Any]]: ...

    def address(self) -> str: ...


# ---------- Storage network ----------

class StorageReservation(BaseModel):
    size_bytes: conint(ge=0)
    epochs: conint(ge=0)
    owner: str = Field(..., min_length=1)


class WriteBlobRequest(BaseModel):
    data: bytes
    epochs: conint(ge=0)
    deletable: bool = True
    owner: str
    attributes: Dict[str, str] = Field(default_factory=dict)
    # signed reservation as returned by the signing capability
    reservation: Optional[Any] = None


class WriteBlobResult(BaseModel):
    # Either field may be missing in a malformed response; the orchestrator decides.
    blob_id: Optional[str] = None
    object_id: Optional[str] = None


class BlobRecord(BaseModel):
    blob_id: str = Field(..., min_length=1)
    object_id: Optional[str] = None


# ---------- Output ----------

class ContentDescriptor(BaseModel):
    url: str
    blob_id: Optional[str] = None
    storage_source: StorageSource


class UploadStage(str, Enum):
    idle = "idle"
    preparing = "preparing"
    signing = "signing"
    uploading = "uploading"
    finalizing = "finalizing"
    completed = "completed"


class UploadState(str, Enum):
    idle = "idle"
    preparing = "preparing"
    signing = "signing"
    uploading = "uploading"
    finalizing = "finalizing"
    completed = "completed"
    failed = "failed"


class UploadProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: UploadStage
    percent: conint(ge=0, le=100)
