from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Protocol

from .contracts import StorageReservation, WriteBlobRequest, WriteBlobResult


class TransactionSigner(Protocol):
    address: str

    def to_address(self) -> str: ...

    async def sign_transaction(self, tx: Any) -> Any: ...


class StorageNetworkPort(ABC):
    """Client side of the blob storage network."""

    @abstractmethod
    async def create_storage_transaction(self, reservation: StorageReservation) -> Any:
        """Build the transaction reserving space for ``reservation``. May return raw bytes."""

    @abstractmethod
    def decode_transaction(self, raw: bytes) -> Any:
        """Turn serialized transaction bytes back into a transaction object."""

    @abstractmethod
    async def write_blob(self, req: WriteBlobRequest, signer: TransactionSigner) -> WriteBlobResult: ...

    @abstractmethod
    async def read_blob(self, blob_id: str) -> bytes: ...

    @abstractmethod
    async def get_blob_type(self, blob_id: str) -> str: ...

    @abstractmethod
    async def reset(self) -> None:
        """Discard client state after a ``RetryableClientError``."""
