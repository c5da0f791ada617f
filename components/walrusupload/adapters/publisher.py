from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx

from ..contracts import StorageReservation, WriteBlobRequest, WriteBlobResult
from ..errors import RetryableClientError, TransferError, TransportError, WalrusUploadError
from ..ports import StorageNetworkPort, TransactionSigner
from ..transport import RetryableTransport

log = logging.getLogger("walrusupload.publisher")

DEFAULT_BLOB_TYPE = "application/octet-stream"


class StorageTransaction:
    """Structured storage-network transaction; serialized as canonical JSON."""
    kind = "storage"

    def __init__(self, **fields: Any) -> None:
        self.fields: Dict[str, Any] = fields
        self.sender: Optional[str] = None

    def set_sender(self, address: str) -> None:
        self.sender = address

    def serialize(self) -> bytes:
        payload = {"kind": self.kind, "sender": self.sender, **self.fields}
        return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")

    @staticmethod
    def from_bytes(raw: bytes) -> "StorageTransaction":
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ValueError(f"not a storage transaction: {e}") from e
        if not isinstance(payload, dict):
            raise ValueError("not a storage transaction: payload is not an object")
        kind = payload.pop("kind", None)
        cls = _TRANSACTION_KINDS.get(kind)
        if cls is None:
            raise ValueError(f"unknown transaction kind: {kind!r}")
        sender = payload.pop("sender", None)
        tx = cls(**payload)
        if sender:
            tx.set_sender(sender)
        return tx

    def __repr__(self) -> str:
        return f"{type(self).__name__}(sender={self.sender!r}, {self.fields!r})"


class ReserveSpaceTransaction(StorageTransaction):
    kind = "reserve_space"


_TRANSACTION_KINDS = {
    ReserveSpaceTransaction.kind: ReserveSpaceTransaction,
}


def _is_client_state_error(e: TransportError) -> bool:
    cause = e.cause
    if isinstance(cause, (httpx.RemoteProtocolError, httpx.PoolTimeout)):
        return True
    return isinstance(cause, RuntimeError) and "closed" in str(cause).lower()


def parse_store_response(body: Any) -> WriteBlobResult:
    """Read blob and object ids from a publisher ``PUT /v1/blobs`` response."""
    if not isinstance(body, dict):
        return WriteBlobResult()
    created = body.get("newlyCreated")
    if isinstance(created, dict):
        obj = created.get("blobObject") or {}
        object_id = obj.get("id")
        if isinstance(object_id, dict):
            # some responses nest the UID as {"id": "0x..."}
            object_id = object_id.get("id")
        return WriteBlobResult(blob_id=obj.get("blobId"), object_id=object_id)
    certified = body.get("alreadyCertified")
    if isinstance(certified, dict):
        return WriteBlobResult(blob_id=certified.get("blobId"), object_id=certified.get("object"))
    return WriteBlobResult()


class PublisherStorageNetwork(StorageNetworkPort):
    """Walrus over HTTP: publisher for writes, aggregator for reads."""

    def __init__(self, transport: RetryableTransport, publisher_url: str, aggregator_blob_url: str) -> None:
        if not publisher_url:
            raise RuntimeError("publisher URL is required for PublisherStorageNetwork")
        self.transport = transport
        self.publisher_url = publisher_url.rstrip("/")
        self.aggregator_blob_url = aggregator_blob_url if aggregator_blob_url.endswith("/") else aggregator_blob_url + "/"

    @classmethod
    def from_settings(cls, settings, transport: Optional[RetryableTransport] = None) -> "PublisherStorageNetwork":
        if not settings.publisher_url:
            raise RuntimeError(f"PUBLISHER_URL_{settings.network.upper()} is required for uploads")
        return cls(
            transport=transport or RetryableTransport.from_settings(settings),
            publisher_url=settings.publisher_url,
            aggregator_blob_url=settings.aggregator_blob_url,
        )

    async def create_storage_transaction(self, reservation: StorageReservation) -> ReserveSpaceTransaction:
        return ReserveSpaceTransaction(
            size=reservation.size_bytes, epochs=reservation.epochs, owner=reservation.owner
        )

    def decode_transaction(self, raw: bytes) -> StorageTransaction:
        return StorageTransaction.from_bytes(raw)

    async def write_blob(self, req: WriteBlobRequest, signer: TransactionSigner) -> WriteBlobResult:
        """
        The publisher registers and certifies the blob with its own wallet and
        sends the blob object to ``req.owner``, so ``signer`` is not used here.
        """
        params = {
            "epochs": req.epochs,
            "deletable": "true" if req.deletable else "false",
            "send_object_to": req.owner,
        }
        resp = await self._send(
            "PUT",
            f"{self.publisher_url}/v1/blobs",
            content=req.data,
            params=params,
            headers={"Content-Type": "application/octet-stream"},
        )
        try:
            body = resp.json()
        except ValueError as e:
            raise TransferError(f"publisher returned invalid JSON: {resp.text[:500]}", cause=e) from e

        result = parse_store_response(body)
        log.info(
            "publisher.write ok size=%s epochs=%s blob_id=%s object_id=%s reserved=%s",
            len(req.data), req.epochs, result.blob_id, result.object_id, req.reservation is not None,
        )
        return result

    async def read_blob(self, blob_id: str) -> bytes:
        resp = await self._send("GET", f"{self.aggregator_blob_url}{blob_id}")
        return resp.content

    async def get_blob_type(self, blob_id: str) -> str:
        try:
            resp = await self._send("HEAD", f"{self.aggregator_blob_url}{blob_id}")
        except WalrusUploadError as e:
            log.warning("publisher.blob_type unavailable blob_id=%s err=%s", blob_id, e)
            return DEFAULT_BLOB_TYPE
        return resp.headers.get("content-type") or DEFAULT_BLOB_TYPE

    async def reset(self) -> None:
        await self.transport.reset()

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self.transport.send(method, url, **kwargs)
        except TransportError as e:
            if _is_client_state_error(e):
                raise RetryableClientError(f"network client needs reset: {e}", cause=e) from e
            raise
