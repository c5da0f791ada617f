from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from opentelemetry import trace

from .addressing import BlobAddressResolver, fallback_blob_url
from .config import WalrusSettings
from .contracts import (
    BlobRecord, ContentBlob, ContentDescriptor, RetentionPeriod, SigningCapability,
    StorageReservation, UploadStage, UploadState, WriteBlobRequest, WriteBlobResult,
)
from .errors import RetryableClientError, TransferError, ValidationError, WalrusUploadError
from .ports import StorageNetworkPort
from .progress import ProgressCallback, ProgressReporter
from .signing import DelegatedSigner, SigningDelegate

log = logging.getLogger("walrusupload.orchestrator")
tracer = trace.get_tracer("walrusupload")

Clock = Callable[[], datetime]

# Percent reported on entering each state; signing percents live in signing.py.
_STAGE_PERCENT = {
    UploadState.preparing: 10,
    UploadState.uploading: 60,
    UploadState.finalizing: 90,
    UploadState.completed: 100,
}


@contextmanager
def _span(name: str, **attrs):
    with tracer.start_as_current_span(name) as span:
        for k, v in attrs.items():
            if v is not None:
                span.set_attribute(f"walrus.{k}", v)
        yield span


def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class UploadSession:
    """State machine of a single ``upload`` call."""

    def __init__(self, progress: ProgressReporter) -> None:
        self.progress = progress
        self.state = UploadState.idle
        self.transitions: List[UploadState] = [UploadState.idle]

    def advance(self, state: UploadState) -> None:
        if self.state in (UploadState.completed, UploadState.failed):
            raise RuntimeError(f"upload session already {self.state.value}")
        self.state = state
        self.transitions.append(state)
        percent = _STAGE_PERCENT.get(state)
        if percent is not None:
            self.progress.emit(UploadStage(state.value), percent)

    def fail(self) -> None:
        self.state = UploadState.failed
        self.transitions.append(UploadState.failed)
        self.progress.reset()


class UploadOrchestrator:
    """
    file + retention + signer -> blob id + retrieval URL.

    Steps: prepare bytes and epochs -> reserve storage (signed by the caller's
    capability) -> transfer the blob -> resolve the URL. Partially reserved
    storage is left to the network to reclaim on failure.
    """

    def __init__(
        self,
        network: StorageNetworkPort,
        resolver: Optional[BlobAddressResolver] = None,
        settings: Optional[WalrusSettings] = None,
        signing: Optional[SigningDelegate] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.settings = settings or WalrusSettings()
        self.network = network
        self.resolver = resolver or BlobAddressResolver.from_settings(self.settings)
        self.signing = signing or SigningDelegate(decoder=network.decode_transaction)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ---------- Public API ----------

    async def upload(
        self,
        blob: ContentBlob,
        retention: RetentionPeriod,
        caller_address: str,
        capability: SigningCapability,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ContentDescriptor:
        self._validate(blob, retention, caller_address, capability)

        session = UploadSession(ProgressReporter(on_progress))
        t0 = time.perf_counter()
        with _span("walrus.upload", filename=blob.filename, size=blob.size_bytes, owner=caller_address):
            try:
                descriptor = await self._run(session, blob, retention, caller_address, capability)
            except Exception as e:
                session.fail()
                dur_ms = int((time.perf_counter() - t0) * 1000)
                log.warning(
                    "upload.failed filename=%s owner=%s code=%s dur_ms=%s err=%s",
                    blob.filename, caller_address, getattr(e, "code", type(e).__name__), dur_ms, e,
                )
                if isinstance(e, WalrusUploadError):
                    raise
                raise TransferError(f"upload to Walrus failed: {e}", cause=e) from e

        log.info(
            "upload.ok filename=%s size=%s blob_id=%s url=%s dur_ms=%s",
            blob.filename, blob.size_bytes, descriptor.blob_id, descriptor.url,
            int((time.perf_counter() - t0) * 1000),
        )
        return descriptor

    async def read_blob(self, blob_id: str) -> bytes:
        if not blob_id:
            raise ValidationError("blob_id is required")
        retries = 0
        while True:
            try:
                return await self.network.read_blob(blob_id)
            except RetryableClientError:
                if retries >= self.settings.MAX_RETRIES:
                    raise
                retries += 1
                log.warning("read.retryable_client blob_id=%s retry=%s", blob_id, retries)
                await self.network.reset()

    async def get_blob_type(self, blob_id: str) -> str:
        if not blob_id:
            raise ValidationError("blob_id is required")
        return await self.network.get_blob_type(blob_id)

    # ---------- Internals ----------

    def _validate(self, blob, retention, caller_address, capability) -> None:
        if not isinstance(blob, ContentBlob):
            raise ValidationError("blob must be a ContentBlob")
        if not isinstance(retention, RetentionPeriod):
            raise ValidationError("retention must be a RetentionPeriod")
        if not caller_address or not str(caller_address).strip():
            raise ValidationError("caller address is required")
        if capability is None:
            raise ValidationError("signing capability is required")
        if not callable(getattr(capability, "sign", None)):
            raise ValidationError("signing capability must expose sign()")
        if not callable(getattr(capability, "address", None)):
            raise ValidationError("signing capability must expose address()")
        if capability.address() != caller_address:
            raise ValidationError("caller address does not match the signing capability's address")

    async def _run(
        self,
        session: UploadSession,
        blob: ContentBlob,
        retention: RetentionPeriod,
        caller_address: str,
        capability: SigningCapability,
    ) -> ContentDescriptor:
        session.advance(UploadState.preparing)
        data = bytes(blob.data)
        epochs = retention.epochs
        log.info("upload.start filename=%s size=%s epochs=%s", blob.filename, len(data), epochs)

        retries = 0
        while True:
            try:
                record = await self._reserve_and_transfer(session, blob, data, epochs, caller_address, capability)
                break
            except RetryableClientError as e:
                # Whole-operation retries share the MAX_RETRIES budget.
                if retries >= self.settings.MAX_RETRIES:
                    log.error("upload.retryable_client exhausted retries=%s err=%s", retries, e)
                    raise
                retries += 1
                log.warning("upload.retryable_client resetting client retry=%s err=%s", retries, e)
                await self.network.reset()

        session.advance(UploadState.finalizing)
        url = self._resolve_url(record)

        session.advance(UploadState.completed)
        return ContentDescriptor(url=url, blob_id=record.blob_id, storage_source="managed")

    async def _reserve_and_transfer(
        self,
        session: UploadSession,
        blob: ContentBlob,
        data: bytes,
        epochs: int,
        caller_address: str,
        capability: SigningCapability,
    ) -> BlobRecord:
        reservation = StorageReservation(size_bytes=len(data), epochs=epochs, owner=caller_address)
        session.advance(UploadState.signing)
        with _span("walrus.reserve", size=reservation.size_bytes, epochs=epochs):
            try:
                tx = await self.network.create_storage_transaction(reservation)
            except WalrusUploadError:
                raise
            except Exception as e:
                raise TransferError(f"storage reservation failed: {e}", cause=e) from e
            # A falsy signed result raises SigningError inside the delegate.
            signed = await self.signing.normalize_and_sign(tx, caller_address, capability, session.progress)

        session.advance(UploadState.uploading)
        signer = DelegatedSigner(self.signing, caller_address, capability)
        req = WriteBlobRequest(
            data=data,
            epochs=epochs,
            deletable=self.settings.BLOB_DELETABLE,
            owner=caller_address,
            attributes=self._attributes(blob),
            reservation=signed,
        )
        with _span("walrus.transfer", size=len(data), epochs=epochs):
            try:
                result = await self.network.write_blob(req, signer)
            except WalrusUploadError:
                raise
            except Exception as e:
                raise TransferError(f"blob upload failed: {e}", cause=e) from e

        if not isinstance(result, WriteBlobResult) or not result.blob_id:
            raise TransferError("blob upload failed: no blob id in transfer result")
        log.info("upload.transferred blob_id=%s object_id=%s", result.blob_id, result.object_id)
        return BlobRecord(blob_id=result.blob_id, object_id=result.object_id)

    def _resolve_url(self, record: BlobRecord) -> str:
        if record.object_id:
            return self.resolver.resolve_url(record.object_id)
        # No object id came back: fall back to the public URL by blob id.
        url = fallback_blob_url(record.blob_id, self.settings.STORAGE_ENVIRONMENT)
        log.warning("upload.url_fallback blob_id=%s url=%s", record.blob_id, url)
        return url

    def _attributes(self, blob: ContentBlob) -> Dict[str, str]:
        return {
            "filename": blob.filename,
            "contentType": blob.mime_type,
            "size": str(blob.size_bytes),
            "lastModified": _iso(blob.last_modified),
            "uploadTime": _iso(self._clock()),
            "origin": self.settings.UPLOAD_ORIGIN or "unknown",
        }
