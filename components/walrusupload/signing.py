from __future__ import annotations

import inspect
import logging
from collections.abc import MutableMapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from .contracts import SigningCapability, UploadStage
from .errors import SigningError
from .progress import ProgressReporter

log = logging.getLogger("walrusupload.signing")

TransactionDecoder = Callable[[bytes], Any]

# Percent reported while the wallet prompt is open, and once it returns.
SIGNING_PERCENT = 20
SIGNED_PERCENT = 50


class TransactionShape(str, Enum):
    raw_bytes = "raw_bytes"
    structured = "structured"


@dataclass
class SignableRequest:
    """What the signing capability receives: one structured transaction plus its sender."""
    shape: TransactionShape
    transaction: Any
    sender: str

    def to_json(self) -> Any:
        return self.transaction.to_json()


def has_sender_setter(tx: Any) -> bool:
    return callable(getattr(tx, "set_sender", None))


def has_serializer(tx: Any) -> bool:
    return callable(getattr(tx, "to_json", None))


class SerializableTransaction:
    """Adds ``to_json`` to a transaction object that lacks one."""

    def __init__(self, tx: Any) -> None:
        self._tx = tx

    @property
    def wrapped(self) -> Any:
        return self._tx

    def to_json(self) -> Any:
        serialize = getattr(self._tx, "serialize", None)
        if callable(serialize):
            return serialize()
        return self._tx

    def __getattr__(self, name: str) -> Any:
        return getattr(self._tx, name)

    def __repr__(self) -> str:
        return f"SerializableTransaction({self._tx!r})"


def _attach_sender(tx: Any, sender: str) -> None:
    if isinstance(tx, MutableMapping):
        tx.setdefault("sender", sender)
        return
    if getattr(tx, "sender", None):
        return
    try:
        setattr(tx, "sender", sender)
    except (AttributeError, TypeError):
        # frozen or slotted objects; the envelope still carries the sender
        log.debug("signing.sender attribute not settable type=%s", type(tx).__name__)


class SigningDelegate:
    """
    Turns whatever transaction shape the network SDK hands back into a
    ``SignableRequest`` and resolves it through the caller's capability.
    """

    def __init__(self, decoder: Optional[TransactionDecoder] = None) -> None:
        self.decoder = decoder

    def normalize(self, raw: Any, signer_address: str) -> SignableRequest:
        if raw is None:
            raise SigningError("transaction to sign is empty")

        shape = TransactionShape.structured
        tx = raw
        if isinstance(raw, (bytes, bytearray, memoryview)):
            shape = TransactionShape.raw_bytes
            tx = self._decode(bytes(raw))

        if has_sender_setter(tx):
            tx.set_sender(signer_address)
        _attach_sender(tx, signer_address)

        if not has_serializer(tx):
            tx = SerializableTransaction(tx)

        return SignableRequest(shape=shape, transaction=tx, sender=signer_address)

    async def normalize_and_sign(
        self,
        raw: Any,
        signer_address: str,
        capability: SigningCapability,
        progress: Optional[ProgressReporter] = None,
    ) -> Any:
        request = self.normalize(raw, signer_address)

        if progress is not None:
            progress.emit(UploadStage.signing, SIGNING_PERCENT)
        log.info("signing.request shape=%s sender=%s", request.shape.value, signer_address)

        try:
            result = capability.sign(request)
            if inspect.isawaitable(result):
                result = await result
        except SigningError:
            raise
        except Exception as e:
            log.warning("signing.rejected sender=%s err=%s", signer_address, e)
            raise SigningError(f"signing failed: {e}", cause=e) from e

        if not result:
            raise SigningError("signing capability returned no result")

        if progress is not None:
            progress.emit(UploadStage.signing, SIGNED_PERCENT)
        log.info("signing.ok shape=%s sender=%s", request.shape.value, signer_address)
        return result

    def _decode(self, raw: bytes) -> Any:
        if self.decoder is None:
            raise SigningError("received raw transaction bytes but no decoder is configured")
        try:
            return self.decoder(raw)
        except Exception as e:
            raise SigningError(f"unable to decode raw transaction: {e}", cause=e) from e


class DelegatedSigner:
    """Signer handed to the storage network for transfer-time transactions."""

    def __init__(self, delegate: SigningDelegate, address: str, capability: SigningCapability) -> None:
        self._delegate = delegate
        self._capability = capability
        self.address = address

    def to_address(self) -> str:
        return self.address

    async def sign_transaction(self, tx: Any) -> Any:
        return await self._delegate.normalize_and_sign(tx, self.address, self._capability)
