import pytest

from components.walrusupload.errors import SigningError
from components.walrusupload.progress import ProgressReporter
from components.walrusupload.signing import (
    DelegatedSigner,
    SerializableTransaction,
    SigningDelegate,
    TransactionShape,
    has_sender_setter,
    has_serializer,
)

ADDRESS = "0xa11ce"


class BuilderTx:
    """Transaction builder: settable sender, serialize() but no to_json()."""

    def __init__(self):
        self.sender = None

    def set_sender(self, address):
        self.sender = address

    def serialize(self):
        return b"tx-bytes:" + (self.sender or "").encode()


class JsonTx:
    def __init__(self):
        self.sender = "0xalready"

    def to_json(self):
        return {"sender": self.sender}


class PlainTx:
    pass


class Capability:
    def __init__(self, result="0xdigest"):
        self.result = result
        self.requests = []

    def address(self):
        return ADDRESS

    async def sign(self, request):
        self.requests.append(request)
        return self.result


def test_capability_checks():
    assert has_sender_setter(BuilderTx())
    assert not has_sender_setter(PlainTx())
    assert has_serializer(JsonTx())
    assert not has_serializer(BuilderTx())


def test_structured_tx_gets_sender_and_serialization_entry_point():
    req = SigningDelegate().normalize(BuilderTx(), ADDRESS)

    assert req.shape is TransactionShape.structured
    assert req.sender == ADDRESS
    assert isinstance(req.transaction, SerializableTransaction)
    assert req.transaction.sender == ADDRESS
    assert req.to_json() == b"tx-bytes:0xa11ce"


def test_tx_without_serialize_serializes_to_itself():
    tx = PlainTx()
    req = SigningDelegate().normalize(tx, ADDRESS)

    assert req.transaction.to_json() is tx
    assert tx.sender == ADDRESS


def test_tx_with_to_json_is_not_wrapped_and_keeps_existing_sender():
    tx = JsonTx()
    req = SigningDelegate().normalize(tx, ADDRESS)
    assert req.transaction is tx
    assert tx.sender == "0xalready"
    assert req.sender == ADDRESS


def test_mapping_tx_receives_sender_key():
    tx = {"kind": "reserve_space"}
    SigningDelegate().normalize(tx, ADDRESS)
    assert tx["sender"] == ADDRESS


def test_raw_bytes_are_decoded_first():
    decoded = []

    def decoder(raw):
        decoded.append(raw)
        return BuilderTx()

    req = SigningDelegate(decoder=decoder).normalize(b"\x00\x01", ADDRESS)

    assert decoded == [b"\x00\x01"]
    assert req.shape is TransactionShape.raw_bytes
    assert req.transaction.sender == ADDRESS


def test_raw_bytes_without_decoder_fail():
    with pytest.raises(SigningError):
        SigningDelegate().normalize(b"\x00", ADDRESS)


def test_decoder_failure_is_a_signing_error():
    def decoder(raw):
        raise ValueError("bad bcs")

    with pytest.raises(SigningError, match="bad bcs"):
        SigningDelegate(decoder=decoder).normalize(b"\x00", ADDRESS)


@pytest.mark.asyncio
async def test_sign_reports_progress_before_and_after():
    seen = []
    progress = ProgressReporter(seen.append)
    cap = Capability()

    result = await SigningDelegate().normalize_and_sign(BuilderTx(), ADDRESS, cap, progress)

    assert result == "0xdigest"
    assert len(cap.requests) == 1
    assert cap.requests[0].sender == ADDRESS
    assert [(p.stage.value, p.percent) for p in seen] == [("signing", 20), ("signing", 50)]


@pytest.mark.asyncio
@pytest.mark.parametrize("empty", [None, {}, ""])
async def test_empty_signing_result_is_a_hard_failure(empty):
    progress = ProgressReporter()
    with pytest.raises(SigningError, match="signing capability returned no result"):
        await SigningDelegate().normalize_and_sign(BuilderTx(), ADDRESS, Capability(result=empty), progress)
    # no post-signing bump
    assert [p.percent for p in progress.history] == [20]


@pytest.mark.asyncio
async def test_capability_rejection_is_wrapped():
    class Rejecting(Capability):
        async def sign(self, request):
            raise RuntimeError("user rejected the request")

    with pytest.raises(SigningError) as exc:
        await SigningDelegate().normalize_and_sign(BuilderTx(), ADDRESS, Rejecting())
    assert "user rejected the request" in str(exc.value)
    assert isinstance(exc.value.cause, RuntimeError)


@pytest.mark.asyncio
async def test_synchronous_capability_is_supported():
    class SyncCap:
        def address(self):
            return ADDRESS

        def sign(self, request):
            return {"digest": "0x1"}

    assert await SigningDelegate().normalize_and_sign(BuilderTx(), ADDRESS, SyncCap()) == {"digest": "0x1"}


@pytest.mark.asyncio
async def test_none_transaction_is_rejected():
    with pytest.raises(SigningError):
        await SigningDelegate().normalize_and_sign(None, ADDRESS, Capability())


@pytest.mark.asyncio
async def test_delegated_signer_signs_as_its_address():
    cap = Capability()
    signer = DelegatedSigner(SigningDelegate(), ADDRESS, cap)
    tx = BuilderTx()

    assert signer.to_address() == ADDRESS
    assert await signer.sign_transaction(tx) == "0xdigest"
    assert tx.sender == ADDRESS
