import pytest

from components.walrusupload.addressing import BlobAddressResolver, fallback_blob_url
from components.walrusupload.config import WalrusSettings
from components.walrusupload.contracts import RetentionPeriod, epochs_for
from components.walrusupload.errors import AddressingError


def test_object_id_is_appended_verbatim():
    resolver = BlobAddressResolver("https://agg.test/")
    assert resolver.resolve_url("o1") == "https://agg.test/o1"
    assert resolver.resolve_url("0xabc") == "https://agg.test/0xabc"


def test_missing_object_id_fails():
    resolver = BlobAddressResolver("https://agg.test/")
    with pytest.raises(AddressingError):
        resolver.resolve_url(None)
    with pytest.raises(AddressingError):
        resolver.resolve_url("")


def test_fallback_url_uses_environment_and_blob_id():
    assert fallback_blob_url("b1", "testnet") == "https://testnet.walrus.app/blob/b1"
    with pytest.raises(AddressingError):
        fallback_blob_url("", "testnet")


@pytest.mark.parametrize(
    "env, expected",
    [
        ("testnet", "https://agg-testnet/"),
        ("devnet", "https://agg-testnet/"),
        ("localnet", "https://agg-testnet/"),
        ("mainnet", "https://agg-mainnet/"),
    ],
)
def test_aggregator_selected_by_environment(env, expected):
    cfg = WalrusSettings(
        _env_file=None,
        STORAGE_ENVIRONMENT=env,
        AGGREGATOR_URL_TESTNET="https://agg-testnet/",
        AGGREGATOR_URL_MAINNET="https://agg-mainnet/",
    )
    assert cfg.aggregator_base_url == expected
    assert BlobAddressResolver.from_settings(cfg).resolve_url("x") == expected + "x"


def test_defaults_and_derived_urls():
    cfg = WalrusSettings(_env_file=None, STORAGE_ENVIRONMENT="testnet")
    assert cfg.MAX_RETRIES == 3
    assert cfg.retry_delay_seconds == 1.0
    assert cfg.request_timeout_seconds == 60.0
    assert cfg.aggregator_base_url.endswith("/v1/blobs/by-object-id/")
    assert cfg.aggregator_blob_url == "https://aggregator.walrus-testnet.walrus.space/v1/blobs/"
    assert cfg.default_retention().epochs == 365


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("STORAGE_ENVIRONMENT", "mainnet")
    monkeypatch.setenv("MAX_RETRIES", "5")
    monkeypatch.setenv("RETRY_DELAY_MS", "250")
    cfg = WalrusSettings(_env_file=None)
    assert cfg.network == "mainnet"
    assert cfg.MAX_RETRIES == 5
    assert cfg.retry_delay_seconds == 0.25


@pytest.mark.parametrize(
    "seconds, epochs",
    [(0, 0), (1, 1), (86_400, 1), (86_401, 2), (365 * 86_400, 365)],
)
def test_epochs_round_up_to_whole_days(seconds, epochs):
    assert epochs_for(seconds) == epochs
    assert RetentionPeriod(requested_seconds=seconds).epochs == epochs


def test_negative_retention_rejected():
    with pytest.raises(ValueError):
        RetentionPeriod(requested_seconds=-1)
