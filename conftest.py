from pathlib import Path
import sys

import pytest

# Ensure project root is on sys.path before tests import modules
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from components.walrusupload.config import WalrusSettings  # noqa: E402

ADDRESS = "0xa11ce"
AGGREGATOR = "https://agg.test/"


@pytest.fixture
def settings() -> WalrusSettings:
    # explicit values win over any STORAGE_* / AGGREGATOR_* variables in the shell
    return WalrusSettings(
        _env_file=None,
        STORAGE_ENVIRONMENT="testnet",
        AGGREGATOR_URL_TESTNET=AGGREGATOR,
        PUBLISHER_URL_TESTNET="https://pub.test",
        MAX_RETRIES=3,
        RETRY_DELAY_MS=0,
        UPLOAD_ORIGIN="https://billboard.test",
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)
    return _sleep
