from __future__ import annotations
from typing import Optional

from .contracts import *
from .errors import *
from .addressing import BlobAddressResolver, fallback_blob_url
from .config import WalrusSettings
from .orchestrator import UploadOrchestrator, UploadSession
from .ports import StorageNetworkPort, TransactionSigner
from .progress import ProgressReporter
from .signing import DelegatedSigner, SerializableTransaction, SignableRequest, SigningDelegate, TransactionShape
from .transport import RetryableTransport
from .adapters.publisher import PublisherStorageNetwork


def make_orchestrator_from_env(settings: Optional[WalrusSettings] = None) -> UploadOrchestrator:
    cfg = settings or WalrusSettings()
    transport = RetryableTransport.from_settings(cfg)
    network = PublisherStorageNetwork.from_settings(cfg, transport=transport)
    return UploadOrchestrator(
        network=network,
        resolver=BlobAddressResolver.from_settings(cfg),
        settings=cfg,
    )
