from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .contracts import RetentionPeriod

StorageEnvironment = Literal["testnet", "mainnet", "devnet", "localnet"]


class WalrusSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    STORAGE_ENVIRONMENT: StorageEnvironment = Field(default="testnet")
    # Aggregator endpoints resolving by object id
    AGGREGATOR_URL_TESTNET: str = Field(
        default="https://aggregator.walrus-testnet.walrus.space/v1/blobs/by-object-id/"
    )
    AGGREGATOR_URL_MAINNET: str = Field(default="https://walrus.globalstake.io/v1/blobs/by-object-id/")
    # Publisher endpoints accepting blob writes
    PUBLISHER_URL_TESTNET: str = Field(default="https://publisher.walrus-testnet.walrus.space")
    PUBLISHER_URL_MAINNET: str = Field(default="")
    # Transport
    MAX_RETRIES: int = Field(default=3, ge=0)
    RETRY_DELAY_MS: int = Field(default=1000, ge=0)
    REQUEST_TIMEOUT_MS: int = Field(default=60_000, gt=0)
    # Upload defaults
    DEFAULT_RETENTION_DAYS: int = Field(default=365, ge=1)
    UPLOAD_ORIGIN: str = Field(default="unknown")
    BLOB_DELETABLE: bool = True

    @property
    def network(self) -> Literal["testnet", "mainnet"]:
        # devnet and localnet have no aggregator of their own
        return "mainnet" if self.STORAGE_ENVIRONMENT == "mainnet" else "testnet"

    @property
    def aggregator_base_url(self) -> str:
        if self.network == "mainnet":
            return self.AGGREGATOR_URL_MAINNET
        return self.AGGREGATOR_URL_TESTNET

    @property
    def aggregator_blob_url(self) -> str:
        base = self.aggregator_base_url
        if base.endswith("by-object-id/"):
            base = base[: -len("by-object-id/")]
        return base if base.endswith("/") else base + "/"

    @property
    def publisher_url(self) -> str:
        if self.network == "mainnet":
            return self.PUBLISHER_URL_MAINNET
        return self.PUBLISHER_URL_TESTNET

    @property
    def retry_delay_seconds(self) -> float:
        return self.RETRY_DELAY_MS / 1000.0

    @property
    def request_timeout_seconds(self) -> float:
        return self.REQUEST_TIMEOUT_MS / 1000.0

    def default_retention(self) -> RetentionPeriod:
        return RetentionPeriod.from_days(self.DEFAULT_RETENTION_DAYS)
