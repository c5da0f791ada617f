from __future__ import annotations

import logging
from typing import Optional

from .errors import AddressingError

log = logging.getLogger("walrusupload.addressing")


class BlobAddressResolver:
    """Maps a blob object id to its aggregator URL. Pure; no network access."""

    def __init__(self, aggregator_base_url: str) -> None:
        if not aggregator_base_url:
            raise ValueError("aggregator_base_url is required")
        self.aggregator_base_url = aggregator_base_url

    @classmethod
    def from_settings(cls, settings) -> "BlobAddressResolver":
        return cls(settings.aggregator_base_url)

    def resolve_url(self, object_id: Optional[str] = None) -> str:
        if not object_id:
            raise AddressingError("object id missing; cannot build aggregator URL")
        return f"{self.aggregator_base_url}{object_id}"


def fallback_blob_url(blob_id: str, environment: str) -> str:
    """Public site URL by blob id, for transfers that reported no object id."""
    if not blob_id:
        raise AddressingError("blob id missing; cannot build fallback URL")
    return f"https://{environment}.walrus.app/blob/{blob_id}"
