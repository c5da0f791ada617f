from __future__ import annotations

import logging
from typing import Optional, Union

from components.walrusupload.contracts import ContentDescriptor
from components.walrusupload.errors import ValidationError
from components.walrusupload.orchestrator import UploadOrchestrator
from components.walrusupload.progress import ProgressCallback

from .contracts import ExternalContentInput, ManagedContentInput, StorageMode

logger = logging.getLogger("contentresolver")

ContentInput = Union[ManagedContentInput, ExternalContentInput]


class ContentResolver:
    """
    One descriptor shape whether content was just uploaded or already hosted
    elsewhere. External URLs bypass the orchestrator entirely.
    """

    def __init__(self, orchestrator: Optional[UploadOrchestrator] = None) -> None:
        self.orchestrator = orchestrator

    async def resolve(
        self,
        mode: StorageMode,
        input: ContentInput,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ContentDescriptor:
        if mode == "external":
            return self.resolve_external(input)
        if mode == "managed":
            return await self._resolve_managed(input, on_progress)
        raise ValidationError(f"unknown storage mode: {mode!r}")

    def resolve_external(self, input: Union[ExternalContentInput, dict]) -> ContentDescriptor:
        if isinstance(input, dict):
            input = ExternalContentInput(url=input.get("url") or "")
        if not isinstance(input, ExternalContentInput):
            raise ValidationError("external mode expects an ExternalContentInput")
        if not input.url or not input.url.strip():
            raise ValidationError("external URL must not be empty")
        logger.info("content.external url=%s", input.url)
        return ContentDescriptor(url=input.url, blob_id=None, storage_source="external")

    async def _resolve_managed(self, input, on_progress) -> ContentDescriptor:
        if not isinstance(input, ManagedContentInput):
            raise ValidationError("managed mode expects a ManagedContentInput")
        if self.orchestrator is None:
            raise ValidationError("managed uploads are not configured")
        return await self.orchestrator.upload(
            input.blob,
            input.retention,
            input.caller_address,
            input.capability,
            on_progress=on_progress,
        )
