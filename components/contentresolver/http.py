from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException

from components.walrusupload.addressing import BlobAddressResolver
from components.walrusupload.config import WalrusSettings
from components.walrusupload.errors import AddressingError, ValidationError, WalrusUploadError

from .contracts import Envelope, ExternalContentBody, ExternalContentInput, ResolvedContent, classify_media
from .service import ContentResolver

logger = logging.getLogger("contentresolver.http")
router = APIRouter(prefix="/content", tags=["content"])


# --- Dependency wiring ---

@lru_cache(maxsize=1)
def get_settings() -> WalrusSettings:
    return WalrusSettings()


def get_content_resolver() -> ContentResolver:
    # Managed uploads need a wallet in the loop; over HTTP only external content resolves.
    return ContentResolver()


def get_address_resolver(settings: WalrusSettings = Depends(get_settings)) -> BlobAddressResolver:
    return BlobAddressResolver.from_settings(settings)


def _status_for(e: WalrusUploadError) -> int:
    if isinstance(e, (ValidationError, AddressingError)):
        return 422
    return 502


# --- Routes ---

@router.post("/external", response_model=Envelope)
def resolve_external(body: ExternalContentBody, svc: ContentResolver = Depends(get_content_resolver)):
    try:
        descriptor = svc.resolve_external(ExternalContentInput(url=body.url))
    except WalrusUploadError as e:
        logger.warning("content.external rejected code=%s err=%s", e.code, e)
        raise HTTPException(status_code=_status_for(e), detail={"code": e.code, "message": str(e)})
    resolved = ResolvedContent(descriptor=descriptor, media_kind=classify_media(descriptor.url))
    return Envelope.success(resolved.model_dump())


@router.get("/objects/{object_id}/url", response_model=Envelope)
def object_url(object_id: str, resolver: BlobAddressResolver = Depends(get_address_resolver)):
    try:
        url = resolver.resolve_url(object_id)
    except WalrusUploadError as e:
        raise HTTPException(status_code=_status_for(e), detail={"code": e.code, "message": str(e)})
    return Envelope.success({"object_id": object_id, "url": url})
