from __future__ import annotations

from typing import Optional


class WalrusUploadError(Exception):
    """Base class for upload orchestration errors."""
    code = "walrus_upload_error"

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class ValidationError(WalrusUploadError):
    """Bad caller input. Never retried."""
    code = "validation_error"


class SigningError(WalrusUploadError):
    """The signing capability refused, failed or returned nothing."""
    code = "signing_error"


class TransportError(WalrusUploadError):
    """Network call failed after the configured retries."""
    code = "transport_error"

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        body: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.status = status
        self.body = body


class TransferError(WalrusUploadError):
    """Storage network accepted the call but the result is unusable."""
    code = "transfer_error"


class AddressingError(WalrusUploadError):
    """No identifier available to build a retrieval URL from."""
    code = "addressing_error"


class RetryableClientError(WalrusUploadError):
    """The network client is in a bad state; reset it and retry the whole operation."""
    code = "retryable_client_error"
