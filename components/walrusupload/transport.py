from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx

from .errors import TransportError

log = logging.getLogger("walrusupload.transport")

SleepFn = Callable[[float], Awaitable[None]]


class RetryableTransport:
    """
    Outbound HTTP with a fixed retry delay and a per-attempt deadline.

    Holds no per-call state: every ``send`` counts its own attempts. The only
    mutable thing is the wrapped ``httpx.AsyncClient``, swapped by ``reset``.
    """

    def __init__(
        self,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        request_timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.request_timeout = request_timeout
        self._client_factory = client_factory or (
            lambda: httpx.AsyncClient(timeout=httpx.Timeout(request_timeout))
        )
        self._client = client or self._client_factory()
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "RetryableTransport":
        return cls(
            max_retries=settings.MAX_RETRIES,
            retry_delay=settings.retry_delay_seconds,
            request_timeout=settings.request_timeout_seconds,
            **kwargs,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def send(
        self,
        method: str,
        url: str,
        *,
        content: Optional[bytes] = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        attempts = self.max_retries + 1
        attempt = 1
        while True:
            try:
                return await self._attempt(method, url, content=content, params=params, headers=headers)
            except TransportError as e:
                remaining = attempts - attempt
                if remaining <= 0:
                    log.error(
                        "transport.exhausted method=%s url=%s attempts=%s status=%s",
                        method, url, attempts, e.status,
                    )
                    raise
                log.warning(
                    "transport.retry method=%s url=%s attempt=%s remaining=%s status=%s delay_s=%s err=%s",
                    method, url, attempt, remaining, e.status, self.retry_delay, e,
                )
            await self._sleep(self.retry_delay)
            attempt += 1

    async def _attempt(self, method, url, *, content, params, headers) -> httpx.Response:
        # Snapshot the client so a concurrent reset cannot swap it mid-request.
        client = self._client
        try:
            resp = await asyncio.wait_for(
                client.request(method, url, content=content, params=params, headers=headers),
                timeout=self.request_timeout,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"request timed out after {self.request_timeout}s: {method} {url}", cause=e
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}", cause=e) from e
        except RuntimeError as e:
            # httpx raises RuntimeError when the client has already been closed
            raise TransportError(str(e), cause=e) from e

        if not resp.is_success:
            await resp.aread()
            body = resp.text
            raise TransportError(
                f"HTTP {resp.status_code} - {resp.reason_phrase}\n{body}",
                status=resp.status_code,
                body=body,
            )
        return resp

    async def reset(self) -> None:
        """Drop the current client and start from a fresh connection pool."""
        old = self._client
        self._client = self._client_factory()
        log.info("transport.reset")
        try:
            await old.aclose()
        except Exception:  # pragma: no cover
            log.warning("transport.reset close of old client failed", exc_info=True)

    async def aclose(self) -> None:
        await self._client.aclose()
