"""Asynchronous HTTP client helper.

This module wraps the `httpx` asynchronous client used by UIO9 source
adapters.  It centralises timeouts and headers and translates transport
failures into the source error taxonomy.  It makes exactly one attempt per
call: retry policy belongs to the orchestrator, and admission belongs to the
adapter holding a governor permit around the call.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional, Set

import httpx

from uio9.core.errors import SourceBlocked, SourceTimeout, SourceUnavailable

# Statuses that mean "the resource is not there" rather than "the source failed"
ABSENT_STATUS_CODES: Set[int] = {404, 410}

# Statuses that mean the source refused to serve us
BLOCKED_STATUS_CODES: Set[int] = {401, 403, 429}


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class AsyncHTTPClient:
    """A single-attempt async HTTP client with source-aware error mapping."""

    DEFAULT_USER_AGENT = "UIO9/1.0 (+https://github.com/uio9/uio9)"

    def __init__(
        self,
        timeout: float = 10.0,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the HTTP client.

        Parameters
        ----------
        timeout : float
            Request timeout in seconds.
        user_agent : str, optional
            User-Agent header sent with every request.
        transport : httpx.AsyncBaseTransport, optional
            Custom transport, mainly for tests.
        """
        self._timeout = timeout
        self._user_agent = user_agent or self.DEFAULT_USER_AGENT
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.logger = logging.getLogger(self.__class__.__name__)
        self._request_count = 0
        self._total_request_time = 0.0

    async def __aenter__(self) -> "AsyncHTTPClient":
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers={"User-Agent": self._user_agent},
            follow_redirects=True,
            transport=self._transport,
        )
        self.logger.debug("HTTP client initialized (timeout=%.1fs)", self._timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            if self._request_count > 0:
                avg_time = self._total_request_time / self._request_count
                self.logger.debug(
                    "HTTP client closed (requests=%d, avg_time=%.2fms)",
                    self._request_count,
                    avg_time * 1000,
                )

    async def get(
        self,
        url: str,
        *,
        source: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make one GET request on behalf of ``source``.

        Returns
        -------
        httpx.Response
            Any successful response, or a 404/410 response the caller should
            read as "not found".

        Raises
        ------
        RuntimeError
            If the client is not used as a context manager.
        SourceTimeout
            If the request timed out.
        SourceBlocked
            On 401/403/429 or a Cloudflare challenge.
        SourceUnavailable
            On connection errors and other error statuses.
        """
        if self._client is None:
            raise RuntimeError("AsyncHTTPClient must be used as an async context manager")

        start_time = time.monotonic()
        self.logger.debug("GET %s (source=%s)", url[:100], source)
        try:
            response = await self._client.get(url, headers=headers, params=params)
        except httpx.TimeoutException as exc:
            raise SourceTimeout(source, f"timed out fetching {url[:100]}") from exc
        except httpx.RequestError as exc:
            raise SourceUnavailable(source, f"request failed: {exc}") from exc

        elapsed = time.monotonic() - start_time
        self._request_count += 1
        self._total_request_time += elapsed
        self.logger.debug(
            "GET %s -> %d (%.2fms)", url[:100], response.status_code, elapsed * 1000
        )

        status = response.status_code
        if status < 400 or status in ABSENT_STATUS_CODES:
            return response
        if status in BLOCKED_STATUS_CODES:
            raise SourceBlocked(
                source, f"HTTP {status} from {url[:100]}", retry_after=_retry_after(response)
            )
        if status == 503 and "cloudflare" in response.headers.get("server", "").lower():
            raise SourceBlocked(source, "Cloudflare protection detected")
        raise SourceUnavailable(source, f"HTTP {status} from {url[:100]}")

    @property
    def stats(self) -> Dict[str, Any]:
        """Get request statistics.

        Returns
        -------
        dict
            Statistics including request count and average time.
        """
        return {
            "request_count": self._request_count,
            "total_time_ms": self._total_request_time * 1000,
            "avg_time_ms": (
                (self._total_request_time / self._request_count * 1000)
                if self._request_count > 0
                else 0
            ),
        }
