"""Async HTTP access to the OData Web API."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from lookupscope.core.config import ClientConfig

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

ODATA_HEADERS = {
    "Accept": "application/json",
    "OData-MaxVersion": "4.0",
    "OData-Version": "4.0",
    "Prefer": 'odata.include-annotations="*"',
}


class RequestLimiter:
    """Caps in-flight requests and spaces out request starts.

    Runs entirely on the caller's event loop: no timers, no background tasks.
    """

    def __init__(self, max_concurrent: int = 3, min_delay: float = 0.05) -> None:
        """Initialize the limiter.

        Args:
            max_concurrent: Maximum number of requests in flight at once
            min_delay: Minimum seconds between two request starts
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._spacing = asyncio.Lock()
        self._min_delay = min_delay
        self._last_start = 0.0

    async def __aenter__(self) -> RequestLimiter:
        await self._semaphore.acquire()
        try:
            async with self._spacing:
                wait = self._min_delay - (time.monotonic() - self._last_start)
                if wait > 0:
                    await asyncio.sleep(wait)
                self._last_start = time.monotonic()
        except BaseException:
            self._semaphore.release()
            raise
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self._semaphore.release()


class WebApiClient:
    """Thin wrapper around ``httpx.AsyncClient`` rooted at the versioned API.

    Non-success statuses are returned, not raised: callers decide whether a
    failure is fatal and translate it with the diagnostics module.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Connection settings (resolved from the environment if omitted)
            client: Pre-built httpx client to use instead of creating one
            transport: Custom transport for the created client (e.g. httpx.MockTransport)
        """
        self.config = config or ClientConfig.from_env()
        self._limiter = RequestLimiter(self.config.max_concurrent, self.config.min_delay)
        self._owns_client = client is None
        if client is None:
            headers = dict(ODATA_HEADERS)
            if self.config.token:
                headers["Authorization"] = f"Bearer {self.config.token}"
            headers.update(self.config.extra_headers)
            client = httpx.AsyncClient(
                base_url=self.config.api_root + "/",
                headers=headers,
                timeout=self.config.timeout,
                transport=transport,
            )
        self._client = client
        self.request_count = 0

    async def get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """Issue a GET relative to the API root.

        Args:
            path: Path relative to the API root (e.g. "accounts")
            params: Query parameters ($select, $filter, ...)

        Returns:
            The response, whatever its status

        Raises:
            httpx.HTTPError: On transport-level failures
        """
        async with self._limiter:
            self.request_count += 1
            logger.debug(f"GET {path} {params or ''}")
            return await self._client.get(path.lstrip("/"), params=params)

    async def aclose(self) -> None:
        """Close the underlying client if this wrapper created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> WebApiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
