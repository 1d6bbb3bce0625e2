"""
Async HTTP client for the guestbook service.

Each call performs exactly one attempt; retrying is the backoff requester's job.
"""

import asyncio
import logging
import time
from typing import Optional, Tuple

import aiohttp

from guestbench.configuration import (
    DRAIN_CHUNK_BYTES,
    MS_PER_SECOND,
    REQUEST_TIMEOUT_SECONDS,
)
from guestbench.exceptions import NetworkFailure

logger = logging.getLogger(__name__)


class GuestbookSystem:
    """aiohttp-backed client for the guestbook's GET /comments and POST /comment endpoints."""

    def __init__(self, request_timeout_seconds: float = REQUEST_TIMEOUT_SECONDS):
        self.request_timeout_seconds = request_timeout_seconds
        self._timeout = aiohttp.ClientTimeout(total=request_timeout_seconds)
        self.session: Optional[aiohttp.ClientSession] = None

        # Per-client attempt counters
        self._metrics = {
            "total_attempts": 0,
            "failed_attempts": 0,
        }

    async def __aenter__(self):
        """Async context manager entry."""
        self.session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.session:
            await self.session.close()
            self.session = None

    async def get(self, url: str) -> Tuple[float, int, int]:
        """GET a URL once and drain the body.

        Returns:
            Tuple of (latency_ms, bytes_sent, bytes_received); bytes_sent is always 0

        Raises:
            NetworkFailure: on connection error, timeout or non-2xx status
        """
        return await self._attempt("GET", url, None)

    async def post_json(self, url: str, body: bytes) -> Tuple[float, int, int]:
        """POST pre-encoded JSON once and drain the response body.

        Returns:
            Tuple of (latency_ms, bytes_sent, bytes_received)

        Raises:
            NetworkFailure: on connection error, timeout or non-2xx status
        """
        return await self._attempt("POST", url, body)

    async def _attempt(self, method: str, url: str, body: Optional[bytes]) -> Tuple[float, int, int]:
        if not self.session:
            raise RuntimeError("HTTP session not initialized. Use async context manager.")

        self._metrics["total_attempts"] += 1
        headers = {"Content-Type": "application/json"} if body is not None else None
        start_time = time.perf_counter()
        try:
            async with self.session.request(method, url, data=body, headers=headers) as response:
                # Latency ends when the status line and headers arrive; draining is not timed
                latency_ms = (time.perf_counter() - start_time) * MS_PER_SECOND
                bytes_received = await self._drain(response)
                if not 200 <= response.status < 300:
                    self._metrics["failed_attempts"] += 1
                    raise NetworkFailure(
                        f"{method} {url} returned HTTP {response.status}", status=response.status
                    )
        except asyncio.TimeoutError as e:
            self._metrics["failed_attempts"] += 1
            raise NetworkFailure(
                f"{method} {url} timed out after {self.request_timeout_seconds}s"
            ) from e
        except aiohttp.ClientError as e:
            self._metrics["failed_attempts"] += 1
            raise NetworkFailure(f"{method} {url} failed: {e}") from e

        bytes_sent = len(body) if body is not None else 0
        return latency_ms, bytes_sent, bytes_received

    @staticmethod
    async def _drain(response: aiohttp.ClientResponse) -> int:
        """Read the whole body, counting bytes without keeping them."""
        total = 0
        async for chunk in response.content.iter_chunked(DRAIN_CHUNK_BYTES):
            total += len(chunk)
        return total

    def get_metrics(self):
        """Attempt counters for this client."""
        return self._metrics.copy()
