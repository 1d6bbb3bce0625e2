"""
Exponential-backoff wrapper around a single-attempt guestbook client.
"""

import asyncio
import logging
from typing import Awaitable, Callable, NamedTuple, Optional

from guestbench.configuration import BackoffPolicy, MS_PER_SECOND
from guestbench.exceptions import BackoffExhausted, NetworkFailure
from guestbench.persistence.record import Comment

logger = logging.getLogger(__name__)


class RequestResult(NamedTuple):
    """Outcome of one logical request: measurements of its final attempt."""

    latency_ms: float
    bytes_sent: int
    bytes_received: int
    attempts: int


class BackoffRequester:
    """Issues GET/POST requests, retrying failed attempts with exponential backoff.

    Delay starts at policy.initial_delay_ms and doubles after every failed
    attempt, capped at policy.max_delay_ms. No delay follows the last attempt.
    """

    def __init__(
        self,
        system,
        policy: Optional[BackoffPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            system: Client exposing async get(url) and post_json(url, body)
            policy: Backoff parameters (default: 20ms doubling to 5s, 10 attempts)
            sleep: Coroutine function taking seconds
        """
        self.system = system
        self.policy = policy or BackoffPolicy()
        self._sleep = sleep

    async def get(self, url: str) -> RequestResult:
        """GET with retries.

        Raises:
            BackoffExhausted: if every attempt failed
        """
        return await self._with_backoff(url, lambda: self.system.get(url))

    async def post(self, url: str, comment: Comment) -> RequestResult:
        """POST a comment with retries. The payload is encoded once, up front.

        Raises:
            SerializationFailed: if the comment cannot be encoded (no attempt is made)
            BackoffExhausted: if every attempt failed
        """
        body = comment.to_json_bytes()
        return await self._with_backoff(url, lambda: self.system.post_json(url, body))

    async def _with_backoff(self, url: str, attempt) -> RequestResult:
        last_error: Optional[NetworkFailure] = None
        # One delay between consecutive attempts, none after the last
        delays = self.policy.delays_ms() + (None,)

        for attempt_number, delay_ms in enumerate(delays, start=1):
            try:
                latency_ms, bytes_sent, bytes_received = await attempt()
                if attempt_number > 1:
                    logger.debug(f"{url} succeeded on attempt {attempt_number}")
                return RequestResult(latency_ms, bytes_sent, bytes_received, attempt_number)
            except NetworkFailure as e:
                last_error = e
                logger.debug(
                    f"Attempt {attempt_number}/{self.policy.max_attempts} for {url} failed: {e}"
                )

            if delay_ms is not None:
                await self._sleep(delay_ms / MS_PER_SECOND)

        raise BackoffExhausted(url, self.policy.max_attempts, last_error)
