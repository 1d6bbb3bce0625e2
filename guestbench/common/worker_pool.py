"""
Load-test worker: a fixed number of sequential GET/POST iterations against the guestbook.
"""

import logging
import random
from typing import Optional

from guestbench.common.backoff import BackoffRequester
from guestbench.configuration import (
    COMMENT_MESSAGE_LENGTH,
    LOADTEST_USERNAME,
    LoadTestConfig,
    PROGRESS_INTERVAL,
    QUERY_TOKEN_LENGTH,
    RANDOM_CHARSET,
)
from guestbench.exceptions import BackoffExhausted, SerializationFailed
from guestbench.persistence.record import Comment, Stats

logger = logging.getLogger(__name__)


def random_string(length: int, rng: random.Random) -> str:
    """Random alphanumeric string."""
    return "".join(rng.choice(RANDOM_CHARSET) for _ in range(length))


class Worker:
    """Runs iterations sequentially and accumulates a private Stats record.

    Every iteration picks GET or POST with equal probability. A failed
    request is counted as an error and never stops the worker.
    """

    def __init__(
        self,
        worker_id: int,
        requester: BackoffRequester,
        config: LoadTestConfig,
        rng: Optional[random.Random] = None,
    ):
        self.worker_id = worker_id
        self.requester = requester
        self.config = config
        self.rng = rng or random.Random()
        self.stats = Stats()
        self.iterations_completed = 0

    async def run(self, iterations: int) -> Stats:
        """Run `iterations` request cycles and return the final Stats."""
        logger.debug(f"Worker {self.worker_id}: starting {iterations} iterations")

        for _ in range(iterations):
            await self._run_iteration()
            self.iterations_completed += 1

            if self.iterations_completed % PROGRESS_INTERVAL == 0:
                logger.debug(
                    f"Worker {self.worker_id}: {self.iterations_completed}/{iterations} iterations, "
                    f"{self.stats.error_count} errors"
                )

        logger.debug(
            f"Worker {self.worker_id} finished: "
            f"{self.stats.successful_get_count} GET, {self.stats.successful_post_count} POST, "
            f"{self.stats.error_count} errors"
        )
        return self.stats

    async def _run_iteration(self):
        query_key = random_string(QUERY_TOKEN_LENGTH, self.rng)
        query_value = random_string(QUERY_TOKEN_LENGTH, self.rng)
        query = f"?{query_key}={query_value}"

        if self.rng.randrange(2) == 0:
            url = f"{self.config.comments_url}{query}"
            try:
                result = await self.requester.get(url)
            except BackoffExhausted as e:
                logger.warning(f"Worker {self.worker_id} GET request error: {e}")
                self.stats.error_count += 1
                return
            self.stats.successful_get_count += 1
        else:
            url = f"{self.config.comment_url}{query}"
            comment = Comment(
                username=LOADTEST_USERNAME,
                message=random_string(COMMENT_MESSAGE_LENGTH, self.rng),
            )
            try:
                result = await self.requester.post(url, comment)
            except (BackoffExhausted, SerializationFailed) as e:
                logger.warning(f"Worker {self.worker_id} POST request error: {e}")
                self.stats.error_count += 1
                return
            self.stats.successful_post_count += 1

        self.stats.total_bytes_sent += result.bytes_sent
        self.stats.total_bytes_received += result.bytes_received
        self.stats.latencies.append(result.latency_ms)
