"""
Tests for the load-test worker.
"""

import asyncio
import os
import random
import sys
import unittest

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from guestbench.common.backoff import RequestResult
from guestbench.common.worker_pool import Worker, random_string
from guestbench.configuration import (
    COMMENT_MESSAGE_LENGTH,
    LOADTEST_USERNAME,
    LoadTestConfig,
    QUERY_TOKEN_LENGTH,
)
from guestbench.exceptions import BackoffExhausted, SerializationFailed
from guestbench.persistence.metrics_aggregator import MetricsAggregator

BASE_URL = "http://guestbook.test"


class FakeRequester:
    """Stands in for BackoffRequester; `fail` decides per call whether to raise."""

    def __init__(self, fail=lambda method, n: False, post_error=BackoffExhausted):
        self.fail = fail
        self.post_error = post_error
        self.gets = []
        self.posts = []

    async def get(self, url):
        self.gets.append(url)
        if self.fail("GET", len(self.gets) + len(self.posts)):
            raise BackoffExhausted(url, 10)
        return RequestResult(latency_ms=10.0, bytes_sent=0, bytes_received=100, attempts=1)

    async def post(self, url, comment):
        self.posts.append((url, comment))
        if self.fail("POST", len(self.gets) + len(self.posts)):
            if self.post_error is SerializationFailed:
                raise SerializationFailed("cannot encode")
            raise BackoffExhausted(url, 10)
        return RequestResult(latency_ms=20.0, bytes_sent=80, bytes_received=0, attempts=1)


class TestWorker(unittest.IsolatedAsyncioTestCase):
    """Test iteration accounting, URL shape and failure containment."""

    def setUp(self):
        self.config = LoadTestConfig(base_url=BASE_URL, num_requests=100, threads=1)

    async def test_all_successful(self):
        """Every iteration is counted exactly once with its bytes and latency."""
        requester = FakeRequester()
        worker = Worker(0, requester, self.config, rng=random.Random(7))

        stats = await worker.run(200)

        self.assertEqual(stats.successful_get_count, len(requester.gets))
        self.assertEqual(stats.successful_post_count, len(requester.posts))
        self.assertEqual(stats.successful_count, 200)
        self.assertEqual(stats.error_count, 0)
        self.assertEqual(len(stats.latencies), 200)
        self.assertEqual(stats.total_bytes_sent, 80 * len(requester.posts))
        self.assertEqual(stats.total_bytes_received, 100 * len(requester.gets))
        # A fair coin over 200 flips lands well inside this band
        self.assertGreater(len(requester.gets), 50)
        self.assertGreater(len(requester.posts), 50)

    async def test_every_request_fails(self):
        """A worker whose every request fails still finishes with only errors."""
        requester = FakeRequester(fail=lambda method, n: True)
        worker = Worker(0, requester, self.config, rng=random.Random(1))

        stats = await worker.run(25)

        self.assertEqual(stats.error_count, 25)
        self.assertEqual(stats.successful_count, 0)
        self.assertEqual(stats.latencies, [])
        self.assertEqual(stats.total_bytes_sent, 0)
        self.assertEqual(worker.iterations_completed, 25)

    async def test_serialization_failure_is_counted(self):
        """SerializationFailed on POST is an error, not a crash."""
        requester = FakeRequester(fail=lambda method, n: method == "POST", post_error=SerializationFailed)
        worker = Worker(0, requester, self.config, rng=random.Random(3))

        stats = await worker.run(40)

        self.assertEqual(stats.error_count, len(requester.posts))
        self.assertEqual(stats.successful_post_count, 0)
        self.assertEqual(stats.successful_get_count, len(requester.gets))
        self.assertEqual(stats.total_count, 40)

    async def test_request_shape(self):
        """URLs carry a random key=value query; POSTs carry a fresh test comment."""
        requester = FakeRequester()
        worker = Worker(0, requester, self.config, rng=random.Random(11))

        await worker.run(30)

        for url in requester.gets:
            self.assertTrue(url.startswith(f"{BASE_URL}/comments?"))
            key, value = url.split("?", 1)[1].split("=")
            self.assertEqual(len(key), QUERY_TOKEN_LENGTH)
            self.assertEqual(len(value), QUERY_TOKEN_LENGTH)
        for url, comment in requester.posts:
            self.assertTrue(url.startswith(f"{BASE_URL}/comment?"))
            self.assertEqual(comment.username, LOADTEST_USERNAME)
            self.assertEqual(len(comment.message), COMMENT_MESSAGE_LENGTH)
            self.assertTrue(comment.message.isalnum())
        messages = [comment.message for _, comment in requester.posts]
        self.assertEqual(len(set(messages)), len(messages))

    async def test_zero_iterations(self):
        """A worker with nothing to do reports empty stats."""
        worker = Worker(0, FakeRequester(), self.config)

        stats = await worker.run(0)

        self.assertEqual(stats.total_count, 0)

    async def test_totals_independent_of_worker_count(self):
        """Successes plus errors equal the configured total for any worker count."""
        for threads in (1, 4, 37):
            with self.subTest(threads=threads):
                config = LoadTestConfig(base_url=BASE_URL, num_requests=100, threads=threads)
                aggregator = MetricsAggregator(expected_workers=threads)
                # Every third call fails
                requester = FakeRequester(fail=lambda method, n: n % 3 == 0)
                workers = [
                    Worker(i, requester, config, rng=random.Random(i))
                    for i in range(threads)
                ]

                results = await asyncio.gather(
                    *(w.run(n) for w, n in zip(workers, config.iterations_per_worker()))
                )
                for stats in results:
                    aggregator.add_stats(stats)

                merged = aggregator.merged
                self.assertTrue(aggregator.complete)
                self.assertEqual(merged.successful_count + merged.error_count, 100)
                self.assertEqual(merged.error_count, 33)
                self.assertEqual(len(merged.latencies), merged.successful_count)


class TestRandomString(unittest.TestCase):
    """Test random string generation."""

    def test_length_and_charset(self):
        value = random_string(30, random.Random(5))
        self.assertEqual(len(value), 30)
        self.assertTrue(value.isalnum())

    def test_seeded_is_deterministic(self):
        self.assertEqual(random_string(10, random.Random(9)), random_string(10, random.Random(9)))


if __name__ == '__main__':
    unittest.main()
