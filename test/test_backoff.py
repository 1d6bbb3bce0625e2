"""
Tests for the exponential backoff requester.
"""

import os
import sys
import unittest
from datetime import datetime

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from guestbench.common.backoff import BackoffRequester
from guestbench.configuration import BackoffPolicy
from guestbench.exceptions import BackoffExhausted, NetworkFailure, SerializationFailed
from guestbench.persistence.record import Comment


class FakeSystem:
    """Single-attempt client whose attempts fail until `succeed_on`."""

    def __init__(self, succeed_on=None, latencies=None):
        self.succeed_on = succeed_on  # None = never succeed
        self.latencies = latencies or {}
        self.calls = []

    def _attempt(self, method, url, body):
        self.calls.append((method, url, body))
        attempt = len(self.calls)
        if self.succeed_on is None or attempt < self.succeed_on:
            raise NetworkFailure(f"attempt {attempt} refused")
        sent = len(body) if body is not None else 0
        return self.latencies.get(attempt, 1.0), sent, 42

    async def get(self, url):
        return self._attempt("GET", url, None)

    async def post_json(self, url, body):
        return self._attempt("POST", url, body)


class TestBackoffRequester(unittest.IsolatedAsyncioTestCase):
    """Test retry count, delays and measurements of the backoff requester."""

    def setUp(self):
        self.delays = []

    async def fake_sleep(self, seconds):
        self.delays.append(seconds)

    async def test_always_failing_target_exhausts_after_ten_attempts(self):
        """A target that never succeeds gets 10 attempts and 9 capped, doubling delays."""
        system = FakeSystem(succeed_on=None)
        requester = BackoffRequester(system, sleep=self.fake_sleep)

        with self.assertRaises(BackoffExhausted) as ctx:
            await requester.get("http://guestbook/comments")

        self.assertEqual(len(system.calls), 10)
        self.assertEqual(ctx.exception.attempts, 10)
        self.assertIsInstance(ctx.exception.last_error, NetworkFailure)
        expected_ms = [20, 40, 80, 160, 320, 640, 1280, 2560, 5000]
        self.assertEqual(self.delays, [ms / 1000 for ms in expected_ms])
        self.assertEqual(list(BackoffPolicy().delays_ms()), expected_ms)

    async def test_success_on_attempt_k_uses_attempt_k_latency(self):
        """Succeeding on attempt k makes exactly k attempts and reports attempt k's latency."""
        for k in (1, 4, 10):
            with self.subTest(k=k):
                self.delays = []
                latencies = {i: float(i * 100) for i in range(1, 11)}
                system = FakeSystem(succeed_on=k, latencies=latencies)
                requester = BackoffRequester(system, sleep=self.fake_sleep)

                result = await requester.get("http://guestbook/comments?a=b")

                self.assertEqual(len(system.calls), k)
                self.assertEqual(result.attempts, k)
                self.assertEqual(result.latency_ms, k * 100.0)
                self.assertEqual(len(self.delays), k - 1)

    async def test_get_reports_no_bytes_sent(self):
        """GET requests send no body."""
        requester = BackoffRequester(FakeSystem(succeed_on=1), sleep=self.fake_sleep)

        result = await requester.get("http://guestbook/comments")

        self.assertEqual(result.bytes_sent, 0)
        self.assertEqual(result.bytes_received, 42)

    async def test_post_sends_encoded_comment(self):
        """POST bytes sent equal the JSON encoding of the comment, reused across retries."""
        system = FakeSystem(succeed_on=3)
        requester = BackoffRequester(system, sleep=self.fake_sleep)
        comment = Comment(username="test", message="hello", time=datetime(2024, 1, 2, 3, 4, 5))

        result = await requester.post("http://guestbook/comment", comment)

        body = comment.to_json_bytes()
        self.assertEqual(result.bytes_sent, len(body))
        self.assertEqual({call[2] for call in system.calls}, {body})

    async def test_serialization_failure_makes_no_attempt(self):
        """An unencodable comment fails immediately without touching the network."""
        system = FakeSystem(succeed_on=1)
        requester = BackoffRequester(system, sleep=self.fake_sleep)
        broken = Comment(username="test", message="hello", time="not-a-datetime")

        with self.assertRaises(SerializationFailed):
            await requester.post("http://guestbook/comment", broken)

        self.assertEqual(system.calls, [])
        self.assertEqual(self.delays, [])

    async def test_custom_policy(self):
        """Shrunk policies bound attempts and delays."""
        system = FakeSystem(succeed_on=None)
        policy = BackoffPolicy(initial_delay_ms=1, max_delay_ms=3, max_attempts=4)
        requester = BackoffRequester(system, policy, sleep=self.fake_sleep)

        with self.assertRaises(BackoffExhausted):
            await requester.get("http://guestbook/comments")

        self.assertEqual(len(system.calls), 4)
        self.assertEqual(self.delays, [0.001, 0.002, 0.003])

    async def test_sleeps_follow_policy_delays(self):
        """The slept sequence is exactly what the policy's delays_ms() returns."""

        class FixedDelays(BackoffPolicy):
            def delays_ms(self):
                return (7.0, 11.0)

        system = FakeSystem(succeed_on=None)
        requester = BackoffRequester(system, FixedDelays(max_attempts=3), sleep=self.fake_sleep)

        with self.assertRaises(BackoffExhausted):
            await requester.get("http://guestbook/comments")

        self.assertEqual(len(system.calls), 3)
        self.assertEqual(self.delays, [0.007, 0.011])

    async def test_single_attempt_never_sleeps(self):
        system = FakeSystem(succeed_on=None)
        requester = BackoffRequester(system, BackoffPolicy(max_attempts=1), sleep=self.fake_sleep)

        with self.assertRaises(BackoffExhausted):
            await requester.get("http://guestbook/comments")

        self.assertEqual(len(system.calls), 1)
        self.assertEqual(self.delays, [])


if __name__ == '__main__':
    unittest.main()
