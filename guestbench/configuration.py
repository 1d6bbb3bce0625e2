"""
Configuration for the guestbook service and its load-test harness.

This module contains:
- Target service and list store endpoints (overridable from the environment)
- Load-test defaults (request count, worker count, percentiles)
- Backoff and timeout parameters
- The immutable LoadTestConfig / BackoffPolicy values passed to workers
"""

import os
from dataclasses import dataclass, field
from typing import Tuple
from urllib.parse import urlparse

# =============================================================================
# TARGET SERVICE CONFIGURATION
# =============================================================================

GUESTBOOK_URL: str = os.getenv("GUESTBOOK_URL", "http://localhost:8080")

COMMENTS_PATH: str = "/comments"  # GET: list recent comments
COMMENT_PATH: str = "/comment"  # POST: add a comment

# =============================================================================
# GUESTBOOK SERVICE CONFIGURATION
# =============================================================================

GUESTBOOK_HOST: str = os.getenv("GUESTBOOK_HOST", "0.0.0.0")
GUESTBOOK_PORT: int = int(os.getenv("GUESTBOOK_PORT", "8080"))

REDIS_ADDR: str = os.getenv("REDIS_ADDR", "redis-container:6379")
REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")
REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))

COMMENTS_KEY: str = "comments"  # List key holding JSON-encoded comments
RECENT_COMMENTS_LIMIT: int = 10  # GET /comments returns at most this many

# =============================================================================
# LOAD TEST PARAMETERS
# =============================================================================

DEFAULT_NUM_REQUESTS: int = 1000
DEFAULT_THREADS: int = 10
DEFAULT_PERCENTILES: Tuple[int, ...] = (50, 90, 95, 99)

QUERY_TOKEN_LENGTH: int = 10  # Length of the random cache-busting query key/value
COMMENT_MESSAGE_LENGTH: int = 30
LOADTEST_USERNAME: str = "test"
RANDOM_CHARSET: str = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

PROGRESS_INTERVAL: int = 50  # Log worker progress every N iterations

# =============================================================================
# BACKOFF AND TIMEOUTS
# =============================================================================

INITIAL_BACKOFF_MS: float = 20.0
MAX_BACKOFF_MS: float = 5000.0
MAX_ATTEMPTS: int = 10

REQUEST_TIMEOUT_SECONDS: float = 30.0
RESULT_POLL_INTERVAL_SECONDS: float = 1.0  # How often the collector re-checks worker liveness
PROCESS_JOIN_TIMEOUT_SECONDS: float = 30.0

# =============================================================================
# HTTP STATUS CODES
# =============================================================================

HTTP_CREATED_STATUS: int = 201

# =============================================================================
# CONVERSION FACTORS
# =============================================================================

MS_PER_SECOND: float = 1000.0
DRAIN_CHUNK_BYTES: int = 64 * 1024

# =============================================================================
# CLI DEFAULTS
# =============================================================================

DEFAULT_OUTPUT_DIR: str = "results"


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff parameters for one logical request."""

    initial_delay_ms: float = INITIAL_BACKOFF_MS
    max_delay_ms: float = MAX_BACKOFF_MS
    max_attempts: int = MAX_ATTEMPTS

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("backoff delays must not be negative")

    def delays_ms(self) -> Tuple[float, ...]:
        """Delays slept between attempts (one fewer than max_attempts)."""
        delays = []
        delay = self.initial_delay_ms
        for _ in range(self.max_attempts - 1):
            delays.append(min(delay, self.max_delay_ms))
            delay *= 2
        return tuple(delays)


@dataclass(frozen=True)
class LoadTestConfig:
    """Everything a load-test run depends on. Built once and handed to every worker."""

    base_url: str = GUESTBOOK_URL
    num_requests: int = DEFAULT_NUM_REQUESTS
    threads: int = DEFAULT_THREADS
    percentiles: Tuple[float, ...] = DEFAULT_PERCENTILES
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)
    request_timeout_seconds: float = REQUEST_TIMEOUT_SECONDS

    def __post_init__(self):
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"base_url must be an http(s) URL, got {self.base_url!r}")
        if self.threads < 1:
            raise ValueError(f"threads must be positive, got {self.threads}")
        if self.num_requests < 0:
            raise ValueError(f"num_requests must not be negative, got {self.num_requests}")
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        for p in self.percentiles:
            if not 0 < p <= 100:
                raise ValueError(f"percentile must be in (0, 100], got {p}")
        # Trailing slashes would double up when endpoint paths are appended
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        object.__setattr__(self, "percentiles", tuple(self.percentiles))

    @property
    def comments_url(self) -> str:
        return f"{self.base_url}{COMMENTS_PATH}"

    @property
    def comment_url(self) -> str:
        return f"{self.base_url}{COMMENT_PATH}"

    def iterations_per_worker(self) -> Tuple[int, ...]:
        """Split num_requests across workers; the first `num_requests % threads` get one extra."""
        base, extra = divmod(self.num_requests, self.threads)
        return tuple(base + 1 if i < extra else base for i in range(self.threads))
