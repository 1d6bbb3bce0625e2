"""
Basic data structures for the guestbook load test.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from guestbench.exceptions import SerializationFailed


@dataclass(frozen=True)
class Comment:
    """A single guestbook comment. Used as the POST payload."""

    username: str
    message: str
    time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "message": self.message,
            "time": self.time.isoformat(),
        }

    def to_json_bytes(self) -> bytes:
        """Encode for the wire.

        Raises:
            SerializationFailed: if any field cannot be encoded
        """
        try:
            return json.dumps(self.to_dict()).encode("utf-8")
        except (TypeError, ValueError, AttributeError, UnicodeEncodeError) as e:
            raise SerializationFailed(f"cannot encode comment: {e}") from e

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Comment":
        """Build a comment from decoded JSON.

        Raises:
            ValueError: if username/message are missing or not strings, or time is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("comment must be a JSON object")
        username = data.get("username")
        message = data.get("message")
        if not isinstance(username, str) or not isinstance(message, str):
            raise ValueError("comment needs string 'username' and 'message' fields")
        raw_time = data.get("time")
        if raw_time is None:
            return cls(username=username, message=message)
        if not isinstance(raw_time, str):
            raise ValueError("comment 'time' must be an ISO 8601 string")
        return cls(username=username, message=message, time=parse_timestamp(raw_time))


_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp, including nanosecond forms such as
    '2024-05-01T12:00:00.123456789Z'.

    Before Python 3.11 fromisoformat() rejects a trailing 'Z' and any
    fraction that is not exactly 3 or 6 digits, so both are normalized first.

    Raises:
        ValueError: if the value is not a valid timestamp
    """
    normalized = _FRACTION_RE.sub(
        lambda m: "." + m.group(1)[:6].ljust(6, "0"), value.strip(), count=1
    )
    if normalized.endswith(("Z", "z")):
        normalized = normalized[:-1] + "+00:00"
    return datetime.fromisoformat(normalized)


@dataclass
class Stats:
    """Per-worker request statistics. Merged into one instance by the aggregator."""

    successful_get_count: int = 0
    successful_post_count: int = 0
    total_bytes_sent: int = 0
    total_bytes_received: int = 0
    error_count: int = 0
    latencies: List[float] = field(default_factory=list)  # milliseconds

    @property
    def successful_count(self) -> int:
        return self.successful_get_count + self.successful_post_count

    @property
    def total_count(self) -> int:
        return self.successful_count + self.error_count

    def merge(self, other: "Stats") -> "Stats":
        """Add another worker's counters and latencies into this one."""
        self.successful_get_count += other.successful_get_count
        self.successful_post_count += other.successful_post_count
        self.total_bytes_sent += other.total_bytes_sent
        self.total_bytes_received += other.total_bytes_received
        self.error_count += other.error_count
        self.latencies.extend(other.latencies)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "successful_get_count": self.successful_get_count,
            "successful_post_count": self.successful_post_count,
            "total_bytes_sent": self.total_bytes_sent,
            "total_bytes_received": self.total_bytes_received,
            "error_count": self.error_count,
            "latencies": list(self.latencies),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Stats":
        return cls(
            successful_get_count=data.get("successful_get_count", 0),
            successful_post_count=data.get("successful_post_count", 0),
            total_bytes_sent=data.get("total_bytes_sent", 0),
            total_bytes_received=data.get("total_bytes_received", 0),
            error_count=data.get("error_count", 0),
            latencies=list(data.get("latencies", [])),
        )


@dataclass(frozen=True)
class RunSummary:
    """Terminal artifact of a load-test run."""

    elapsed_seconds: float
    total_bytes_sent: int
    total_bytes_received: int
    successful_get_count: int
    successful_post_count: int
    error_count: int
    percentile_table: Optional[Dict[float, float]]  # None when no request succeeded
    requests_per_second: float

    @property
    def has_percentile_data(self) -> bool:
        return bool(self.percentile_table)

    def to_dict(self) -> Dict[str, Any]:
        row = {
            "elapsed_seconds": self.elapsed_seconds,
            "total_bytes_sent": self.total_bytes_sent,
            "total_bytes_received": self.total_bytes_received,
            "successful_get_count": self.successful_get_count,
            "successful_post_count": self.successful_post_count,
            "error_count": self.error_count,
            "requests_per_second": self.requests_per_second,
        }
        for p, latency_ms in (self.percentile_table or {}).items():
            row[f"p{p:g}_latency_ms"] = latency_ms
        return row
