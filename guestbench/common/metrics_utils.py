"""
Shared utilities for load-test metrics: nearest-rank percentiles and request rates.
"""

import logging
from typing import Dict, Iterable, Sequence

import pandas as pd

from guestbench.exceptions import EmptyLatencyData

logger = logging.getLogger(__name__)


def percentile_index(count: int, percentile: float) -> int:
    """
    Zero-based nearest-rank index: floor(count * p / 100), clamped to the last element.

    Args:
        count: Number of samples (must be positive)
        percentile: Percentile in (0, 100]

    Returns:
        Index into the ascending-sorted samples
    """
    if not 0 < percentile <= 100:
        raise ValueError(f"percentile must be in (0, 100], got {percentile}")
    return min(int(count * percentile // 100), count - 1)


def calculate_percentiles(latencies: Iterable[float], percentiles: Sequence[float]) -> Dict[float, float]:
    """
    Nearest-rank percentiles (no interpolation) of a latency sample.

    Args:
        latencies: Latency samples in any order
        percentiles: Percentiles to compute, each in (0, 100]

    Returns:
        Dictionary mapping each requested percentile to a sample value

    Raises:
        EmptyLatencyData: if there are no samples
    """
    ordered = pd.Series(list(latencies), dtype="float64").sort_values(ignore_index=True)
    if ordered.empty:
        raise EmptyLatencyData("no latency samples to compute percentiles from")

    return {p: float(ordered.iloc[percentile_index(len(ordered), p)]) for p in percentiles}


def calculate_requests_per_second(request_count: int, duration_seconds: float) -> float:
    """
    Calculate requests per second (RPS) from request count and duration.

    Args:
        request_count: Number of requests
        duration_seconds: Duration in seconds

    Returns:
        Requests per second (RPS), 0 when the duration is not positive
    """
    if duration_seconds <= 0:
        return 0.0
    return request_count / duration_seconds
