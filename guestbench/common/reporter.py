"""
Final run summary: throughput derivation and fixed-format text report.
"""

import logging
from typing import Dict, List, Optional

from guestbench.common.metrics_utils import calculate_requests_per_second
from guestbench.persistence.record import RunSummary, Stats

logger = logging.getLogger(__name__)

NO_DATA = "no data"


def build_summary(
    merged: Stats,
    percentile_table: Optional[Dict[float, float]],
    elapsed_seconds: float,
    configured_requests: int,
) -> RunSummary:
    """Create the RunSummary for a finished run."""
    return RunSummary(
        elapsed_seconds=elapsed_seconds,
        total_bytes_sent=merged.total_bytes_sent,
        total_bytes_received=merged.total_bytes_received,
        successful_get_count=merged.successful_get_count,
        successful_post_count=merged.successful_post_count,
        error_count=merged.error_count,
        percentile_table=dict(percentile_table) if percentile_table else None,
        requests_per_second=calculate_requests_per_second(configured_requests, elapsed_seconds),
    )


def _ordinal(p: float) -> str:
    if p != int(p):
        return f"{p:g}th"
    n = int(p)
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def render_summary(summary: RunSummary, percentiles: List[float]) -> str:
    """Fixed-format, one-fact-per-line text summary."""
    lines = [
        f"Elapsed Time: {summary.elapsed_seconds:.3f}s",
        f"Total Bytes Sent: {summary.total_bytes_sent}",
        f"Total Bytes Received: {summary.total_bytes_received}",
        f"Successful GET Requests: {summary.successful_get_count}",
        f"Successful POST Requests: {summary.successful_post_count}",
        f"Total Errors: {summary.error_count}",
    ]
    for p in percentiles:
        if summary.has_percentile_data and p in summary.percentile_table:
            value = f"{summary.percentile_table[p]:.3f}ms"
        else:
            value = NO_DATA
        lines.append(f"{_ordinal(p)} Percentile Latency: {value}")
    lines.append(f"Requests per Second: {summary.requests_per_second:.2f}")
    return "\n".join(lines)


def print_summary(summary: RunSummary, percentiles: List[float]) -> None:
    """Print the summary to stdout."""
    if not summary.has_percentile_data:
        logger.warning("Run finished without any successful request")
    print(render_summary(summary, percentiles))
