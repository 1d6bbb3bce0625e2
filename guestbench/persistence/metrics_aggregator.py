"""
Metrics aggregator merging per-worker Stats into one run-wide record.
"""

import logging
import threading
from typing import Dict, Optional, Sequence

from guestbench.common.metrics_utils import calculate_percentiles
from guestbench.exceptions import EmptyLatencyData
from guestbench.persistence.record import Stats

logger = logging.getLogger(__name__)


class MetricsAggregator:
    """Sums counters and concatenates latencies from each worker's Stats.

    Percentiles are only computed on demand, once every worker has reported.
    """

    def __init__(self, expected_workers: Optional[int] = None):
        """Initialize the metrics aggregator.

        Args:
            expected_workers: Number of workers that will report (None = unknown)
        """
        self.expected_workers = expected_workers
        self.merged = Stats()
        self.reports_received = 0
        self.lock = threading.Lock()

    def add_stats(self, stats: Stats) -> None:
        """Merge one worker's final Stats.

        Args:
            stats: Stats handed off by a finished worker
        """
        with self.lock:
            self.merged.merge(stats)
            self.reports_received += 1
            logger.debug(
                f"Merged report {self.reports_received}"
                f"{'/' + str(self.expected_workers) if self.expected_workers else ''}: "
                f"{stats.successful_count} successes, {stats.error_count} errors"
            )

    @property
    def complete(self) -> bool:
        """True once every expected worker has reported."""
        return self.expected_workers is not None and self.reports_received >= self.expected_workers

    def get_percentile_table(self, percentiles: Sequence[float]) -> Optional[Dict[float, float]]:
        """Nearest-rank percentiles of all merged latencies.

        Args:
            percentiles: Percentiles to compute, each in (0, 100]

        Returns:
            Mapping percentile -> latency_ms, or None when there is no latency data
        """
        with self.lock:
            if self.expected_workers is not None and not self.complete:
                logger.warning(
                    f"Computing percentiles with {self.reports_received}/{self.expected_workers} reports"
                )
            try:
                return calculate_percentiles(self.merged.latencies, percentiles)
            except EmptyLatencyData:
                logger.warning("No successful requests; no percentile data available")
                return None
