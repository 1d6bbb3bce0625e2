"""
Parquet persistence for load-test results.
"""

import os
import logging
from typing import Dict, Iterable, Optional
from datetime import datetime

import pandas as pd

from guestbench.configuration import DEFAULT_OUTPUT_DIR
from guestbench.persistence.record import RunSummary

logger = logging.getLogger(__name__)


class ParquetPersistence:
    """Writes latency samples and the run summary to Parquet files.

    Attributes:
        output_dir: Directory where Parquet files will be saved
    """

    def __init__(self, output_dir: str = DEFAULT_OUTPUT_DIR):
        """Initialize Parquet persistence.

        Args:
            output_dir: Directory for saving Parquet files (default: 'results')
        """
        self.output_dir: str = output_dir

        # Ensure output directory exists
        os.makedirs(output_dir, exist_ok=True)

    def _filepath(self, prefix: str, timestamp: str) -> str:
        return os.path.join(self.output_dir, f"{prefix}_{timestamp}.parquet")

    def save_latencies(self, latencies: Iterable[float], timestamp: str) -> Optional[str]:
        """Save sorted latency samples (one `latency_ms` column).

        Returns:
            Path to the saved file, or None if there are no samples
        """
        df = pd.DataFrame({"latency_ms": sorted(latencies)}, dtype="float64")
        if df.empty:
            logger.info("No latency samples to save")
            return None

        filepath = self._filepath("latencies", timestamp)
        df.to_parquet(filepath, index=False)
        logger.info(f"Saved {len(df)} latency samples to {filepath}")
        return filepath

    def save_summary(self, summary: RunSummary, timestamp: str) -> str:
        """Save the run summary as a single-row file."""
        df = pd.DataFrame([summary.to_dict()])
        filepath = self._filepath("summary", timestamp)
        df.to_parquet(filepath, index=False)
        logger.info(f"Saved run summary to {filepath}")
        return filepath

    def save_run(self, summary: RunSummary, latencies: Iterable[float]) -> Dict[str, Optional[str]]:
        """Save both files for one run under a shared timestamp.

        Returns:
            Dictionary with 'summary' and 'latencies' paths (latencies may be None)
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return {
            "summary": self.save_summary(summary, timestamp),
            "latencies": self.save_latencies(latencies, timestamp),
        }
