"""
Process pool that runs one load-test worker per OS process.

Architecture:
- Spawns one process per configured worker for true parallelism
- Each process runs its own uvloop event loop, aiohttp session and Worker
- Every process signals ready once imported, then waits for a shared start event
- The run clock starts only when all workers are ready, so process startup is not timed
- Each process publishes its final Stats exactly once on a shared result queue
- The parent blocks until it has one report per worker (join barrier), then aggregates
"""

import asyncio
import logging
import multiprocessing as mp
import queue
import time
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import uvloop

from guestbench.common.backoff import BackoffRequester
from guestbench.common.worker_pool import Worker
from guestbench.configuration import (
    LoadTestConfig,
    PROCESS_JOIN_TIMEOUT_SECONDS,
    RESULT_POLL_INTERVAL_SECONDS,
)
from guestbench.persistence.record import Stats
from guestbench.systems.base import GuestbookSystem

if TYPE_CHECKING:
    from guestbench.persistence.metrics_aggregator import MetricsAggregator

logger = logging.getLogger(__name__)


def _run_worker_process(
    worker_id: int,
    iterations: int,
    config: LoadTestConfig,
    result_queue: mp.Queue,
    ready_queue: mp.Queue,
    start_event: mp.Event,
    log_level: int,
):
    """Worker process entry point.

    Args:
        worker_id: Index of this worker (0 to threads-1)
        iterations: Number of request cycles to run
        config: Run configuration
        result_queue: Queue receiving exactly one report from this process
        ready_queue: Queue receiving this worker's id once it can start sending
        start_event: Set by the parent once every worker is ready
        log_level: Root log level inherited from the parent
    """
    if not logging.root.handlers:
        logging.basicConfig(format="%(asctime)s - %(levelname)s - %(message)s")
    # Suppress verbose logging in child processes
    logging.root.setLevel(max(log_level, logging.WARNING))
    logging.getLogger("asyncio").setLevel(logging.CRITICAL)

    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())

    ready_queue.put(worker_id)
    start_event.wait()

    report = asyncio.run(_async_worker_process(worker_id, iterations, config))
    result_queue.put(report)


async def _async_worker_process(worker_id: int, iterations: int, config: LoadTestConfig) -> Dict[str, Any]:
    """Run one Worker and build its report. Never raises."""
    process_logger = logging.getLogger(f"worker_{worker_id}")
    worker = None

    try:
        async with GuestbookSystem(config.request_timeout_seconds) as system:
            requester = BackoffRequester(system, config.backoff)
            worker = Worker(worker_id, requester, config)
            stats = await worker.run(iterations)
        attempts = system.get_metrics()
        process_logger.debug(
            f"Worker {worker_id}: {attempts['total_attempts']} attempts, "
            f"{attempts['failed_attempts']} failed"
        )
        return {"worker_id": worker_id, "stats": stats.to_dict(), "error": None}

    except Exception as e:
        process_logger.error(f"Worker {worker_id}: fatal error: {e}", exc_info=True)
        # Publish what was done; every unfinished iteration counts as an error
        stats = worker.stats if worker else Stats()
        completed = worker.iterations_completed if worker else 0
        stats.error_count += iterations - completed
        return {"worker_id": worker_id, "stats": stats.to_dict(), "error": str(e)}


class ProcessPool:
    """Spawns one process per worker and joins on their Stats reports."""

    def __init__(self, config: LoadTestConfig):
        """Initialize process pool.

        Args:
            config: Run configuration (base URL, request and worker counts, backoff)
        """
        self.config = config
        self.iterations = config.iterations_per_worker()

        mp_ctx = mp.get_context("spawn")
        self._mp_ctx = mp_ctx
        self.result_queue: mp.Queue = mp_ctx.Queue(maxsize=config.threads)
        self.ready_queue: mp.Queue = mp_ctx.Queue()
        self.start_event: mp.Event = mp_ctx.Event()
        self.processes: List[mp.Process] = []
        self.elapsed_seconds: Optional[float] = None

        logger.info(
            f"ProcessPool: {config.threads} workers, {config.num_requests} requests "
            f"({min(self.iterations)}-{max(self.iterations)} per worker)"
        )

    def start_workers(self) -> None:
        """Spawn all worker processes. They block on start_event until released."""
        log_level = logging.getLogger().getEffectiveLevel()
        self.start_event.clear()
        self.processes = []
        for worker_id, iterations in enumerate(self.iterations):
            process = self._mp_ctx.Process(
                target=_run_worker_process,
                args=(
                    worker_id, iterations, self.config, self.result_queue,
                    self.ready_queue, self.start_event, log_level,
                ),
                name=f"guestbench-worker-{worker_id}",
            )
            process.start()
            self.processes.append(process)

        logger.info(f"Started {len(self.processes)} worker processes")

    def wait_until_ready(self) -> int:
        """Block until every live worker has signalled ready, then release them all.

        Workers that die before signalling are left to the collector.

        Returns:
            Number of workers that signalled ready
        """
        pending = set(range(len(self.processes)))

        while pending:
            try:
                worker_id = self.ready_queue.get(timeout=RESULT_POLL_INTERVAL_SECONDS)
            except queue.Empty:
                if any(self.processes[i].is_alive() for i in pending):
                    continue
                logger.error(f"Workers {sorted(pending)} exited before signalling ready")
                break
            pending.discard(worker_id)

        self.start_event.set()
        ready = len(self.processes) - len(pending)
        logger.info(f"{ready}/{len(self.processes)} workers ready, starting requests")
        return ready

    def collect(self, aggregator: "MetricsAggregator") -> "MetricsAggregator":
        """Block until every worker has reported, merging each report into the aggregator.

        A worker whose process died without reporting has all of its
        iterations counted as errors.
        """
        pending = set(range(len(self.processes)))

        while pending:
            try:
                report = self.result_queue.get(timeout=RESULT_POLL_INTERVAL_SECONDS)
            except queue.Empty:
                if any(self.processes[i].is_alive() for i in pending):
                    continue
                # All remaining processes exited; drain anything still in flight once more
                try:
                    report = self.result_queue.get(timeout=RESULT_POLL_INTERVAL_SECONDS)
                except queue.Empty:
                    for worker_id in sorted(pending):
                        logger.error(
                            f"Worker {worker_id} exited with code "
                            f"{self.processes[worker_id].exitcode} without reporting; "
                            f"counting {self.iterations[worker_id]} iterations as errors"
                        )
                        aggregator.add_stats(Stats(error_count=self.iterations[worker_id]))
                    break

            worker_id = report["worker_id"]
            if worker_id not in pending:
                logger.warning(f"Ignoring duplicate report from worker {worker_id}")
                continue
            pending.discard(worker_id)
            if report.get("error"):
                logger.warning(f"Worker {worker_id} reported partial stats: {report['error']}")
            aggregator.add_stats(Stats.from_dict(report["stats"]))
            logger.info(f"Worker {worker_id} reported ({len(self.processes) - len(pending)}/{len(self.processes)})")

        return aggregator

    def cleanup(self) -> None:
        """Join all processes, terminating any that do not exit."""
        self.start_event.set()
        for i, process in enumerate(self.processes):
            process.join(timeout=PROCESS_JOIN_TIMEOUT_SECONDS)
            if process.is_alive():
                logger.warning(f"Worker process {i} did not stop gracefully, terminating")
                process.terminate()
                process.join()
        self.processes = []

    def run(self) -> "MetricsAggregator":
        """Start all workers, wait for every report and return the filled aggregator.

        elapsed_seconds covers the span from releasing the ready workers to the last report.
        """
        from guestbench.persistence.metrics_aggregator import MetricsAggregator

        aggregator = MetricsAggregator(expected_workers=self.config.threads)
        self.start_workers()
        try:
            self.wait_until_ready()
            start_time = time.perf_counter()
            self.collect(aggregator)
            self.elapsed_seconds = time.perf_counter() - start_time
            return aggregator
        finally:
            self.cleanup()


def run_load_test(config: LoadTestConfig):
    """Run a complete load test and return (RunSummary, merged Stats)."""
    from guestbench.common.reporter import build_summary

    logger.info(
        f"Starting load test against {config.base_url}: "
        f"{config.num_requests} requests across {config.threads} workers"
    )
    pool = ProcessPool(config)
    aggregator = pool.run()
    elapsed_seconds = pool.elapsed_seconds

    percentile_table = aggregator.get_percentile_table(config.percentiles)
    summary = build_summary(aggregator.merged, percentile_table, elapsed_seconds, config.num_requests)
    logger.info(
        f"Load test finished in {elapsed_seconds:.2f}s: "
        f"{aggregator.merged.successful_count} successful, {aggregator.merged.error_count} errors"
    )
    return summary, aggregator.merged
