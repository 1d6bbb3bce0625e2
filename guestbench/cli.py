import sys
import logging
import argparse
import asyncio

# uvloop for every event loop started from the CLI
import uvloop
asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())

from guestbench.configuration import (
    GUESTBOOK_URL, DEFAULT_NUM_REQUESTS, DEFAULT_THREADS, DEFAULT_PERCENTILES,
    REQUEST_TIMEOUT_SECONDS, GUESTBOOK_HOST, GUESTBOOK_PORT, REDIS_ADDR,
    LoadTestConfig,
)

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool = False):
    # Set up logging (only if not already configured)
    if not logging.root.handlers:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    logging.root.setLevel(logging.DEBUG if verbose else logging.INFO)
    logging.getLogger('aiohttp.access').setLevel(logging.WARNING)


def parse_percentiles(value: str):
    """Parse '50,90,99.9' into (50, 90, 99.9)."""
    percentiles = []
    for part in value.split(','):
        part = part.strip()
        if not part:
            continue
        try:
            p = float(part)
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid percentile: {part!r}")
        if not 0 < p <= 100:
            raise argparse.ArgumentTypeError(f"percentile must be in (0, 100], got {part}")
        percentiles.append(int(p) if p.is_integer() else p)
    if not percentiles:
        raise argparse.ArgumentTypeError("at least one percentile is required")
    return tuple(percentiles)


class GuestbenchCLI:
    """CLI for the guestbook service and its load test."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self):
        """Create the main argument parser."""
        parser = argparse.ArgumentParser(
            prog='guestbench',
            description='Guestbook service and load-test CLI',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Serve the guestbook backed by Redis
  guestbench serve --store redis --redis-addr localhost:6379

  # Serve with an in-memory list (no Redis needed)
  guestbench serve --store memory --port 8080

  # 1000 requests from 10 parallel workers
  guestbench loadtest --host http://localhost:8080 -n 1000 --threads 10

  # Custom percentiles and Parquet output
  guestbench loadtest --host http://localhost:8080 --percentiles 50,99,99.9 --output-dir results
            """
        )
        parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        # Load test command
        loadtest_parser = subparsers.add_parser('loadtest', help='Run the load test')
        loadtest_parser.add_argument('--host', type=str, default=GUESTBOOK_URL,
                                     help=f'Base URL of the guestbook app (default: {GUESTBOOK_URL})')
        loadtest_parser.add_argument('-n', '--requests', type=int, default=DEFAULT_NUM_REQUESTS,
                                     help=f'Number of requests (default: {DEFAULT_NUM_REQUESTS})')
        loadtest_parser.add_argument('--threads', type=int, default=DEFAULT_THREADS,
                                     help=f'Number of parallel workers (default: {DEFAULT_THREADS})')
        loadtest_parser.add_argument('--percentiles', type=parse_percentiles, default=DEFAULT_PERCENTILES,
                                     help='Comma-separated latency percentiles (default: 50,90,95,99)')
        loadtest_parser.add_argument('--request-timeout', type=float, default=REQUEST_TIMEOUT_SECONDS,
                                     help=f'Per-attempt timeout in seconds (default: {REQUEST_TIMEOUT_SECONDS})')
        loadtest_parser.add_argument('--output-dir', type=str, default=None,
                                     help='Save latencies and summary as Parquet files in this directory')

        # Serve command
        serve_parser = subparsers.add_parser('serve', help='Run the guestbook service')
        serve_parser.add_argument('--bind', type=str, default=GUESTBOOK_HOST,
                                  help=f'Address to listen on (default: {GUESTBOOK_HOST})')
        serve_parser.add_argument('--port', type=int, default=GUESTBOOK_PORT,
                                  help=f'Port to listen on (default: {GUESTBOOK_PORT})')
        serve_parser.add_argument('--store', choices=['redis', 'memory'], default='redis',
                                  help='List store backing the guestbook (default: redis)')
        serve_parser.add_argument('--redis-addr', type=str, default=REDIS_ADDR,
                                  help=f'Redis host:port (default: {REDIS_ADDR})')

        return parser

    def run_loadtest(self, args):
        """Run the load test and print the summary."""
        try:
            from guestbench.common.process_pool import run_load_test
            from guestbench.common.reporter import print_summary, render_summary

            config = LoadTestConfig(
                base_url=args.host,
                num_requests=args.requests,
                threads=args.threads,
                percentiles=args.percentiles,
                request_timeout_seconds=args.request_timeout,
            )
        except ValueError as e:
            logger.error(f"Invalid load test configuration: {e}")
            return 1

        logger.info("=== Guestbook Load Test ===")
        summary, merged = run_load_test(config)

        logger.info("=== Load Test Results ===\n" + render_summary(summary, list(config.percentiles)))
        print_summary(summary, list(config.percentiles))

        if args.output_dir:
            from guestbench.persistence.parquet import ParquetPersistence

            files = ParquetPersistence(args.output_dir).save_run(summary, merged.latencies)
            logger.info(f"Detailed results saved to: {files['summary']}")
        return 0

    def run_serve(self, args):
        """Run the guestbook service until interrupted."""
        from guestbench.service import InMemoryListStore, RedisListStore, serve

        logger.info("=== Guestbook Service ===")
        if args.store == 'memory':
            store = InMemoryListStore()
        else:
            store = RedisListStore(args.redis_addr)
        serve(store, host=args.bind, port=args.port)
        return 0

    def run(self, args=None):
        """Run the CLI with the given arguments."""
        if args is None:
            args = sys.argv[1:]

        parsed_args = self.parser.parse_args(args)
        _configure_logging(parsed_args.verbose)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            if parsed_args.command == 'loadtest':
                return self.run_loadtest(parsed_args)
            elif parsed_args.command == 'serve':
                return self.run_serve(parsed_args)
            else:
                logger.error(f"Unknown command: {parsed_args.command}")
                return 1

        except KeyboardInterrupt:
            logger.info("Operation interrupted by user")
            return 1
        except Exception as e:
            logger.error(f"Unexpected error: {e}")
            return 1


def main():
    """Main entry point."""
    cli = GuestbenchCLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
