"""
Command-line entry point.

Usage:
    ratecast --rate 100 --total 1000 localhost:8080
    python -m ratecast -r 100 -t 1000 localhost:8080 --drain-timeout 5

Exit status:
    0: statistics were printed.
    1: no request got a response for the whole run.
    2: invalid arguments or configuration.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from ratecast._config import ConfigEnvVarError, ConfigValidationError, EngineConfig, LoadParams
from ratecast._dispatch import LoadGenerator
from ratecast._results import LoadTestSummary, NoResultsError
from ratecast._utils import format_duration_as_seconds

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NO_RESULTS = 1
EXIT_CONFIG_ERROR = 2


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="ratecast",
        description="Issue a fixed number of HTTP requests at a sustained rate and report success rate and median latency.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    ratecast -r 100 -t 1000 localhost:8080
    ratecast -r 10 -t 50 127.0.0.1:3000 --timeout 5 --drain-timeout 10

Tunables can also be set through RATECAST_* environment variables
(e.g. RATECAST_REQUEST_TIMEOUT, RATECAST_WAVE_INTERVAL).
        """,
    )
    parser.add_argument("-r", "--rate", type=int, required=True, help="Fixed call rate (per second)")
    parser.add_argument("-t", "--total", type=int, required=True, help="Maximum number of requests")
    parser.add_argument("address", help="Address of the form <endpoint>:<port>")
    parser.add_argument("--timeout", type=float, dest="request_timeout", help="Per-request timeout in seconds")
    parser.add_argument(
        "--drain-timeout",
        type=float,
        help="Seconds to wait for in-flight requests once dispatch stops (default: 0, do not wait)",
    )
    parser.add_argument("--workers", type=int, dest="max_workers", help="Worker threads (default: enough for every wave still in flight)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v, -vv)")
    return parser.parse_args(argv)


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s %(name)s | %(message)s",
    )


def print_summary(summary: LoadTestSummary) -> None:
    print(f"success: {summary.success_rate_percent:.2f} %")
    print(f"median: {format_duration_as_seconds(summary.median_duration_us)}s")
    if summary.transport_errors:
        print(f"transport errors: {summary.transport_errors}")


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)

    print(f"Rate is {args.rate}")
    print(f"Total is {args.total}")
    print(f"Address is {args.address}")

    try:
        params = LoadParams.create(rate=args.rate, total=args.total, address=args.address)
        config = EngineConfig().with_env_vars().with_overrides({
            "request_timeout": args.request_timeout,
            "drain_timeout": args.drain_timeout,
            "max_workers": args.max_workers,
        }).validate()
    except (ConfigValidationError, ConfigEnvVarError) as e:
        print(f"[LoadGeneratorError]: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    logger.debug(f"Engine config: {config}")
    try:
        summary = LoadGenerator(params, config).run_and_aggregate()
    except NoResultsError as e:
        print(f"[LoadGeneratorError]: {e}", file=sys.stderr)
        return EXIT_NO_RESULTS

    print_summary(summary)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
