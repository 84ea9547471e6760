#!/usr/bin/env python3
"""
Parallel HTTP Load Generator

Sends batches of concurrent GET requests to a target URL, back to back,
until interrupted.
"""
import argparse
import sys
from typing import List, Optional

from .driver import LoopDriver
from .errors import ConfigError
from .policy import DEFAULT_CONCURRENCY, DEFAULT_TIMEOUT_MS, DEFAULT_URL, RunConfig
from .reporting import ConsoleReporter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Parallel HTTP Request Client")
    parser.add_argument(
        '--url', '-u',
        default=DEFAULT_URL,
        help='The URL to request'
    )
    parser.add_argument(
        '--concurrency', '-c',
        type=int,
        default=DEFAULT_CONCURRENCY,
        help='Number of parallel requests per batch'
    )
    parser.add_argument(
        '--timeout', '-t',
        type=int,
        default=DEFAULT_TIMEOUT_MS,
        help='Request timeout (milliseconds)'
    )
    parser.add_argument(
        '--keepalive', '-k',
        action='store_true',
        help='Reuse connections between requests (HTTP keep-alive)'
    )
    parser.add_argument(
        '--batches',
        type=int,
        default=0,
        help='Stop after this many batches (0 runs until interrupted)'
    )
    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Only print batch results'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Also write each batch as a JSON line to stdout'
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        if args.batches < 0:
            raise ConfigError("--batches must not be negative.")
        config = RunConfig(
            url=args.url,
            concurrency=args.concurrency,
            timeout_ms=args.timeout,
            keep_alive=args.keepalive,
        )
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run with --help for usage information.", file=sys.stderr)
        return 1

    reporter = ConsoleReporter(quiet=args.quiet, json_stream=sys.stdout if args.json else None)
    driver = LoopDriver(
        config,
        on_batch=reporter.report_batch,
        on_outcome=reporter.report_outcome,
    )
    driver.install_signal_handlers()

    print(f"Starting {config.concurrency} parallel requests to {config.url}...", file=sys.stderr)
    print(f"Timeout: {config.timeout_ms} ms, keep-alive: {'on' if config.keep_alive else 'off'}",
          file=sys.stderr)
    print("Starting request loop. Press Ctrl+C to stop.", file=sys.stderr)

    try:
        driver.run(max_batches=args.batches or None)
    finally:
        if driver.stopping:
            print("\nStopping load generator...", file=sys.stderr)
        reporter.print_summary()

    return 0


if __name__ == '__main__':
    sys.exit(main())
