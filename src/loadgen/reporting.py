#!/usr/bin/env python3
"""
Console Reporting

Prints per-request and per-batch results and keeps running totals for the
end-of-run summary.
"""
import json
import sys
from collections import deque
from typing import Deque, Dict, Optional, TextIO

from .models import BatchResult, RequestOutcome


# Latency samples kept for percentiles; older samples are dropped
MAX_LATENCY_SAMPLES = 10_000


def percentile(sorted_values, q: float) -> float:
    idx = min(int(len(sorted_values) * q), len(sorted_values) - 1)
    return sorted_values[idx]


class RunSummary:
    """Running totals over every outcome seen."""

    def __init__(self, max_samples: int = MAX_LATENCY_SAMPLES):
        self.total = 0
        self.successful = 0
        self.timeouts = 0
        self.errors = 0
        self.batches = 0
        self.latencies: Deque[int] = deque(maxlen=max_samples)

    def add_outcome(self, outcome: RequestOutcome):
        self.total += 1
        self.latencies.append(outcome.duration_ms)
        if outcome.ok:
            self.successful += 1
            return
        if outcome.timed_out:
            self.timeouts += 1
        else:
            self.errors += 1

    def add_batch(self, result: BatchResult):
        self.batches += 1

    def latency_stats(self) -> Optional[Dict[str, float]]:
        if not self.latencies:
            return None
        ordered = sorted(self.latencies)
        return {
            "min": ordered[0],
            "avg": sum(ordered) / len(ordered),
            "max": ordered[-1],
            "p50": percentile(ordered, 0.50),
            "p95": percentile(ordered, 0.95),
            "p99": percentile(ordered, 0.99),
        }


class ConsoleReporter:
    """
    Writes results to stderr.

    Pass ``report_outcome`` and ``report_batch`` to the driver as its
    callbacks; both run on the coordinating thread.
    """

    def __init__(self, stream: Optional[TextIO] = None, quiet: bool = False,
                 json_stream: Optional[TextIO] = None):
        """
        Args:
            stream: Where progress lines go (stderr by default)
            quiet: Skip per-request lines
            json_stream: If set, each batch is also written there as one
                JSON object per line
        """
        self.stream = stream or sys.stderr
        self.quiet = quiet
        self.json_stream = json_stream
        self.summary = RunSummary()

    def _print(self, text: str = ""):
        print(text, file=self.stream)

    def report_outcome(self, outcome: RequestOutcome):
        self.summary.add_outcome(outcome)
        if self.quiet:
            return
        if outcome.ok:
            detail = f"HTTP {outcome.http_status}"
        elif outcome.timed_out:
            detail = "TIMEOUT"
        else:
            detail = f"ERROR: {outcome.reason}"
        self._print(f"Request {outcome.request_id:4d}: {outcome.duration_ms:7d} ms - {detail}")

    def report_batch(self, result: BatchResult):
        self.summary.add_batch(result)
        if self.json_stream is not None:
            print(json.dumps(result.to_dict()), file=self.json_stream, flush=True)
        self._print(
            f"Batch {result.batch_number}: {result.succeeded}/{result.concurrency} succeeded "
            f"in {result.total_duration_ms} ms"
        )
        if result.failed and not self.quiet:
            reasons = ", ".join(f"{reason} x{count}" for reason, count in sorted(result.reason_counts().items()))
            self._print(f"  Failures: {reasons}")

    def print_summary(self):
        """Print summary statistics."""
        summary = self.summary
        if not summary.total:
            return
        total = summary.total

        self._print("\n=== Load Generation Summary ===")
        self._print(f"Batches:           {summary.batches}")
        self._print(f"Total requests:    {total}")
        self._print(f"Successful:        {summary.successful} ({summary.successful/total*100:.1f}%)")
        self._print(f"Timeouts:          {summary.timeouts} ({summary.timeouts/total*100:.1f}%)")
        self._print(f"Errors:            {summary.errors} ({summary.errors/total*100:.1f}%)")

        stats = summary.latency_stats()
        self._print("\nLatency Statistics:")
        self._print(f"  Min:     {stats['min']:7.2f} ms")
        self._print(f"  Avg:     {stats['avg']:7.2f} ms")
        self._print(f"  Max:     {stats['max']:7.2f} ms")
        self._print(f"  P50:     {stats['p50']:7.2f} ms")
        self._print(f"  P95:     {stats['p95']:7.2f} ms")
        self._print(f"  P99:     {stats['p99']:7.2f} ms")
