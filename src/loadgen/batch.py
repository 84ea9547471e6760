#!/usr/bin/env python3
"""
Batch Coordinator

Fans out a fixed number of concurrent requests and waits for every one of
them to settle.
"""
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional

from .errors import ConfigError
from .executor import execute
from .models import BatchResult, RequestOutcome
from .policy import ConnectionPolicy, validate_concurrency
from .transport import Transport


OutcomeCallback = Callable[[RequestOutcome], None]


def _settle(request_id: int, future: Future, start: float) -> RequestOutcome:
    """Turn a finished future into an outcome, even if the task raised."""
    exc = future.exception()
    if exc is None:
        return future.result()
    duration_ms = max(0, int((time.perf_counter() - start) * 1000))
    return RequestOutcome.failed(request_id, str(exc) or exc.__class__.__name__, duration_ms)


def run_batch(batch_number: int, url: str, concurrency: int, policy: ConnectionPolicy,
              transport: Optional[Transport] = None,
              pool: Optional[ThreadPoolExecutor] = None,
              on_outcome: Optional[OutcomeCallback] = None) -> BatchResult:
    """
    Run one batch of parallel requests.

    Individual failures never cut the batch short: the call returns only
    once all ``concurrency`` requests have produced an outcome.

    Args:
        batch_number: 1-based number of this batch
        url: Target URL
        concurrency: Number of requests launched together
        policy: Connection policy shared by all requests
        transport: Session provider; a private one sized to the batch is
            used when omitted
        pool: Worker pool with at least ``concurrency`` workers; a private
            one is used when omitted
        on_outcome: Called from the calling thread with each outcome as it
            settles, in completion order

    Returns:
        BatchResult with outcomes ordered by request id
    """
    if batch_number < 1:
        raise ConfigError(f"batch number must start at 1, got {batch_number}")
    validate_concurrency(concurrency)

    own_transport = transport is None
    own_pool = pool is None
    if own_transport:
        transport = Transport(policy, pool_size=concurrency)
    if own_pool:
        pool = ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="loadgen-request")

    try:
        start = time.perf_counter()
        futures: Dict[Future, int] = {}
        for request_id in range(1, concurrency + 1):
            future = pool.submit(execute, request_id, url, policy, transport)
            futures[future] = request_id

        settled: Dict[int, RequestOutcome] = {}
        for future in as_completed(futures):
            request_id = futures[future]
            outcome = _settle(request_id, future, start)
            settled[request_id] = outcome
            if on_outcome is not None:
                on_outcome(outcome)
        finish = time.perf_counter()
    finally:
        if own_pool:
            pool.shutdown(wait=True)
        if own_transport:
            transport.close()

    outcomes: List[RequestOutcome] = [settled[i] for i in range(1, concurrency + 1)]
    return BatchResult(
        batch_number=batch_number,
        outcomes=tuple(outcomes),
        total_duration_ms=int((finish - start) * 1000),
        started_at=start,
        finished_at=finish,
    )
