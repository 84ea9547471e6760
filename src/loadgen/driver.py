#!/usr/bin/env python3
"""
Continuous Loop Driver

Repeats batches back to back until told to stop.
"""
import signal
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, Optional

from .batch import OutcomeCallback, run_batch
from .models import BatchResult
from .policy import RunConfig
from .transport import Transport


BatchCallback = Callable[[BatchResult], None]


class DriverState(Enum):
    RUNNING = "running"
    STOPPED = "stopped"


class LoopDriver:
    """
    Runs batches of parallel requests until stopped.

    There is no pause between batches. Request failures are reported but
    never end the loop; only ``stop()`` (or a signal routed to it), an
    optional batch limit, or a failure to launch a batch does.
    """

    def __init__(self, config: RunConfig,
                 on_batch: Optional[BatchCallback] = None,
                 on_outcome: Optional[OutcomeCallback] = None,
                 stop_event: Optional[threading.Event] = None):
        """
        Initialize the driver.

        Args:
            config: Validated run configuration
            on_batch: Called with each finished BatchResult
            on_outcome: Called with each RequestOutcome as it settles
            stop_event: Cancellation token; a private one is created if omitted
        """
        self.config = config
        self.policy = config.policy
        self.on_batch = on_batch
        self.on_outcome = on_outcome
        self.stop_event = stop_event or threading.Event()
        self.state = DriverState.RUNNING
        self.batch_number = 1
        self.batches_completed = 0

    def stop(self):
        """Request cancellation. No batch starts after this is observed."""
        self.stop_event.set()

    @property
    def stopping(self) -> bool:
        return self.stop_event.is_set()

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        self.stop()

    def install_signal_handlers(self):
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def run(self, max_batches: Optional[int] = None) -> int:
        """
        Run batches until stopped.

        Args:
            max_batches: Stop after this many batches (None runs forever)

        Returns:
            Number of batches completed by this call
        """
        if self.state is DriverState.STOPPED:
            return 0

        completed = 0
        concurrency = self.config.concurrency
        transport = Transport(self.policy, pool_size=concurrency)
        pool = ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="loadgen-request")
        try:
            while not self.stopping:
                result = run_batch(
                    self.batch_number,
                    self.config.url,
                    concurrency,
                    self.policy,
                    transport=transport,
                    pool=pool,
                    on_outcome=self.on_outcome,
                )
                completed += 1
                self.batches_completed += 1
                if self.on_batch is not None:
                    self.on_batch(result)
                self.batch_number += 1

                if max_batches and completed >= max_batches:
                    break
        finally:
            self.state = DriverState.STOPPED
            pool.shutdown(wait=True)
            transport.close()

        return completed
