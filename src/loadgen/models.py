#!/usr/bin/env python3
"""
Request and Batch Results

Immutable records produced by the executor and the batch coordinator.
"""
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


TIMEOUT_REASON = "Timeout"


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class RequestOutcome:
    """Result of one executed request."""
    request_id: int
    status: OutcomeStatus
    duration_ms: int
    http_status: Optional[int] = None
    reason: Optional[str] = None
    test_id: Optional[str] = None

    def __post_init__(self):
        if self.duration_ms < 0:
            raise ValueError(f"duration_ms must be non-negative, got {self.duration_ms}")
        if self.status is OutcomeStatus.SUCCESS:
            if self.http_status is None or self.reason is not None:
                raise ValueError("successful outcome needs http_status and no reason")
        elif self.reason is None or self.http_status is not None:
            raise ValueError("failed outcome needs a reason and no http_status")

    @classmethod
    def success(cls, request_id: int, http_status: int, duration_ms: int,
                test_id: Optional[str] = None) -> "RequestOutcome":
        return cls(request_id, OutcomeStatus.SUCCESS, duration_ms,
                   http_status=http_status, test_id=test_id)

    @classmethod
    def failed(cls, request_id: int, reason: str, duration_ms: int,
               test_id: Optional[str] = None) -> "RequestOutcome":
        return cls(request_id, OutcomeStatus.FAILED, duration_ms,
                   reason=reason, test_id=test_id)

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    @property
    def timed_out(self) -> bool:
        return self.reason == TIMEOUT_REASON

    def to_dict(self) -> Dict:
        return {
            "request_id": self.request_id,
            "status": self.status.value,
            "http_status": self.http_status,
            "reason": self.reason,
            "duration_ms": self.duration_ms,
            "test_id": self.test_id,
        }


@dataclass(frozen=True)
class BatchResult:
    """
    Aggregate of one batch.

    ``outcomes`` is ordered by request id (launch order), not by completion
    time. ``started_at`` and ``finished_at`` are monotonic clock readings in
    seconds bounding the batch window.
    """
    batch_number: int
    outcomes: Tuple[RequestOutcome, ...]
    total_duration_ms: int
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def concurrency(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return self.concurrency - self.succeeded

    def reason_counts(self) -> Dict[str, int]:
        """Count failed outcomes by reason."""
        return dict(Counter(o.reason for o in self.outcomes if not o.ok))

    def to_dict(self) -> Dict:
        return {
            "batch_number": self.batch_number,
            "total_duration_ms": self.total_duration_ms,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
