"""
loadgen - continuous parallel HTTP load generator.
"""
from .errors import LoadGenError, ConfigError
from .models import OutcomeStatus, RequestOutcome, BatchResult
from .policy import ConnectionPolicy, RunConfig
from .transport import Transport
from .executor import execute
from .batch import run_batch
from .driver import DriverState, LoopDriver

__version__ = "0.1.0"

__all__ = [
    "LoadGenError",
    "ConfigError",
    "OutcomeStatus",
    "RequestOutcome",
    "BatchResult",
    "ConnectionPolicy",
    "RunConfig",
    "Transport",
    "execute",
    "run_batch",
    "DriverState",
    "LoopDriver",
]
