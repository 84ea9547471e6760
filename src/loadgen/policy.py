#!/usr/bin/env python3
"""
Run Configuration

Validated settings for a load generation run and the connection policy
shared by every request in it.
"""
from dataclasses import dataclass
from urllib.parse import urlparse

from .errors import ConfigError


DEFAULT_URL = "http://localhost:8080"
DEFAULT_CONCURRENCY = 10
DEFAULT_TIMEOUT_MS = 5000


@dataclass(frozen=True)
class ConnectionPolicy:
    """
    Timeout and connection reuse settings.

    A policy is never mutated once a run starts; every request in every
    batch observes the same values.
    """
    timeout_ms: int
    keep_alive: bool = False

    def __post_init__(self):
        if isinstance(self.timeout_ms, bool) or not isinstance(self.timeout_ms, int):
            raise ConfigError(f"timeout must be an integer number of milliseconds, got {self.timeout_ms!r}")
        if self.timeout_ms < 1:
            raise ConfigError("timeout must be a number greater than 0.")

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0


def validate_url(url: str) -> str:
    """Check that url is an absolute http(s) URL."""
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"Invalid URL provided: {url}")
    return url


def validate_concurrency(concurrency: int) -> int:
    if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
        raise ConfigError("concurrency must be a number greater than 0.")
    return concurrency


@dataclass(frozen=True)
class RunConfig:
    url: str = DEFAULT_URL
    concurrency: int = DEFAULT_CONCURRENCY
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    keep_alive: bool = False

    def __post_init__(self):
        validate_url(self.url)
        validate_concurrency(self.concurrency)
        ConnectionPolicy(timeout_ms=self.timeout_ms, keep_alive=self.keep_alive)

    @property
    def policy(self) -> ConnectionPolicy:
        return ConnectionPolicy(timeout_ms=self.timeout_ms, keep_alive=self.keep_alive)
