"""Exceptions raised by the load generator."""


class LoadGenError(Exception):
    """Base class for load generator errors."""


class ConfigError(LoadGenError, ValueError):
    """Raised when a run is configured with invalid values."""
