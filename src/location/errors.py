"""
Error types raised by the location data layer.

Only ValidationError and the fatal upstream failures reach API callers;
degraded elevation, malformed payloads and cache failures are absorbed where
they happen.
"""


class ValidationError(ValueError):
    """Missing or malformed coordinates."""


class UpstreamFatalError(RuntimeError):
    """An upstream provider call failed (HTTP error, timeout, bad JSON)."""

    def __init__(self, source: str, message: str):
        super().__init__(message)
        self.source = source
