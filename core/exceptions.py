"""
Custom exception hierarchy for the logpipe ingestion pipeline.

Every failure mode of the collector and the storage server has its own
exception so callers can decide precisely what is fatal (nothing but a
failed listener bind) and what is only logged.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Root exception for the logpipe system."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class DecodeError(PipelineError):
    """Raised when an inbound payload is not valid JSON of the expected shape."""


class ForwardError(PipelineError):
    """Raised when pushing a record to the ingest endpoint fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, details)


class StorageWriteError(PipelineError):
    """Raised when appending a record to the durable file fails."""


class StorageReadReplayError(PipelineError):
    """Raised when a durable record cannot be decoded during replay."""

    def __init__(self, line_number: int, message: str) -> None:
        self.line_number = line_number
        super().__init__(f"line {line_number}: {message}", {"line_number": line_number})


class ConfigurationError(PipelineError):
    """Raised on invalid configuration or unsupported query parameters."""
