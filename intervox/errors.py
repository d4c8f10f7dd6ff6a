"""Error kinds and exceptions for the investigation pipeline.

Every failure the pipeline records or an API route reports carries an
``ErrorKind`` so callers can tell a failed identity search from a failed
persona build without parsing the message text.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    RESOLUTION = "resolution"
    SCRAPE = "scrape"
    SYNTHESIS = "synthesis"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    PROVIDER = "provider"
    CONFIG = "config"


class IntervoxError(Exception):
    """Base exception for all pipeline errors."""

    kind: ErrorKind = ErrorKind.PROVIDER

    def __init__(
        self,
        message: str = "",
        *,
        kind: ErrorKind | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.details: dict[str, Any] = details or {}


class ConfigError(IntervoxError):
    """Raised at startup when required configuration is missing."""

    kind = ErrorKind.CONFIG


class ResolutionError(IntervoxError):
    """Identity search failed or returned nothing usable."""

    kind = ErrorKind.RESOLUTION


class ScrapeError(IntervoxError):
    """A single source failed. Non-fatal to the investigation."""

    kind = ErrorKind.SCRAPE


class SynthesisError(IntervoxError):
    """Persona building failed. Fatal to the investigation."""

    kind = ErrorKind.SYNTHESIS


class NotFoundError(IntervoxError):
    kind = ErrorKind.NOT_FOUND


class ValidationError(IntervoxError):
    kind = ErrorKind.VALIDATION


class InvalidStateError(IntervoxError):
    """Raised when an operation does not apply to the record's current state."""

    kind = ErrorKind.CONFLICT

    def __init__(
        self,
        message: str = "Invalid state transition",
        current: str = "",
        requested: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.current = current
        self.requested = requested


class StageTimeoutError(IntervoxError):
    """A pipeline stage or provider call exceeded its deadline."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, stage: str, seconds: float) -> None:
        super().__init__(
            f"{stage} timed out after {seconds:g}s",
            details={"stage": stage, "timeout_seconds": seconds},
        )
        self.stage = stage
        self.seconds = seconds


class ProviderError(IntervoxError):
    """An external provider returned an error response."""

    kind = ErrorKind.PROVIDER


def error_kind_of(exc: BaseException) -> ErrorKind:
    if isinstance(exc, IntervoxError):
        return exc.kind
    if isinstance(exc, TimeoutError):
        return ErrorKind.TIMEOUT
    return ErrorKind.PROVIDER
