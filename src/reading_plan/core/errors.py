"""Error taxonomy for the reading plan pipeline.

Every error carries structured context (kind, day, url, cause) as real
attributes, so callers never have to bolt fields onto a generic exception.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NETWORK = "network"
    TRANSIENT_NETWORK = "transient_network"
    TERMINAL_HTTP = "terminal_http"
    EXTRACTION = "extraction"
    MERGE = "merge"
    UNEXPECTED = "unexpected"


class PlanError(Exception):
    """Base error. Subclasses pin `kind`."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(
        self,
        message: str,
        *,
        day: Optional[int] = None,
        url: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.day = day
        self.url = url
        self.cause = cause

    def __str__(self) -> str:
        return self.message


class ValidationError(PlanError, ValueError):
    """Malformed day range, concurrency limit or URL source."""

    kind = ErrorKind.VALIDATION


class FetchError(PlanError):
    """Transport failure that is not worth retrying (refused, TLS, ...)."""

    kind = ErrorKind.NETWORK

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        day: Optional[int] = None,
        url: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, day=day, url=url, cause=cause)
        self.status = status


class TransientNetworkError(FetchError):
    """Timeout, DNS failure, connection reset, HTTP 429 or 5xx."""

    kind = ErrorKind.TRANSIENT_NETWORK


class TerminalHttpError(FetchError):
    """Any other non-2xx status. Never retried."""

    kind = ErrorKind.TERMINAL_HTTP


class ExtractionFailure(PlanError):
    """No reference could be derived from a fetched page."""

    kind = ErrorKind.EXTRACTION


class MergeError(PlanError):
    """Reading or writing the CSV store failed; the destination is untouched."""

    kind = ErrorKind.MERGE
