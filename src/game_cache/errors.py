"""Error taxonomy shared by upstream clients and services.

Expected failures (unreachable provider, rate limit, unknown id) are raised
as ``CatalogError`` subclasses by the repositories and the gateway. The
services catch them at their boundary and record them as state, so callers
read ``error`` attributes instead of wrapping every call in ``try``.
"""

import asyncio
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Classification used to decide what (if anything) to tell a user."""

    NETWORK = "network"
    SERVICE_UNAVAILABLE = "service_unavailable"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    CORRUPTION = "corruption"


_DESCRIPTIONS = {
    ErrorKind.NETWORK: "Network error. Please check your connection and try again.",
    ErrorKind.SERVICE_UNAVAILABLE: "Game services are temporarily unavailable. Please try again later.",
    ErrorKind.NOT_FOUND: "The requested game could not be found.",
    ErrorKind.VALIDATION: "The request was not valid.",
    ErrorKind.CORRUPTION: "Stored cache data could not be read.",
}


class CatalogError(Exception):
    """Base exception for every catalog failure.

    Attributes:
        message: Human-readable description
        source: Provider id the failure came from, if any
        details: Extra context for logs
    """

    kind: ErrorKind = ErrorKind.SERVICE_UNAVAILABLE

    def __init__(
        self,
        message: str,
        source: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.source = source
        self.details = details or {}
        super().__init__(self.message)


class NetworkError(CatalogError):
    """Provider unreachable or the request timed out."""

    kind = ErrorKind.NETWORK


class ServiceUnavailable(CatalogError):
    """Provider reachable but erroring or rate-limiting."""

    kind = ErrorKind.SERVICE_UNAVAILABLE


class NotFound(CatalogError):
    kind = ErrorKind.NOT_FOUND


class ValidationError(CatalogError):
    """Bad input, e.g. a query that is too short or a malformed id."""

    kind = ErrorKind.VALIDATION


class CacheCorruption(CatalogError):
    """Persisted cache data is unreadable or cannot be migrated."""

    kind = ErrorKind.CORRUPTION


def classify(exc: BaseException) -> ErrorKind:
    """Map any exception onto an ``ErrorKind``.

    Timeouts count as network failures for retry purposes; anything that is
    not a known catalog error is treated as the service being unavailable.
    """
    if isinstance(exc, CatalogError):
        return exc.kind
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return ErrorKind.NETWORK
    return ErrorKind.SERVICE_UNAVAILABLE


def describe(kind: ErrorKind) -> str:
    """Return the user-facing message for an error kind."""
    return _DESCRIPTIONS[kind]


def is_retryable(kind: ErrorKind) -> bool:
    """Only network and service failures warrant a retry notice."""
    return kind in (ErrorKind.NETWORK, ErrorKind.SERVICE_UNAVAILABLE)
