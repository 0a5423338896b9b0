"""Source resolution exceptions.

Raised inside adapters and converted to tagged results at the adapter
boundary; they never escape a public adapter operation.
"""

from __future__ import annotations

from playerscout.domain.entities.media import ErrorKind

SNIPPET_LENGTH = 200


class SourceError(Exception):
    """Base class for all source-related errors."""

    kind: ErrorKind = ErrorKind.NETWORK_FAILURE


class NetworkFailure(SourceError):
    """Connection error, timeout or non-2xx response."""

    kind = ErrorKind.NETWORK_FAILURE


class UpstreamBlocked(SourceError):
    """Backend answered with an access-error or CAPTCHA page."""

    kind = ErrorKind.UPSTREAM_BLOCKED


class UpstreamReportedError(SourceError):
    """Backend JSON carried an explicit error field."""

    kind = ErrorKind.UPSTREAM_REPORTED_ERROR


class ParseFailure(SourceError):
    """Response received but the expected fields or patterns are absent."""

    kind = ErrorKind.PARSE_FAILURE

    def __init__(self, message: str, raw: str | None = None) -> None:
        self.snippet = raw[:SNIPPET_LENGTH] if raw else ""
        if self.snippet:
            message = f"{message}. Response: {self.snippet}"
        super().__init__(message)


class MissingParameter(SourceError):
    """Series request lacking season or episode."""

    kind = ErrorKind.MISSING_PARAMETER


class NotFound(SourceError):
    """Requested season/episode/candidate absent from a valid response."""

    kind = ErrorKind.NOT_FOUND


class UnknownSource(SourceError):
    """Source name not known to the orchestrator."""

    kind = ErrorKind.UNKNOWN_SOURCE
