"""
Error taxonomy for the tutoring toolkit.

Every failure that can reach a caller is classified into an 'ErrorKind'. The
kind decides two things: whether the retry loop may try again, and which
localized message the user sees. Classification only reads structured fields
('ProviderError.code', 'status' and 'reason'); message strings are never
parsed.

'TutoringError' is the root of all toolkit exceptions so the API layer can
translate them with a single 'except' clause.
"""

from enum import StrEnum

import httpx


class ErrorKind(StrEnum):
    OVERLOADED = "overloaded"
    RATE_LIMITED = "rate_limited"
    AUTHENTICATION = "authentication"
    MISSING_API_KEY = "missing_api_key"
    BLOCKED = "blocked"
    MALFORMED_OUTPUT = "malformed_output"
    NETWORK = "network"
    OFFLINE = "offline"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in _TRANSIENT_KINDS


_TRANSIENT_KINDS = frozenset({ErrorKind.OVERLOADED, ErrorKind.RATE_LIMITED})

_RATE_LIMIT_STATUSES = frozenset({"RESOURCE_EXHAUSTED"})
_OVERLOAD_STATUSES = frozenset({"UNAVAILABLE", "DEADLINE_EXCEEDED"})
_AUTH_STATUSES = frozenset({"UNAUTHENTICATED", "PERMISSION_DENIED"})
_AUTH_REASONS = frozenset({"API_KEY_INVALID", "API_KEY_EXPIRED", "API_KEY_SERVICE_BLOCKED"})


class TutoringError(Exception):
    """Base class for toolkit errors.

    'message' is the text shown to the learner. It is already localized when the
    error is raised by the orchestration layer and a plain English description
    otherwise.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str = "", kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class ProviderError(TutoringError):
    """
    Canonical shape of an error returned by the generation provider.

    Attributes:
        code: HTTP status code of the failed call.
        status: Provider status string (e.g. 'RESOURCE_EXHAUSTED').
        reason: Machine-readable reason from the structured error details
            (e.g. 'API_KEY_INVALID'), when the provider sends one.
    """

    def __init__(self, code: int, status: str | None = None, reason: str | None = None, message: str = "") -> None:
        super().__init__(message or f"Provider error {code} ({status or 'no status'})")
        self.code = code
        self.status = status
        self.reason = reason
        self.kind = _classify_provider_error(code, status, reason)


class ContentBlockedError(TutoringError):
    kind = ErrorKind.BLOCKED


class MissingApiKeyError(TutoringError):
    kind = ErrorKind.MISSING_API_KEY


class MalformedOutputError(TutoringError):
    kind = ErrorKind.MALFORMED_OUTPUT


class AttachmentError(TutoringError):
    """Raised when an attachment violates the size or type limits.

    'too_large' distinguishes a size violation from an unsupported MIME type.
    """

    def __init__(self, message: str, too_large: bool = False) -> None:
        super().__init__(message)
        self.too_large = too_large


class RequestInFlightError(TutoringError):
    """Raised when a session receives a message while a response is still streaming."""


def _classify_provider_error(code: int, status: str | None, reason: str | None) -> ErrorKind:
    if reason in _AUTH_REASONS or status in _AUTH_STATUSES or code in (401, 403):
        return ErrorKind.AUTHENTICATION
    if code == 429 or status in _RATE_LIMIT_STATUSES:
        return ErrorKind.RATE_LIMITED
    if code in (500, 503, 504) or status in _OVERLOAD_STATUSES:
        return ErrorKind.OVERLOADED
    return ErrorKind.UNKNOWN


def classify_error(error: BaseException) -> ErrorKind:
    """Return the 'ErrorKind' for any exception raised while talking to the provider."""
    if isinstance(error, TutoringError):
        return error.kind
    if isinstance(error, httpx.TransportError):
        return ErrorKind.NETWORK
    return ErrorKind.UNKNOWN
