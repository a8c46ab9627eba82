"""Domain exception hierarchy for the LLM terminal client."""

from __future__ import annotations

from .models import ErrorKind


class LlmTuiError(RuntimeError):
    """Base class for all domain-level client errors."""


class ConfigValidationError(LlmTuiError):
    """Raised when configuration cannot be validated safely."""


class PersistenceError(LlmTuiError):
    """Raised when the session configuration cannot be written."""


class CompletionError(LlmTuiError):
    """Base class for failed completion requests.

    Every subclass carries the :class:`ErrorKind` that is surfaced to the
    session controller once the failure is converted into data.
    """

    kind: ErrorKind = ErrorKind.NETWORK


class CompletionTimeoutError(CompletionError):
    """Raised when the endpoint does not answer within the configured timeout."""

    kind = ErrorKind.TIMEOUT


class AuthenticationError(CompletionError):
    """Raised when the endpoint rejects the credential."""

    kind = ErrorKind.AUTH_FAILURE


class RateLimitedError(CompletionError):
    """Raised when the endpoint throttles the caller."""

    kind = ErrorKind.RATE_LIMITED


class MalformedResponseError(CompletionError):
    """Raised when the response body cannot be interpreted as a completion."""

    kind = ErrorKind.MALFORMED


class NetworkError(CompletionError):
    """Raised when the host cannot be reached or answers with a server error."""

    kind = ErrorKind.NETWORK
