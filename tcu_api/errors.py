"""Error taxonomy for the TCU API client.

Every failure raised by the client derives from TCUAPIError so callers can
catch the whole family at once. The pipeline raises exactly one primary
error per call; persistence problems in the call logger are carried as
LoggingFailure instances on ``logging_failures`` instead of replacing it.
"""

from __future__ import annotations

from typing import Any


class TCUAPIError(Exception):
    """Base class for client errors."""

    def __init__(
        self,
        message: str = "",
        code: int = 0,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or {}
        self.logging_failures: list[LoggingFailure] = []

    def attach_logging_failure(self, failure: LoggingFailure) -> None:
        """Record a call-log failure without changing this error's identity."""
        self.logging_failures.append(failure)
        self.add_note(f"call logging failed: {failure}")


class ConfigurationError(TCUAPIError):
    """Raised when client settings are invalid."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    def __str__(self) -> str:
        if not self.errors:
            return self.message
        return f"{self.message}: " + "; ".join(self.errors)


class EncodingError(TCUAPIError):
    """Raised when request parameters cannot be serialized to XML."""


class NetworkError(TCUAPIError):
    """Raised when no response could be obtained from the provider."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_cause: BaseException | None = None,
    ) -> None:
        cause = f"{type(last_cause).__name__}: {last_cause}" if last_cause is not None else None
        super().__init__(message, code=0, context={"attempts": attempts, "last_cause": cause})
        self.attempts = attempts
        self.last_cause = last_cause


class RequestCancelled(TCUAPIError):
    """Raised when a call was cancelled before it completed."""

    def __init__(self, message: str = "Request cancelled", attempts: int = 0) -> None:
        super().__init__(message, code=0, context={"attempts": attempts})
        self.attempts = attempts


class ProviderError(TCUAPIError):
    """Raised when the provider answered with an HTTP error status."""

    def __init__(self, message: str, status_code: int, body: bytes = b"") -> None:
        super().__init__(message, code=status_code)
        self.status_code = status_code
        self.body = body


class AuthenticationError(ProviderError):
    """Raised when the provider rejected the credentials (HTTP 401)."""

    def __init__(
        self,
        message: str = "Authentication failed. Please check your credentials.",
        body: bytes = b"",
    ) -> None:
        super().__init__(message, status_code=401, body=body)


class MalformedResponse(TCUAPIError):
    """Raised when a response body is not well-formed XML."""

    def __init__(self, message: str, body: bytes = b"", status_code: int = 0) -> None:
        super().__init__(message, code=status_code)
        self.body = body
        self.status_code = status_code


class LoggingFailure(TCUAPIError):
    """Raised by call loggers when the log store could not be written."""


class ValidationError(TCUAPIError):
    """Raised by resources when input fields fail validation.

    Carries every problem found, not only the first one.
    """

    def __init__(self, message: str = "Validation failed", errors: list[str] | None = None) -> None:
        super().__init__(message, code=422)
        self.errors = errors or []

    def __str__(self) -> str:
        if not self.errors:
            return self.message
        return f"{self.message}: " + "; ".join(self.errors)


class FieldNotFound(TCUAPIError, KeyError):
    """Raised when a decoded response has no element at the requested path."""

    def __str__(self) -> str:
        return self.message


class TypeMismatch(TCUAPIError, TypeError):
    """Raised when a decoded response node is not of the requested kind."""
