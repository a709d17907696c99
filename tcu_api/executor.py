"""Executor - Sends XML requests to the provider with bounded retry.

Failures that leave no response are retried, including timeouts and a
server that drops the connection without answering. A response that was
fully received is returned as-is, whatever its status, for the pipeline to
classify.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from tcu_api.errors import (
    AuthenticationError,
    MalformedResponse,
    NetworkError,
    ProviderError,
    RequestCancelled,
)
from tcu_api.models import DEFAULT_RETRY_ATTEMPTS, DEFAULT_TIMEOUT, DEFAULT_USER_AGENT, RawResponse

logger = logging.getLogger(__name__)

INITIAL_BACKOFF_SECONDS = 0.1

# Raised before any byte of a response was received.
# httpx.NetworkError covers connect, read, write and close errors.
RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


def default_headers(user_agent: str = DEFAULT_USER_AGENT) -> dict[str, str]:
    return {
        "Content-Type": "application/xml",
        "Accept": "application/xml",
        "User-Agent": user_agent,
    }


def backoff_delay(failed_attempts: int) -> float:
    """Delay before the next attempt: 0.1s, 0.2s, 0.4s, ..."""
    return INITIAL_BACKOFF_SECONDS * (2 ** (failed_attempts - 1))


@dataclass(frozen=True)
class TransportSettings:
    """Per-client HTTP settings.

    ``transport`` lets tests substitute an ``httpx.MockTransport``.
    """

    timeout: float = DEFAULT_TIMEOUT
    max_attempts: int = DEFAULT_RETRY_ATTEMPTS
    headers: dict[str, str] = field(default_factory=default_headers)
    verify: bool | str = True
    transport: httpx.BaseTransport | None = None


class Executor:
    """Executes HTTP calls against the provider.

    Usage:
        with Executor(TransportSettings(timeout=30)) as executor:
            raw = executor.send(url, "POST", body)
    """

    def __init__(self, settings: TransportSettings | None = None) -> None:
        self._settings = settings or TransportSettings()
        client_kwargs: dict[str, Any] = {
            "headers": self._settings.headers,
            "timeout": self._settings.timeout,
            "verify": self._settings.verify,
        }
        if self._settings.transport is not None:
            client_kwargs["transport"] = self._settings.transport
        self._client = httpx.Client(**client_kwargs)

    @property
    def settings(self) -> TransportSettings:
        return self._settings

    def __enter__(self) -> "Executor":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def send(
        self,
        url: str,
        method: str,
        body: bytes,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        max_attempts: int | None = None,
        cancel: threading.Event | None = None,
    ) -> RawResponse:
        """Send one logical request, retrying failures that left no response.

        Args:
            url: Absolute URL.
            method: HTTP method.
            body: Request body bytes.
            headers: Extra headers merged over the client defaults.
            timeout: Per-attempt timeout; defaults to the settings value.
            max_attempts: Attempt limit; defaults to the settings value.
            cancel: Event that, once set, stops further attempts and backoff.

        Returns:
            RawResponse for the first fully received response.

        Raises:
            NetworkError: If every attempt failed before a response arrived, or
                httpx reported an error that retrying cannot fix.
            MalformedResponse: If the response body could not be decoded.
            RequestCancelled: If *cancel* was set before the call finished.
        """
        attempts_allowed = max_attempts if max_attempts is not None else self._settings.max_attempts
        attempt_timeout = timeout if timeout is not None else self._settings.timeout
        last_error: Exception | None = None

        for attempt in range(1, attempts_allowed + 1):
            if cancel is not None and cancel.is_set():
                raise RequestCancelled(
                    f"Request to {url} cancelled before attempt {attempt}",
                    attempts=attempt - 1,
                )

            try:
                start_time = time.perf_counter()
                http_response = self._request_once(method.upper(), url, body, headers, attempt_timeout)
                elapsed_ms = (time.perf_counter() - start_time) * 1000
            except RETRYABLE_EXCEPTIONS as e:
                last_error = e
                logger.warning(
                    "Connection attempt %d/%d to %s failed: %s",
                    attempt, attempts_allowed, url, e,
                )
                if attempt < attempts_allowed:
                    self._wait_before_retry(backoff_delay(attempt), cancel, url, attempt)
                continue
            except httpx.HTTPError as e:
                # e.g. an unsupported URL scheme; retrying cannot help
                raise NetworkError(
                    f"Transport error on {url}: {e}",
                    attempts=attempt,
                    last_cause=e,
                ) from e

            logger.debug(
                "%s %s -> %d in %.1fms (attempt %d)",
                method.upper(), url, http_response.status_code, elapsed_ms, attempt,
            )
            return RawResponse(
                status_code=http_response.status_code,
                headers={k.lower(): v for k, v in http_response.headers.items()},
                body=http_response.content,
                elapsed_ms=elapsed_ms,
                attempts=attempt,
            )

        raise NetworkError(
            f"Connection failed after {attempts_allowed} attempts: {last_error}",
            attempts=attempts_allowed,
            last_cause=last_error,
        ) from last_error

    def _request_once(
        self,
        method: str,
        url: str,
        body: bytes,
        headers: dict[str, str] | None,
        timeout: float,
    ) -> httpx.Response:
        """Perform one attempt and read the whole body.

        A body that cannot be decoded (e.g. a broken gzip stream) arrived
        after the status line, so it is reported as MalformedResponse with
        that status instead of being retried.
        """
        request = self._client.build_request(
            method, url, content=body, headers=headers, timeout=timeout
        )
        http_response = self._client.send(request, stream=True)
        try:
            http_response.read()
        except httpx.DecodingError as e:
            raise MalformedResponse(
                f"Could not decode response body from {url}: {e}",
                status_code=http_response.status_code,
            ) from e
        finally:
            http_response.close()
        return http_response

    def _wait_before_retry(
        self,
        delay: float,
        cancel: threading.Event | None,
        url: str,
        attempt: int,
    ) -> None:
        if cancel is None:
            time.sleep(delay)
            return
        if cancel.wait(delay):
            raise RequestCancelled(
                f"Request to {url} cancelled while waiting to retry", attempts=attempt
            )


def classify_response(response: RawResponse) -> ProviderError | None:
    """Return the error a received response represents, or None if it succeeded.

    401 is reported as AuthenticationError; any other status >= 400 as
    ProviderError. Neither is ever retried.
    """
    if response.status_code == 401:
        return AuthenticationError(body=response.body)
    if response.status_code >= 400:
        return ProviderError(
            f"API request failed with status {response.status_code}",
            status_code=response.status_code,
            body=response.body,
        )
    return None
