"""Request Pipeline - Runs one provider call from parameters to decoded tree.

States per call:

    Building -> Sending -> (Retrying)* -> Completed | Failed

Building encodes the envelope. A failure there raises EncodingError before
any log record exists. Sending opens a log record, times the call and hands
it to the Executor. The received response is classified and decoded, and the
outcome is written to the same log record exactly once.

A call-log failure never replaces the API outcome. On failure it is attached
to the raised error (``logging_failures`` plus an exception note); on success
it is reported through ``on_logging_failure`` and the module logger.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Mapping, Sequence

from tcu_api.call_logger import CallLogger, NullCallLogger
from tcu_api.errors import (
    LoggingFailure,
    MalformedResponse,
    NetworkError,
    ProviderError,
    RequestCancelled,
    TCUAPIError,
)
from tcu_api.executor import Executor, classify_response
from tcu_api.models import ClientConfig, RawResponse
from tcu_api.response_tree import ObjectNode
from tcu_api.xml_body import ParameterBlock, decode_response, encode_request

logger = logging.getLogger(__name__)

LoggingFailureHandler = Callable[[LoggingFailure], None]


class RequestPipeline:
    """Encodes, sends, logs and decodes provider calls.

    Safe to share between threads: per-call state lives on the stack, and the
    executor and call logger are the only shared collaborators.
    """

    def __init__(
        self,
        config: ClientConfig,
        executor: Executor,
        call_logger: CallLogger | None = None,
        on_logging_failure: LoggingFailureHandler | None = None,
    ) -> None:
        self._base_url = config.base_url
        self._username = config.username
        self._session_token = config.session_token
        self._timeout = config.timeout
        self._max_attempts = config.retry_attempts
        self._executor = executor
        self._call_logger = call_logger or NullCallLogger()
        self._on_logging_failure = on_logging_failure

    @property
    def call_logger(self) -> CallLogger:
        return self._call_logger

    def execute(
        self,
        endpoint_path: str,
        parameter_blocks: ParameterBlock | Sequence[ParameterBlock] | None = None,
        http_method: str = "POST",
        cancel: threading.Event | None = None,
    ) -> ObjectNode:
        """Run one call and return the decoded response tree.

        Args:
            endpoint_path: Path appended to the base URL, e.g. ``/applicants/checkStatus``.
            parameter_blocks: One parameter mapping, or a list of mappings for
                batch endpoints.
            http_method: HTTP verb, POST for almost every endpoint.
            cancel: Optional event that aborts remaining attempts when set.

        Raises:
            EncodingError: Parameters could not be encoded (nothing is logged).
            NetworkError: No response arrived on any attempt.
            RequestCancelled: *cancel* was set before the call finished.
            AuthenticationError: Provider answered 401.
            ProviderError: Provider answered another status >= 400.
            MalformedResponse: Response body could not be decoded or is not
                well-formed XML.
        """
        method = http_method.upper()
        body = encode_request(
            parameter_blocks if parameter_blocks is not None else {},
            self._username,
            self._session_token,
        )
        headers = dict(self._executor.settings.headers)
        url = f"{self._base_url}{endpoint_path}"

        logging_failures: list[LoggingFailure] = []
        record_id = self._start_record(endpoint_path, method, headers, body, logging_failures)
        start_time = time.perf_counter()

        try:
            raw = self._executor.send(
                url,
                method,
                body,
                timeout=self._timeout,
                max_attempts=self._max_attempts,
                cancel=cancel,
            )
        except (NetworkError, RequestCancelled) as e:
            self._record_error(record_id, 0, start_time, e, None, logging_failures)
            raise self._with_failures(e, logging_failures)
        except MalformedResponse as e:
            self._record_error(record_id, e.status_code, start_time, e, None, logging_failures)
            raise self._with_failures(e, logging_failures)
        except Exception as e:
            # Unexpected failure: close the record, then let the error through unchanged
            self._record_error(record_id, 0, start_time, e, None, logging_failures)
            self._report_logging_failures(logging_failures)
            raise
        except KeyboardInterrupt:
            self._record_error(
                record_id, 0, start_time,
                RequestCancelled("Request interrupted"), None, logging_failures,
            )
            self._report_logging_failures(logging_failures)
            raise

        error = classify_response(raw)
        if error is not None:
            self._record_error(record_id, raw.status_code, start_time, error, raw.body, logging_failures)
            raise self._with_failures(error, logging_failures)

        try:
            tree = decode_response(raw.body)
        except MalformedResponse as e:
            e.status_code = raw.status_code
            self._record_error(record_id, raw.status_code, start_time, e, raw.body, logging_failures)
            raise self._with_failures(e, logging_failures)

        self._record_success(record_id, raw, start_time, logging_failures)
        self._report_logging_failures(logging_failures)
        return tree

    # -------------------------------------------------------------------------
    # Call-log helpers
    # -------------------------------------------------------------------------

    def _start_record(
        self,
        endpoint_path: str,
        method: str,
        headers: Mapping[str, str],
        body: bytes,
        failures: list[LoggingFailure],
    ) -> int | None:
        try:
            return self._call_logger.log_request_start(
                endpoint_path, method, headers, body, self._username
            )
        except Exception as e:
            failures.append(_as_logging_failure(e))
            return None

    def _record_success(
        self,
        record_id: int | None,
        raw: RawResponse,
        start_time: float,
        failures: list[LoggingFailure],
    ) -> None:
        if record_id is None:
            return
        try:
            self._call_logger.log_outcome_success(
                record_id,
                raw.status_code,
                raw.headers,
                raw.body,
                time.perf_counter() - start_time,
            )
        except Exception as e:
            failures.append(_as_logging_failure(e))

    def _record_error(
        self,
        record_id: int | None,
        status_code: int,
        start_time: float,
        error: Exception,
        body: bytes | None,
        failures: list[LoggingFailure],
    ) -> None:
        if record_id is None:
            return
        error_code = error.status_code if isinstance(error, ProviderError) else status_code
        context = dict(error.context) if isinstance(error, TCUAPIError) else {}
        try:
            self._call_logger.log_outcome_error(
                record_id,
                status_code,
                time.perf_counter() - start_time,
                _error_message(error),
                error_code=error_code,
                body=body,
                error_type=type(error).__name__,
                context=context,
            )
        except Exception as e:
            failures.append(_as_logging_failure(e))

    @staticmethod
    def _with_failures(error: TCUAPIError, failures: list[LoggingFailure]) -> TCUAPIError:
        for failure in failures:
            error.attach_logging_failure(failure)
        return error

    def _report_logging_failures(self, failures: list[LoggingFailure]) -> None:
        for failure in failures:
            logger.error("Call logging failed: %s", failure)
            if self._on_logging_failure is not None:
                self._on_logging_failure(failure)


def _error_message(error: Exception) -> str:
    message = error.message if isinstance(error, TCUAPIError) else ""
    return f"{type(error).__name__}: {message or error}"


def _as_logging_failure(error: Exception) -> LoggingFailure:
    # Third-party CallLogger implementations may raise their own errors
    if isinstance(error, LoggingFailure):
        return error
    failure = LoggingFailure(f"{type(error).__name__}: {error}")
    failure.__cause__ = error
    return failure
