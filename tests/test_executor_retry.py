"""Tests for Executor retry, classification and cancellation.

Tests cover:
- Connection failures are retried up to max_attempts with doubling backoff
- A response of any status is returned without retry
- Timeouts and dropped connections are retried; other httpx errors are not
- Undecodable bodies surface as MalformedResponse
- classify_response maps 401 and other >= 400 statuses
- Cancellation before an attempt and during backoff
- Default headers and per-client settings
"""

import threading
from unittest.mock import patch

import httpx
import pytest

from tcu_api.errors import (
    AuthenticationError,
    MalformedResponse,
    NetworkError,
    ProviderError,
    RequestCancelled,
)
from tcu_api.executor import (
    Executor,
    TransportSettings,
    backoff_delay,
    classify_response,
    default_headers,
)
from tcu_api.models import RawResponse
from tests.conftest import CHECK_STATUS_RESPONSE, StubTransport, xml_response

URL = "https://api.tcu.test/applicants/checkStatus"
BODY = b"<Request/>"


def _executor(transport: StubTransport, max_attempts: int = 3) -> Executor:
    return Executor(TransportSettings(timeout=5.0, max_attempts=max_attempts, transport=transport))


class TestBackoffDelay:
    def test_doubles_from_100ms(self) -> None:
        assert [backoff_delay(n) for n in (1, 2, 3, 4)] == pytest.approx([0.1, 0.2, 0.4, 0.8])


class TestRetryBound:
    """Connection-stage failures are retried a bounded number of times."""

    @pytest.mark.parametrize("max_attempts", [1, 3, 5])
    def test_attempts_exactly_max(self, max_attempts: int) -> None:
        transport = StubTransport([httpx.ConnectError("connection refused")])
        with patch("tcu_api.executor.time.sleep") as mock_sleep, _executor(transport, max_attempts) as executor:
            with pytest.raises(NetworkError) as exc_info:
                executor.send(URL, "POST", BODY)

        assert transport.attempts == max_attempts
        assert exc_info.value.attempts == max_attempts
        assert isinstance(exc_info.value.last_cause, httpx.ConnectError)
        # No sleep after the final attempt
        delays = [c.args[0] for c in mock_sleep.call_args_list]
        assert delays == pytest.approx([backoff_delay(n) for n in range(1, max_attempts)])

    def test_delays_are_non_decreasing_powers_of_two(self) -> None:
        transport = StubTransport([httpx.ConnectTimeout("timed out")])
        with patch("tcu_api.executor.time.sleep") as mock_sleep, _executor(transport, 4) as executor:
            with pytest.raises(NetworkError):
                executor.send(URL, "POST", BODY)

        delays = [c.args[0] for c in mock_sleep.call_args_list]
        assert delays == pytest.approx([0.1, 0.2, 0.4])
        assert all(later == pytest.approx(earlier * 2) for earlier, later in zip(delays, delays[1:]))

    def test_fail_twice_then_succeed(self) -> None:
        transport = StubTransport([
            httpx.ConnectError("refused"),
            httpx.ConnectError("refused"),
            xml_response(CHECK_STATUS_RESPONSE),
            xml_response(b"<Response>unexpected</Response>"),
        ])
        with patch("tcu_api.executor.time.sleep") as mock_sleep, _executor(transport, 5) as executor:
            raw = executor.send(URL, "POST", BODY)

        assert transport.attempts == 3
        assert raw.attempts == 3
        assert raw.body == CHECK_STATUS_RESPONSE
        assert [c.args[0] for c in mock_sleep.call_args_list] == pytest.approx([0.1, 0.2])

    def test_pool_timeout_is_retried(self) -> None:
        transport = StubTransport([httpx.PoolTimeout("pool exhausted"), xml_response(CHECK_STATUS_RESPONSE)])
        with _executor(transport) as executor:
            raw = executor.send(URL, "POST", BODY)
        assert transport.attempts == 2
        assert raw.status_code == 200

    def test_read_timeout_is_retried(self) -> None:
        transport = StubTransport([httpx.ReadTimeout("no response bytes yet"), xml_response(CHECK_STATUS_RESPONSE)])
        with patch("tcu_api.executor.time.sleep") as mock_sleep, _executor(transport) as executor:
            raw = executor.send(URL, "POST", BODY)

        assert transport.attempts == 2
        assert raw.attempts == 2
        assert raw.body == CHECK_STATUS_RESPONSE
        assert [c.args[0] for c in mock_sleep.call_args_list] == pytest.approx([0.1])

    def test_server_disconnect_is_retried(self) -> None:
        transport = StubTransport([
            httpx.RemoteProtocolError("Server disconnected without sending a response."),
            xml_response(CHECK_STATUS_RESPONSE),
        ])
        with _executor(transport) as executor:
            raw = executor.send(URL, "POST", BODY)
        assert transport.attempts == 2
        assert raw.status_code == 200

    def test_read_timeout_exhausts_attempts(self) -> None:
        transport = StubTransport([httpx.ReadTimeout("read timed out")])
        with _executor(transport, max_attempts=3) as executor:
            with pytest.raises(NetworkError) as exc_info:
                executor.send(URL, "POST", BODY)

        assert transport.attempts == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_cause, httpx.ReadTimeout)


class TestNoRetryAfterSend:
    """Received responses and errors retrying cannot fix are not retried."""

    @pytest.mark.parametrize("status_code", [500, 502, 401, 404])
    def test_http_error_status_single_attempt(self, status_code: int) -> None:
        transport = StubTransport([xml_response(b"<Error/>", status_code=status_code)])
        with _executor(transport) as executor:
            raw = executor.send(URL, "POST", BODY)

        assert transport.attempts == 1
        assert raw.status_code == status_code

    def test_500_classified_as_provider_error(self) -> None:
        transport = StubTransport([xml_response(b"<Error>boom</Error>", status_code=500)])
        with _executor(transport) as executor:
            raw = executor.send(URL, "POST", BODY)

        error = classify_response(raw)
        assert transport.attempts == 1
        assert type(error) is ProviderError
        assert error.status_code == 500
        assert error.body == b"<Error>boom</Error>"

    def test_unrecoverable_transport_error_not_retried(self) -> None:
        transport = StubTransport([httpx.UnsupportedProtocol("unknown scheme")])
        with _executor(transport) as executor:
            with pytest.raises(NetworkError, match="Transport error") as exc_info:
                executor.send(URL, "POST", BODY)
        assert transport.attempts == 1
        assert exc_info.value.attempts == 1

    def test_undecodable_body_is_malformed_response(self) -> None:
        broken_gzip = httpx.Response(
            200,
            headers={"Content-Type": "application/xml", "Content-Encoding": "gzip"},
            stream=httpx.ByteStream(b"not gzip"),
        )
        transport = StubTransport([broken_gzip])
        with _executor(transport) as executor:
            with pytest.raises(MalformedResponse) as exc_info:
                executor.send(URL, "POST", BODY)

        assert transport.attempts == 1
        assert exc_info.value.status_code == 200
        assert isinstance(exc_info.value.__cause__, httpx.DecodingError)


class TestClassifyResponse:
    def test_success_statuses(self) -> None:
        assert classify_response(RawResponse(status_code=200)) is None
        assert classify_response(RawResponse(status_code=302)) is None

    def test_401_is_authentication_error(self) -> None:
        error = classify_response(RawResponse(status_code=401, body=b"denied"))
        assert isinstance(error, AuthenticationError)
        assert error.status_code == 401
        assert error.body == b"denied"

    def test_other_4xx_is_provider_error(self) -> None:
        error = classify_response(RawResponse(status_code=404))
        assert type(error) is ProviderError
        assert error.status_code == 404


class TestCancellation:
    def test_cancelled_before_first_attempt(self) -> None:
        transport = StubTransport([xml_response(CHECK_STATUS_RESPONSE)])
        cancel = threading.Event()
        cancel.set()
        with _executor(transport) as executor:
            with pytest.raises(RequestCancelled) as exc_info:
                executor.send(URL, "POST", BODY, cancel=cancel)

        assert transport.attempts == 0
        assert exc_info.value.attempts == 0

    def test_cancelled_during_backoff(self) -> None:
        """Setting the event while waiting stops further attempts."""
        cancel = threading.Event()

        def refuse_and_cancel(request: httpx.Request) -> httpx.Response:
            cancel.set()
            raise httpx.ConnectError("refused", request=request)

        transport = StubTransport([refuse_and_cancel])
        with _executor(transport, max_attempts=5) as executor:
            with pytest.raises(RequestCancelled, match="while waiting to retry"):
                executor.send(URL, "POST", BODY, cancel=cancel)

        assert transport.attempts == 1


class TestRequestShape:
    def test_default_headers_sent(self) -> None:
        transport = StubTransport([xml_response(CHECK_STATUS_RESPONSE)])
        with _executor(transport) as executor:
            executor.send(URL, "POST", BODY)

        request = transport.requests[0]
        assert request.method == "POST"
        assert request.headers["Content-Type"] == "application/xml"
        assert request.headers["Accept"] == "application/xml"
        assert request.headers["User-Agent"] == "TCU-API-Client/1.0"
        assert request.content == BODY

    def test_custom_user_agent(self) -> None:
        assert default_headers("Registry/2.0")["User-Agent"] == "Registry/2.0"

    def test_response_headers_lowercased(self) -> None:
        transport = StubTransport([httpx.Response(200, content=b"<R/>", headers={"X-Request-Id": "abc"})])
        with _executor(transport) as executor:
            raw = executor.send(URL, "POST", BODY)
        assert raw.headers["x-request-id"] == "abc"

    def test_settings_are_per_executor(self) -> None:
        first = Executor(TransportSettings(timeout=1.0, max_attempts=1))
        second = Executor(TransportSettings(timeout=9.0, max_attempts=4))
        try:
            assert first.settings.timeout == 1.0
            assert second.settings.max_attempts == 4
        finally:
            first.close()
            second.close()
