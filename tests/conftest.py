"""Pytest configuration and fixtures for tcu-api tests.

This file provides:
- StubTransport: scripted httpx.MockTransport that records every request
- RecordingCallLogger: in-memory CallLogger that records lifecycle calls
- Fixtures: client configs, executors, pipelines and a SQLite call log
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterator

import httpx
import pytest

from tcu_api.call_logger import CallLogger, DatabaseCallLogger
from tcu_api.executor import Executor, TransportSettings
from tcu_api.models import ClientConfig, DatabaseConfig
from tcu_api.pipeline import RequestPipeline

BASE_URL = "https://api.tcu.test"

CHECK_STATUS_RESPONSE = (
    b"<Response><ResponseParameters>"
    b"<f4indexno>S0123456789</f4indexno><Status>OK</Status>"
    b"</ResponseParameters></Response>"
)


def status_response(status_code: int = 200, description: str = "Successful", f4indexno: str = "S0123/0001/2018") -> bytes:
    """Build a provider response carrying one StatusCode block."""
    return (
        f"<Response><ResponseParameters>"
        f"<f4indexno>{f4indexno}</f4indexno>"
        f"<StatusCode>{status_code}</StatusCode>"
        f"<StatusDescription>{description}</StatusDescription>"
        f"</ResponseParameters></Response>"
    ).encode("utf-8")


def make_config(**overrides: Any) -> ClientConfig:
    """Create a ClientConfig with test defaults.

    Prefer this over constructing ClientConfig directly - it fills in
    credentials and a fast retry policy.
    """
    values: dict[str, Any] = {
        "base_url": BASE_URL,
        "username": "UDSM",
        "session_token": "token-123",
        "timeout": 5.0,
        "retry_attempts": 3,
    }
    values.update(overrides)
    return ClientConfig(**values)


Step = httpx.Response | Exception | Callable[[httpx.Request], httpx.Response]


class StubTransport(httpx.MockTransport):
    """MockTransport that plays back a script, one step per attempt.

    A step is an ``httpx.Response``, an exception instance to raise, or a
    callable taking the request. The last step repeats once the script runs
    out, so ``StubTransport([ConnectError(...)])`` fails forever.
    """

    def __init__(self, steps: list[Step]) -> None:
        self.steps = list(steps)
        self.requests: list[httpx.Request] = []
        super().__init__(self._handle)

    @property
    def attempts(self) -> int:
        return len(self.requests)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        index = min(len(self.requests), len(self.steps)) - 1
        step = self.steps[index]
        if isinstance(step, Exception):
            raise step
        if isinstance(step, httpx.Response):
            return step
        return step(request)


def xml_response(body: bytes, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=body, headers={"Content-Type": "application/xml"})


class RecordingCallLogger(CallLogger):
    """CallLogger that records each lifecycle call as (name, kwargs)."""

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.fail_on = fail_on or set()
        self._next_id = 1

    def _record(self, name: str, **kwargs: Any) -> None:
        self.calls.append((name, kwargs))
        if name in self.fail_on:
            raise RuntimeError(f"{name} storage unavailable")

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def log_request_start(self, endpoint, method, headers, body, client_identity) -> int:
        self._record(
            "start", endpoint=endpoint, method=method, headers=dict(headers),
            body=body, client_identity=client_identity,
        )
        record_id = self._next_id
        self._next_id += 1
        return record_id

    def log_outcome_success(self, record_id, status_code, headers, body, execution_time) -> None:
        self._record(
            "success", record_id=record_id, status_code=status_code,
            headers=dict(headers), body=body, execution_time=execution_time,
        )

    def log_outcome_error(
        self, record_id, status_code, execution_time, error_message, error_code=None, body=None,
        error_type=None, context=None,
    ) -> None:
        self._record(
            "error", record_id=record_id, status_code=status_code,
            execution_time=execution_time, error_message=error_message,
            error_code=error_code, body=body, error_type=error_type, context=context,
        )


@pytest.fixture(autouse=True)
def no_backoff_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    """Skip real backoff delays; tests that assert on delays patch sleep themselves."""
    monkeypatch.setattr("tcu_api.executor.time.sleep", lambda seconds: None)


@pytest.fixture
def config() -> ClientConfig:
    return make_config()


@pytest.fixture
def call_log() -> RecordingCallLogger:
    return RecordingCallLogger()


@pytest.fixture
def pipeline_factory(config: ClientConfig, call_log: RecordingCallLogger) -> Iterator[Callable[..., tuple[RequestPipeline, StubTransport]]]:
    """Build a RequestPipeline over a StubTransport script."""
    executors: list[Executor] = []

    def factory(steps: list[Step], **kwargs: Any) -> tuple[RequestPipeline, StubTransport]:
        transport = StubTransport(steps)
        executor = Executor(TransportSettings(timeout=config.timeout, transport=transport))
        executors.append(executor)
        kwargs.setdefault("call_logger", call_log)
        return RequestPipeline(config, executor, **kwargs), transport

    yield factory
    for executor in executors:
        executor.close()


@pytest.fixture
def sqlite_db_config(tmp_path: Path) -> DatabaseConfig:
    return DatabaseConfig(driver="sqlite", database=str(tmp_path / "calls.db"))


@pytest.fixture
def db_call_logger(sqlite_db_config: DatabaseConfig) -> Iterator[DatabaseCallLogger]:
    call_logger = DatabaseCallLogger(sqlite_db_config)
    call_logger.create_schema()
    yield call_logger
    call_logger.close()
