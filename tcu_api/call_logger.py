"""Call Logger - Persists the lifecycle of every provider call.

A call produces one row, inserted before the network attempt and updated
exactly once with either the response or the error. Rows that were inserted
but never updated stay in ``pending`` state, which marks calls that crashed
mid-flight.

DatabaseCallLogger uses a SQLAlchemy engine, whose connection pool is safe to
share between threads. Every SQLAlchemy failure is re-raised as
LoggingFailure so the pipeline can keep it apart from the API outcome.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    case,
    create_engine,
    delete,
    event,
    func,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.dialects import mysql
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError

from tcu_api.errors import ConfigurationError, LoggingFailure
from tcu_api.models import DatabaseConfig

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"

_DRIVER_NAMES = {
    "mysql": "mysql+pymysql",
    "pgsql": "postgresql+psycopg2",
    "sqlite": "sqlite",
}
_DRIVER_EXTRAS = {"mysql": "mysql", "pgsql": "postgres"}

_LongText = Text().with_variant(mysql.LONGTEXT(), "mysql")


class CallLogger(ABC):
    """Interface the pipeline uses to record call lifecycles."""

    @abstractmethod
    def log_request_start(
        self,
        endpoint: str,
        method: str,
        headers: Mapping[str, str],
        body: bytes,
        client_identity: str,
    ) -> int | None:
        """Record a call about to be sent and return its record id."""

    @abstractmethod
    def log_outcome_success(
        self,
        record_id: int,
        status_code: int,
        headers: Mapping[str, str],
        body: bytes,
        execution_time: float,
    ) -> None:
        """Mark the record completed with the received response."""

    @abstractmethod
    def log_outcome_error(
        self,
        record_id: int,
        status_code: int,
        execution_time: float,
        error_message: str,
        error_code: int | None = None,
        body: bytes | None = None,
        error_type: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        """Mark the record failed.

        *error_type* is the error class name (``NetworkError``,
        ``AuthenticationError``, ...) and *context* its structured detail,
        such as attempt count and last cause.
        """

    def close(self) -> None:
        """Release any held resources."""


class NullCallLogger(CallLogger):
    """Logger used when database logging is disabled."""

    def log_request_start(self, endpoint, method, headers, body, client_identity) -> None:
        return None

    def log_outcome_success(self, record_id, status_code, headers, body, execution_time) -> None:
        return None

    def log_outcome_error(
        self, record_id, status_code, execution_time, error_message, error_code=None, body=None,
        error_type=None, context=None,
    ) -> None:
        return None


def build_logs_table(metadata: MetaData, name: str) -> Table:
    """Define the call-log table under *name*."""
    return Table(
        name,
        metadata,
        Column("id", BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
        Column("endpoint", String(255), nullable=False, index=True),
        Column("method", String(10), nullable=False, default="POST"),
        Column("request_headers", Text),
        Column("request_body", _LongText),
        Column("request_size", Integer, nullable=False, default=0),
        Column("response_code", Integer, index=True),
        Column("response_headers", Text),
        Column("response_body", _LongText),
        Column("response_size", Integer),
        Column("execution_time", Float, index=True),
        Column("username", String(100), index=True),
        Column("status", String(20), nullable=False, default=STATUS_PENDING, index=True),
        Column("error_message", Text),
        Column("error_code", Integer),
        Column("error_type", String(50), index=True),
        Column("error_context", Text),
        Column("created_at", DateTime(timezone=True), nullable=False),
        Column("updated_at", DateTime(timezone=True)),
        Index(f"ix_{name}_endpoint_created", "endpoint", "created_at"),
        Index(f"ix_{name}_status_created", "status", "created_at"),
    )


def build_database_url(config: DatabaseConfig) -> URL:
    """Build a SQLAlchemy URL for the configured driver."""
    if config.driver == "sqlite":
        return URL.create("sqlite", database=config.database)

    query = {"charset": "utf8mb4"} if config.driver == "mysql" else {}
    return URL.create(
        _DRIVER_NAMES[config.driver],
        username=config.resolved_username,
        password=config.password or None,
        host=config.host,
        port=config.resolved_port,
        database=config.database,
        query=query,
    )


def create_log_engine(config: DatabaseConfig) -> Engine:
    """Create a pooled engine for the log database.

    Sessions are pinned to UTC so timestamps compare across hosts.
    """
    kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if config.driver == "sqlite":
        kwargs["connect_args"] = {"timeout": config.connect_timeout, "check_same_thread": False}
    else:
        kwargs["pool_size"] = config.pool_size
        kwargs["connect_args"] = {"connect_timeout": config.connect_timeout}

    try:
        engine = create_engine(build_database_url(config), **kwargs)
    except ImportError as e:
        extra = _DRIVER_EXTRAS.get(config.driver, config.driver)
        raise ConfigurationError(
            f"Database driver for '{config.driver}' is not installed; "
            f"install tcu-api-client[{extra}]"
        ) from e

    if config.driver in ("mysql", "pgsql"):
        statement = "SET time_zone = '+00:00'" if config.driver == "mysql" else "SET TIME ZONE 'UTC'"

        @event.listens_for(engine, "connect")
        def _set_utc(dbapi_connection: Any, connection_record: Any) -> None:
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute(statement)
            finally:
                cursor.close()

    return engine


def _encode_headers(headers: Mapping[str, str] | None) -> str:
    return json.dumps(dict(headers or {}), sort_keys=True)


def _encode_context(context: Mapping[str, Any] | None) -> str | None:
    if not context:
        return None
    return json.dumps(dict(context), sort_keys=True, default=str)


def _decode_body(body: bytes | None) -> str:
    if not body:
        return ""
    return body.decode("utf-8", errors="replace")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DatabaseCallLogger(CallLogger):
    """Relational call logger backed by a SQLAlchemy connection pool.

    Usage:
        call_logger = DatabaseCallLogger(DatabaseConfig(driver="pgsql", ...))
        call_logger.create_schema()
        record_id = call_logger.log_request_start("/applicants/checkStatus", "POST", headers, body, "user")
        call_logger.log_outcome_success(record_id, 200, resp_headers, resp_body, 0.42)
    """

    def __init__(self, config: DatabaseConfig, engine: Engine | None = None) -> None:
        self._config = config
        self._engine = engine if engine is not None else create_log_engine(config)
        self._metadata = MetaData()
        self.logs = build_logs_table(self._metadata, config.logs_table)

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_schema(self) -> None:
        """Create the log table if it does not exist."""
        try:
            self._metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise LoggingFailure(f"Failed to create call-log schema: {e}") from e
        logger.info("Call-log table %s is ready", self.logs.name)

    def log_request_start(
        self,
        endpoint: str,
        method: str,
        headers: Mapping[str, str],
        body: bytes,
        client_identity: str,
    ) -> int:
        statement = insert(self.logs).values(
            endpoint=endpoint,
            method=method.upper(),
            request_headers=_encode_headers(headers),
            request_body=_decode_body(body),
            request_size=len(body or b""),
            username=client_identity,
            status=STATUS_PENDING,
            created_at=_now(),
        )
        try:
            with self._engine.begin() as conn:
                result = conn.execute(statement)
                record_id = int(result.inserted_primary_key[0])
        except SQLAlchemyError as e:
            logger.error("Failed to log API request for %s: %s", endpoint, e)
            raise LoggingFailure(f"Failed to log API request: {e}") from e

        logger.debug("API request logged with ID: %d", record_id)
        return record_id

    def log_outcome_success(
        self,
        record_id: int,
        status_code: int,
        headers: Mapping[str, str],
        body: bytes,
        execution_time: float,
    ) -> None:
        self._complete(
            record_id,
            status=STATUS_COMPLETED,
            response_code=status_code,
            response_headers=_encode_headers(headers),
            response_body=_decode_body(body),
            response_size=len(body or b""),
            execution_time=execution_time,
        )

    def log_outcome_error(
        self,
        record_id: int,
        status_code: int,
        execution_time: float,
        error_message: str,
        error_code: int | None = None,
        body: bytes | None = None,
        error_type: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        values: dict[str, Any] = {
            "status": STATUS_ERROR,
            "response_code": status_code,
            "execution_time": execution_time,
            "error_message": error_message,
            "error_code": error_code if error_code is not None else status_code,
            "error_type": error_type,
            "error_context": _encode_context(context),
        }
        if body is not None:
            values["response_body"] = _decode_body(body)
            values["response_size"] = len(body)
        self._complete(record_id, **values)

    def _complete(self, record_id: int, **values: Any) -> None:
        """Apply the single allowed update to a pending record."""
        statement = (
            update(self.logs)
            .where(self.logs.c.id == record_id, self.logs.c.status == STATUS_PENDING)
            .values(updated_at=_now(), **values)
        )
        try:
            with self._engine.begin() as conn:
                result = conn.execute(statement)
        except SQLAlchemyError as e:
            logger.error("Failed to log API outcome for ID %s: %s", record_id, e)
            raise LoggingFailure(f"Failed to log API outcome: {e}") from e

        if result.rowcount != 1:
            raise LoggingFailure(
                f"Call record {record_id} does not exist or was already completed"
            )
        logger.debug("API outcome (%s) logged for ID: %d", values["status"], record_id)

    # -------------------------------------------------------------------------
    # Query and maintenance
    # -------------------------------------------------------------------------

    def get_logs(
        self,
        endpoint: str | None = None,
        status_code: int | None = None,
        status: str | None = None,
        error_type: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Return call records, newest first, filtered by the given fields."""
        statement = select(self.logs)
        if endpoint:
            statement = statement.where(self.logs.c.endpoint == endpoint)
        if status_code is not None:
            statement = statement.where(self.logs.c.response_code == status_code)
        if status:
            statement = statement.where(self.logs.c.status == status)
        if error_type:
            statement = statement.where(self.logs.c.error_type == error_type)
        if date_from is not None:
            statement = statement.where(self.logs.c.created_at >= date_from)
        if date_to is not None:
            statement = statement.where(self.logs.c.created_at <= date_to)
        statement = (
            statement.order_by(self.logs.c.created_at.desc(), self.logs.c.id.desc())
            .limit(limit)
            .offset(offset)
        )

        try:
            with self._engine.connect() as conn:
                rows = conn.execute(statement).mappings().all()
        except SQLAlchemyError as e:
            raise LoggingFailure(f"Failed to fetch API logs: {e}") from e
        return [dict(row) for row in rows]

    def get_statistics(self, date_from: datetime, date_to: datetime) -> dict[str, Any]:
        """Aggregate counts and timings for calls created in [date_from, date_to]."""
        c = self.logs.c
        statement = select(
            func.count().label("total_requests"),
            func.count(case((c.status == STATUS_COMPLETED, 1))).label("successful_requests"),
            func.count(case((c.status == STATUS_ERROR, 1))).label("failed_requests"),
            func.count(case((c.status == STATUS_PENDING, 1))).label("pending_requests"),
            func.avg(c.execution_time).label("avg_execution_time"),
            func.max(c.execution_time).label("max_execution_time"),
            func.min(c.execution_time).label("min_execution_time"),
        ).where(c.created_at.between(date_from, date_to))

        try:
            with self._engine.connect() as conn:
                row = conn.execute(statement).mappings().one()
        except SQLAlchemyError as e:
            raise LoggingFailure(f"Failed to fetch API statistics: {e}") from e
        return dict(row)

    def clean_old_logs(self, days_to_keep: int = 90) -> int:
        """Delete records older than *days_to_keep* days. Returns rows removed."""
        cutoff = _now() - timedelta(days=days_to_keep)
        try:
            with self._engine.begin() as conn:
                result = conn.execute(delete(self.logs).where(self.logs.c.created_at < cutoff))
        except SQLAlchemyError as e:
            raise LoggingFailure(f"Failed to clean old logs: {e}") from e

        logger.info("Cleaned %d old log entries", result.rowcount)
        return result.rowcount

    def test_connection(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("Database connection test failed: %s", e)
            return False
        return True

    def close(self) -> None:
        self._engine.dispose()
