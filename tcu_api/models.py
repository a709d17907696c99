"""Configuration and transport data models for the TCU API client.

Configuration models use Pydantic v2 and are frozen: collaborators capture
validated values at construction and never re-validate them.
"""

from __future__ import annotations

from typing import Any, Literal, Self
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from tcu_api.errors import ConfigurationError

DEFAULT_BASE_URL = "https://api.tcu.go.tz"
DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_USER_AGENT = "TCU-API-Client/1.0"

_DEFAULT_PORTS = {"mysql": 3306, "pgsql": 5432}


# =============================================================================
# Configuration Models
# =============================================================================


def format_validation_errors(error: PydanticValidationError) -> list[str]:
    """Flatten pydantic errors into ``location: message`` strings."""
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "config"
        messages.append(f"{location}: {detail['msg']}")
    return messages


class _SettingsModel(BaseModel):
    """Frozen settings model whose constructor raises ConfigurationError."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except PydanticValidationError as e:
            raise ConfigurationError(
                "Configuration validation failed", errors=format_validation_errors(e)
            ) from e


class DatabaseConfig(_SettingsModel):
    """Connection settings for the call-log database."""

    driver: Literal["mysql", "pgsql", "sqlite"] = Field(
        default="mysql", description="Database backend"
    )
    host: str = Field(default="127.0.0.1", description="Database host (ignored for sqlite)")
    port: int | None = Field(
        default=None, description="Database port; defaults to 3306 (mysql) or 5432 (pgsql)"
    )
    database: str = Field(
        default="tcu_api_logs", description="Database name, or file path for sqlite"
    )
    username: str | None = Field(default=None, description="Database user")
    password: str = Field(default="", description="Database password")
    table_prefix: str = Field(default="tcu_api_", description="Prefix for log table names")
    pool_size: int = Field(default=5, ge=1, description="Connection pool size")
    connect_timeout: int = Field(default=10, ge=1, description="Connect timeout in seconds")

    @field_validator("table_prefix")
    @classmethod
    def validate_table_prefix(cls, v: str) -> str:
        if v and not v.replace("_", "").isalnum():
            raise ValueError("table_prefix may only contain letters, digits and underscores")
        return v

    @property
    def resolved_port(self) -> int | None:
        if self.driver == "sqlite":
            return None
        return self.port if self.port is not None else _DEFAULT_PORTS[self.driver]

    @property
    def resolved_username(self) -> str | None:
        if self.driver == "sqlite":
            return None
        if self.username is not None:
            return self.username
        return "postgres" if self.driver == "pgsql" else "root"

    @property
    def logs_table(self) -> str:
        return f"{self.table_prefix}logs"


class ClientConfig(_SettingsModel):
    """Settings for one client instance.

    Build it directly or through ``config_loader``; either way invalid
    settings raise ConfigurationError listing every problem.
    """

    base_url: str = Field(default=DEFAULT_BASE_URL, description="Provider base URL")
    username: str = Field(description="Account username sent in UsernameToken")
    session_token: str = Field(description="Session token sent in UsernameToken")
    timeout: float = Field(default=DEFAULT_TIMEOUT, description="Per-attempt timeout in seconds")
    retry_attempts: int = Field(
        default=DEFAULT_RETRY_ATTEMPTS, description="Maximum connection attempts per call"
    )
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent header value")
    enable_database_logging: bool = Field(
        default=False, description="Record every call in the log database"
    )
    database: DatabaseConfig | None = Field(default=None, description="Log database settings")

    @field_validator("username", "session_token")
    @classmethod
    def validate_credentials(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"invalid base URL format: {v!r}")
        return v.rstrip("/")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be greater than 0")
        return v

    @field_validator("retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retry_attempts must be at least 1")
        return v

    @model_validator(mode="after")
    def check_database_logging(self) -> Self:
        if self.enable_database_logging and self.database is None:
            raise ValueError("enable_database_logging requires a 'database' section")
        return self

    def __repr__(self) -> str:
        # Keep the session token out of tracebacks and log lines
        return (
            f"ClientConfig(base_url={self.base_url!r}, username={self.username!r}, "
            f"timeout={self.timeout}, retry_attempts={self.retry_attempts}, "
            f"enable_database_logging={self.enable_database_logging})"
        )

    __str__ = __repr__


# =============================================================================
# Transport Models
# =============================================================================


class RawResponse(BaseModel):
    """One fully received HTTP response, before protocol-level handling.

    Header keys are lowercase.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    status_code: int = Field(description="HTTP status code")
    headers: dict[str, str] = Field(default_factory=dict, description="Response headers")
    body: bytes = Field(default=b"", description="Raw response body")
    elapsed_ms: float = Field(default=0.0, description="Time for the final attempt")
    attempts: int = Field(default=1, description="Connection attempts used")

    @property
    def is_success(self) -> bool:
        return self.status_code < 400
