"""Tests for configuration loading and validation.

Tests cover:
- YAML loading with ${ENV_VAR} substitution
- Missing files, invalid YAML, non-mapping documents
- Validation errors collected into ConfigurationError.errors
- ClientConfig and DatabaseConfig defaults and derived values
"""

from pathlib import Path

import pytest

from tcu_api.config_loader import config_from_mapping, load_config
from tcu_api.errors import ConfigurationError
from tcu_api.models import ClientConfig, DatabaseConfig


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "tcu.yaml"
    path.write_text(content, encoding="utf-8")
    return path


# =============================================================================
# load_config tests
# =============================================================================


class TestLoadConfig:
    def test_env_substitution(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TCU_USERNAME", "UDSM")
        monkeypatch.setenv("TCU_SESSION_TOKEN", "secret-token")
        path = _write(
            tmp_path,
            "base_url: https://api.tcu.go.tz/\n"
            "username: ${TCU_USERNAME}\n"
            "session_token: ${TCU_SESSION_TOKEN}\n"
            "timeout: 15\n",
        )

        config = load_config(path)

        assert config.username == "UDSM"
        assert config.session_token == "secret-token"
        assert config.base_url == "https://api.tcu.go.tz"
        assert config.timeout == 15.0

    def test_nested_database_section(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TCU_DB_PASSWORD", "dbpw")
        path = _write(
            tmp_path,
            "username: UDSM\n"
            "session_token: token\n"
            "enable_database_logging: true\n"
            "database:\n"
            "  driver: pgsql\n"
            "  host: db.local\n"
            "  password: ${TCU_DB_PASSWORD}\n",
        )

        config = load_config(path)

        assert config.enable_database_logging is True
        assert config.database.driver == "pgsql"
        assert config.database.password == "dbpw"
        assert config.database.resolved_port == 5432

    def test_unset_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TCU_MISSING_TOKEN", raising=False)
        path = _write(tmp_path, "username: UDSM\nsession_token: ${TCU_MISSING_TOKEN}\n")

        with pytest.raises(ConfigurationError, match="TCU_MISSING_TOKEN"):
            load_config(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Config file not found"):
            load_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "username: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(path)

    def test_non_mapping_document(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "- just\n- a list\n")
        with pytest.raises(ConfigurationError, match="must be a YAML mapping"):
            load_config(path)


# =============================================================================
# config_from_mapping tests
# =============================================================================


class TestConfigFromMapping:
    def test_minimal_mapping_uses_defaults(self) -> None:
        config = config_from_mapping({"username": "UDSM", "session_token": "token"})

        assert config.base_url == "https://api.tcu.go.tz"
        assert config.timeout == 30.0
        assert config.retry_attempts == 3
        assert config.user_agent == "TCU-API-Client/1.0"
        assert config.enable_database_logging is False
        assert config.database is None

    def test_all_errors_reported(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            config_from_mapping({
                "username": "",
                "session_token": "token",
                "base_url": "ftp://example",
                "timeout": 0,
                "retry_attempts": 0,
            })

        errors = exc_info.value.errors
        assert len(errors) == 4
        joined = "; ".join(errors)
        assert "username" in joined
        assert "base_url" in joined
        assert "timeout" in joined
        assert "retry_attempts" in joined

    def test_missing_credentials(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            config_from_mapping({})
        locations = [error.split(":")[0] for error in exc_info.value.errors]
        assert locations == ["username", "session_token"]

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="api_key"):
            config_from_mapping({"username": "UDSM", "session_token": "token", "api_key": "x"})

    def test_database_logging_requires_database(self) -> None:
        with pytest.raises(ConfigurationError, match="requires a 'database' section"):
            config_from_mapping({
                "username": "UDSM",
                "session_token": "token",
                "enable_database_logging": True,
            })

    def test_str_lists_errors(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            config_from_mapping({"username": "UDSM", "session_token": "token", "timeout": -1})
        assert str(exc_info.value).startswith("Configuration validation failed: timeout")


# =============================================================================
# Model tests
# =============================================================================


class TestClientConfig:
    def test_repr_hides_session_token(self) -> None:
        config = ClientConfig(username="UDSM", session_token="super-secret")
        assert "super-secret" not in repr(config)
        assert "super-secret" not in str(config)
        assert "UDSM" in repr(config)

    def test_frozen(self) -> None:
        config = ClientConfig(username="UDSM", session_token="token")
        with pytest.raises(Exception):
            config.timeout = 1.0

    def test_whitespace_credentials_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="must not be empty"):
            ClientConfig(username="   ", session_token="token")

    def test_direct_construction_reports_every_problem(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            ClientConfig(username="", session_token="token", timeout=0, retry_attempts=0)

        locations = [error.split(":")[0] for error in exc_info.value.errors]
        assert locations == ["username", "timeout", "retry_attempts"]

    def test_logging_without_database_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="requires a 'database' section"):
            ClientConfig(username="UDSM", session_token="token", enable_database_logging=True)


class TestDatabaseConfig:
    def test_mysql_defaults(self) -> None:
        config = DatabaseConfig()
        assert config.driver == "mysql"
        assert config.resolved_port == 3306
        assert config.resolved_username == "root"
        assert config.logs_table == "tcu_api_logs"

    def test_sqlite_has_no_port_or_user(self) -> None:
        config = DatabaseConfig(driver="sqlite", database="calls.db", username="ignored")
        assert config.resolved_port is None
        assert config.resolved_username is None

    @pytest.mark.parametrize("prefix", ["bad-prefix_", "drop table;", "a b"])
    def test_invalid_table_prefix(self, prefix: str) -> None:
        with pytest.raises(ConfigurationError, match="table_prefix"):
            DatabaseConfig(table_prefix=prefix)

    def test_empty_prefix_allowed(self) -> None:
        assert DatabaseConfig(table_prefix="").logs_table == "logs"

    def test_unknown_driver_rejected(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            DatabaseConfig(driver="oracle")
        assert exc_info.value.errors[0].startswith("driver:")
