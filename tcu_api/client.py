"""TCUClient - Entry point that wires configuration, transport and resources.

Usage:
    with TCUClient(load_config(Path("tcu.yaml"))) as client:
        tree = client.applicants.check_status("S0123/0001/2018")
        confirmation = client.admissions.confirm("S0123/0001/2018", "Ab12Cd")
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Sequence

import httpx

from tcu_api.call_logger import CallLogger, DatabaseCallLogger, NullCallLogger
from tcu_api.config_loader import config_from_mapping
from tcu_api.executor import Executor, TransportSettings, default_headers
from tcu_api.models import ClientConfig
from tcu_api.pipeline import LoggingFailureHandler, RequestPipeline
from tcu_api.resources.admissions import AdmissionResource
from tcu_api.resources.applicants import ApplicantResource
from tcu_api.resources.dashboard import DashboardResource
from tcu_api.resources.enrollment import EnrollmentResource
from tcu_api.resources.foreign_applicants import ForeignApplicantResource
from tcu_api.resources.graduates import GraduateResource
from tcu_api.resources.non_degree import NonDegreeResource
from tcu_api.resources.postgraduate import PostgraduateResource
from tcu_api.resources.staff import StaffResource
from tcu_api.resources.transfers import TransferResource
from tcu_api.resources.verification import VerificationResource
from tcu_api.response_tree import ObjectNode
from tcu_api.xml_body import ParameterBlock

logger = logging.getLogger(__name__)


class TCUClient:
    """Client for the TCU admissions web service.

    Each client owns its HTTP connection pool and, when database logging is
    enabled, its own SQLAlchemy engine. Instances are safe to share between
    threads.

    Args:
        config: Validated ClientConfig, or a plain mapping validated here.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
        call_logger: Overrides the logger derived from ``config``.
        on_logging_failure: Called with each LoggingFailure that happens on a
            call that otherwise succeeded.

    Raises:
        ConfigurationError: *config* is a mapping that fails validation, or a
            database driver extra is not installed.
    """

    def __init__(
        self,
        config: ClientConfig | Mapping[str, Any],
        transport: httpx.BaseTransport | None = None,
        call_logger: CallLogger | None = None,
        on_logging_failure: LoggingFailureHandler | None = None,
    ) -> None:
        if not isinstance(config, ClientConfig):
            config = config_from_mapping(config)
        self._config = config

        settings = TransportSettings(
            timeout=config.timeout,
            max_attempts=config.retry_attempts,
            headers=default_headers(config.user_agent),
            transport=transport,
        )
        self._executor = Executor(settings)
        self._call_logger = call_logger if call_logger is not None else _build_call_logger(config)
        self._pipeline = RequestPipeline(
            config, self._executor, self._call_logger, on_logging_failure
        )

        self.applicants = ApplicantResource(self._pipeline)
        self.admissions = AdmissionResource(self._pipeline)
        self.dashboard = DashboardResource(self._pipeline)
        self.transfers = TransferResource(self._pipeline)
        self.verification = VerificationResource(self._pipeline)
        self.enrollment = EnrollmentResource(self._pipeline)
        self.graduates = GraduateResource(self._pipeline)
        self.staff = StaffResource(self._pipeline)
        self.non_degree = NonDegreeResource(self._pipeline)
        self.postgraduate = PostgraduateResource(self._pipeline)
        self.foreign_applicants = ForeignApplicantResource(self._pipeline)

        logger.debug("TCU client ready for %s as %s", config.base_url, config.username)

    @property
    def config(self) -> ClientConfig:
        return self._config

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
        """Call an endpoint directly, bypassing resource-level validation."""
        return self._pipeline.execute(endpoint_path, parameter_blocks, http_method, cancel)

    def __enter__(self) -> "TCUClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release the HTTP pool and the call-log engine."""
        try:
            self._executor.close()
        finally:
            self._call_logger.close()


def _build_call_logger(config: ClientConfig) -> CallLogger:
    if config.enable_database_logging and config.database is not None:
        return DatabaseCallLogger(config.database)
    return NullCallLogger()
