"""Daily application statistics for the TCU dashboard (``/dashboard/*``)."""

from __future__ import annotations

from tcu_api.resources.base import BaseResource
from tcu_api.response_tree import ObjectNode
from tcu_api.responses import TcuResponse
from tcu_api.validation import ValidationResult, is_valid_academic_year, is_valid_programme_code


class DashboardResource(BaseResource):

    def populate(self, programme_code: str, males: int, females: int) -> TcuResponse:
        """Report the current number of male and female applicants for a programme."""
        result = ValidationResult()
        result.check(
            is_valid_programme_code(programme_code),
            f"Invalid programme code: {programme_code} (expected format XX000, e.g. DM038)",
        )
        result.check(males >= 0, "Male count must be non-negative")
        result.check(females >= 0, "Female count must be non-negative")
        result.raise_for_errors()

        tree = self._post(
            "/dashboard/populate",
            {"ProgrammeCode": programme_code, "Males": males, "Females": females},
        )
        return TcuResponse.from_tree(tree)

    def get_stats(self, programme_code: str | None = None) -> ObjectNode:
        parameters = {}
        if programme_code is not None:
            _check_programme(programme_code)
            parameters["ProgrammeCode"] = programme_code
        return self._post("/dashboard/getStats", parameters)

    def get_admission_summary(self, academic_year: str, programme_code: str | None = None) -> ObjectNode:
        result = ValidationResult()
        result.check(
            is_valid_academic_year(academic_year),
            f"Invalid academic year: {academic_year} (expected YYYY/YYYY)",
        )
        if programme_code is not None:
            result.check(is_valid_programme_code(programme_code), f"Invalid programme code: {programme_code}")
        result.raise_for_errors()

        parameters = {"AcademicYear": academic_year}
        if programme_code is not None:
            parameters["ProgrammeCode"] = programme_code
        return self._post("/dashboard/getAdmissionSummary", parameters)


def _check_programme(programme_code: str) -> None:
    result = ValidationResult()
    result.check(is_valid_programme_code(programme_code), f"Invalid programme code: {programme_code}")
    result.raise_for_errors()
