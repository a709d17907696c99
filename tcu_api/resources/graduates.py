"""Graduate registration and credential checks (``/graduates/*``)."""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Sequence

from tcu_api.resources.base import BaseResource, as_records, ensure, pick
from tcu_api.response_tree import ObjectNode
from tcu_api.validation import (
    ValidationResult,
    is_valid_email,
    is_valid_f4_index,
    is_valid_institution_code,
    is_valid_phone,
    is_valid_programme_code,
)

EARLIEST_GRADUATION_YEAR = 1990
DEGREE_CLASSIFICATIONS = (
    "first_class",
    "upper_second",
    "lower_second",
    "third_class",
    "pass",
    "distinction",
    "credit",
)
CERTIFICATE_TYPES = ("completion", "degree", "transcript", "provisional")
GRADUATE_FIELDS = (
    "f4indexno",
    "firstname",
    "middlename",
    "surname",
    "programme_code",
    "institution_code",
    "graduation_year",
    "degree_classification",
    "gpa",
    "email",
    "phone",
)


class GraduateResource(BaseResource):

    def register_graduate(self, graduate: Mapping[str, Any]) -> ObjectNode:
        _validate_graduate(graduate, 0).raise_for_errors()
        return self._post("/graduates/register", pick(graduate, GRADUATE_FIELDS))

    def bulk_register_graduates(
        self, graduates: Mapping[str, Any] | Sequence[Mapping[str, Any]]
    ) -> ObjectNode:
        records = as_records(graduates)
        result = ValidationResult()
        for index, record in enumerate(records):
            result.merge(_validate_graduate(record, index))
        result.raise_for_errors("Bulk graduate validation failed")
        return self._post("/graduates/bulkRegister", [pick(r, GRADUATE_FIELDS) for r in records])

    def get_graduate_details(self, f4indexno: str) -> ObjectNode:
        ensure(f4indexno, is_valid_f4_index, "F4 index number")
        return self._post("/graduates/getDetails", {"f4indexno": f4indexno})

    def get_graduates_by_programme(self, programme_code: str, graduation_year: int | None = None) -> ObjectNode:
        ensure(programme_code, is_valid_programme_code, "programme code")
        parameters: dict[str, Any] = {"programme_code": programme_code}
        if graduation_year is not None:
            parameters["graduation_year"] = graduation_year
        return self._post("/graduates/getByProgramme", parameters)

    def generate_graduate_certificate(self, f4indexno: str, certificate_type: str = "completion") -> ObjectNode:
        ensure(f4indexno, is_valid_f4_index, "F4 index number")
        ensure(certificate_type, CERTIFICATE_TYPES.__contains__, "certificate type")
        return self._post(
            "/graduates/generateCertificate",
            {"f4indexno": f4indexno, "certificate_type": certificate_type},
        )


def _validate_graduate(record: Mapping[str, Any], index: int) -> ValidationResult:
    context = f"for graduate at index {index}"
    result = ValidationResult()
    result.require(
        record,
        ("f4indexno", "firstname", "surname", "programme_code", "institution_code", "graduation_year"),
        context,
    )
    result.check_pattern(record, "f4indexno", is_valid_f4_index, "F4 index number", context)
    result.check_pattern(record, "programme_code", is_valid_programme_code, "programme code", context)
    result.check_pattern(record, "institution_code", is_valid_institution_code, "institution code", context)
    result.check_pattern(record, "email", is_valid_email, "email", context)
    result.check_pattern(record, "phone", is_valid_phone, "phone number", context)
    result.check_choice(
        record, "degree_classification", DEGREE_CLASSIFICATIONS, "degree classification", context
    )

    year = record.get("graduation_year")
    if year not in (None, ""):
        latest = date.today().year + 1
        try:
            valid_year = EARLIEST_GRADUATION_YEAR <= int(year) <= latest
        except (TypeError, ValueError):
            valid_year = False
        result.check(valid_year, f"Invalid graduation year {context}: {year}")
    return result
