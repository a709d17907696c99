"""Student enrollment lifecycle (``/enrollment/*``)."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from tcu_api.resources.base import BaseResource, as_records, ensure, pick
from tcu_api.response_tree import ObjectNode
from tcu_api.validation import (
    ValidationResult,
    is_valid_academic_year,
    is_valid_date,
    is_valid_f4_index,
    is_valid_institution_code,
    is_valid_programme_code,
)

SEMESTERS = ("1", "2", "3")
STUDY_MODES = ("full_time", "part_time", "distance")
ENROLLMENT_STATUSES = ("enrolled", "deferred", "withdrawn", "suspended", "completed", "reinstated")
WITHDRAWAL_TYPES = ("voluntary", "academic", "disciplinary", "financial", "medical")
ENROLLMENT_FIELDS = (
    "f4indexno",
    "programme_code",
    "institution_code",
    "academic_year",
    "semester",
    "study_mode",
    "enrollment_date",
)


class EnrollmentResource(BaseResource):

    def enroll_student(
        self,
        f4indexno: str,
        programme_code: str,
        institution_code: str,
        **details: Any,
    ) -> ObjectNode:
        """Enroll an admitted student.

        Optional *details*: ``academic_year``, ``semester``, ``study_mode``
        and ``enrollment_date``.
        """
        record = {
            "f4indexno": f4indexno,
            "programme_code": programme_code,
            "institution_code": institution_code,
            **details,
        }
        _validate_enrollment(record, 0).raise_for_errors()
        return self._post("/enrollment/enrollStudent", pick(record, ENROLLMENT_FIELDS))

    def bulk_enroll_students(
        self, students: Mapping[str, Any] | Sequence[Mapping[str, Any]]
    ) -> ObjectNode:
        records = as_records(students)
        result = ValidationResult()
        for index, record in enumerate(records):
            result.merge(_validate_enrollment(record, index))
        result.raise_for_errors("Bulk enrollment validation failed")
        return self._post("/enrollment/bulkEnrollStudents", [pick(r, ENROLLMENT_FIELDS) for r in records])

    def get_enrollment_status(self, f4indexno: str) -> ObjectNode:
        ensure(f4indexno, is_valid_f4_index, "F4 index number")
        return self._post("/enrollment/getEnrollmentStatus", {"f4indexno": f4indexno})

    def update_enrollment_status(self, f4indexno: str, status: str, reason: str) -> ObjectNode:
        result = ValidationResult()
        result.check(is_valid_f4_index(f4indexno), f"Invalid F4 index number: {f4indexno}")
        result.check(status in ENROLLMENT_STATUSES, f"Invalid enrollment status: {status}")
        result.check(bool(reason and reason.strip()), "Reason is required")
        result.raise_for_errors()
        return self._post(
            "/enrollment/updateEnrollmentStatus",
            {"f4indexno": f4indexno, "status": status, "reason": reason},
        )

    def get_enrollment_statistics(self, programme_code: str, academic_year: str | None = None) -> ObjectNode:
        ensure(programme_code, is_valid_programme_code, "programme code")
        parameters = {"programme_code": programme_code}
        if academic_year is not None:
            parameters["academic_year"] = ensure(academic_year, is_valid_academic_year, "academic year")
        return self._post("/enrollment/getEnrollmentStatistics", parameters)

    def defer_enrollment(self, f4indexno: str, reason: str, deferred_until: str) -> ObjectNode:
        result = ValidationResult()
        result.check(is_valid_f4_index(f4indexno), f"Invalid F4 index number: {f4indexno}")
        result.check(bool(reason and reason.strip()), "Reason is required")
        result.check(is_valid_date(deferred_until), f"Invalid deferral date: {deferred_until}")
        result.raise_for_errors()
        return self._post(
            "/enrollment/deferEnrollment",
            {"f4indexno": f4indexno, "reason": reason, "deferred_until": deferred_until},
        )

    def withdraw_enrollment(self, f4indexno: str, reason: str, withdrawal_type: str = "voluntary") -> ObjectNode:
        result = ValidationResult()
        result.check(is_valid_f4_index(f4indexno), f"Invalid F4 index number: {f4indexno}")
        result.check(bool(reason and reason.strip()), "Reason is required")
        result.check(withdrawal_type in WITHDRAWAL_TYPES, f"Invalid withdrawal type: {withdrawal_type}")
        result.raise_for_errors()
        return self._post(
            "/enrollment/withdrawEnrollment",
            {"f4indexno": f4indexno, "reason": reason, "withdrawal_type": withdrawal_type},
        )


def _validate_enrollment(record: Mapping[str, Any], index: int) -> ValidationResult:
    context = f"for student at index {index}"
    result = ValidationResult()
    result.require(record, ("f4indexno", "programme_code", "institution_code"), context)
    result.check_pattern(record, "f4indexno", is_valid_f4_index, "F4 index number", context)
    result.check_pattern(record, "programme_code", is_valid_programme_code, "programme code", context)
    result.check_pattern(record, "institution_code", is_valid_institution_code, "institution code", context)
    result.check_pattern(record, "academic_year", is_valid_academic_year, "academic year", context)
    result.check_pattern(record, "enrollment_date", is_valid_date, "enrollment date", context)
    result.check_choice(record, "semester", SEMESTERS, "semester", context)
    result.check_choice(record, "study_mode", STUDY_MODES, "study mode", context)
    return result
