"""Certificate, diploma and short-course students (``/nondegree/*``)."""

from __future__ import annotations

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

PROGRAMME_TYPES = ("certificate", "diploma", "short_course", "professional_course", "continuing_education")
STUDY_MODES = ("full_time", "part_time", "evening", "weekend", "block_release", "distance")
COMPLETION_STATUSES = ("in_progress", "completed", "discontinued", "suspended", "deferred")
MAX_DURATION_MONTHS = 60
STUDENT_FIELDS = (
    "f4indexno",
    "firstname",
    "middlename",
    "surname",
    "programme_code",
    "institution_code",
    "programme_type",
    "study_mode",
    "duration_months",
    "email",
    "phone",
)


class NonDegreeResource(BaseResource):

    def register_student(self, student: Mapping[str, Any]) -> ObjectNode:
        _validate_student(student, 0).raise_for_errors()
        return self._post("/nondegree/register", pick(student, STUDENT_FIELDS))

    def bulk_register_students(
        self, students: Mapping[str, Any] | Sequence[Mapping[str, Any]]
    ) -> ObjectNode:
        records = as_records(students)
        result = ValidationResult()
        for index, record in enumerate(records):
            result.merge(_validate_student(record, index))
        result.raise_for_errors("Bulk registration validation failed")
        return self._post("/nondegree/bulkRegister", [pick(r, STUDENT_FIELDS) for r in records])

    def get_student_details(self, f4indexno: str) -> ObjectNode:
        ensure(f4indexno, is_valid_f4_index, "F4 index number")
        return self._post("/nondegree/getDetails", {"f4indexno": f4indexno})

    def get_students_by_programme(self, programme_code: str) -> ObjectNode:
        ensure(programme_code, is_valid_programme_code, "programme code")
        return self._post("/nondegree/getByProgramme", {"programme_code": programme_code})

    def update_completion_status(self, f4indexno: str, completion_status: str, reason: str) -> ObjectNode:
        result = ValidationResult()
        result.check(is_valid_f4_index(f4indexno), f"Invalid F4 index number: {f4indexno}")
        result.check(
            completion_status in COMPLETION_STATUSES,
            f"Invalid completion status: {completion_status}",
        )
        result.check(bool(reason and reason.strip()), "Reason is required")
        result.raise_for_errors()
        return self._post(
            "/nondegree/updateCompletionStatus",
            {"f4indexno": f4indexno, "completion_status": completion_status, "reason": reason},
        )


def _validate_student(record: Mapping[str, Any], index: int) -> ValidationResult:
    context = f"for student at index {index}"
    result = ValidationResult()
    result.require(
        record,
        ("f4indexno", "firstname", "surname", "programme_code", "institution_code", "programme_type"),
        context,
    )
    result.check_pattern(record, "f4indexno", is_valid_f4_index, "F4 index number", context)
    result.check_pattern(record, "programme_code", is_valid_programme_code, "programme code", context)
    result.check_pattern(record, "institution_code", is_valid_institution_code, "institution code", context)
    result.check_pattern(record, "email", is_valid_email, "email", context)
    result.check_pattern(record, "phone", is_valid_phone, "phone number", context)
    result.check_choice(record, "programme_type", PROGRAMME_TYPES, "programme type", context)
    result.check_choice(record, "study_mode", STUDY_MODES, "study mode", context)

    duration = record.get("duration_months")
    if duration not in (None, ""):
        try:
            valid_duration = 1 <= int(duration) <= MAX_DURATION_MONTHS
        except (TypeError, ValueError):
            valid_duration = False
        result.check(valid_duration, f"Invalid duration in months {context}: {duration}")
    return result
