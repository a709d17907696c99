"""Postgraduate students and supervision (``/postgraduate/*``)."""

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
    is_valid_staff_id,
)

STUDY_LEVELS = ("masters", "doctorate", "postdoc", "phd", "mphil", "msc", "ma", "mba")
RESEARCH_LEVELS = ("doctorate", "phd")
STUDY_MODES = ("full_time", "part_time", "distance", "sandwich", "research")
FUNDING_SOURCES = ("government", "private", "scholarship", "self_sponsored", "employer", "research_grant")
SUPERVISOR_ROLES = ("primary", "secondary", "co_supervisor", "external")
STUDENT_FIELDS = (
    "f4indexno",
    "firstname",
    "middlename",
    "surname",
    "programme_code",
    "institution_code",
    "study_level",
    "study_mode",
    "funding_source",
    "research_area",
    "supervisor_staff_id",
    "email",
    "phone",
)


class PostgraduateResource(BaseResource):

    def register_student(self, student: Mapping[str, Any]) -> ObjectNode:
        _validate_student(student, 0).raise_for_errors()
        return self._post("/postgraduate/register", pick(student, STUDENT_FIELDS))

    def bulk_register_students(
        self, students: Mapping[str, Any] | Sequence[Mapping[str, Any]]
    ) -> ObjectNode:
        records = as_records(students)
        result = ValidationResult()
        for index, record in enumerate(records):
            result.merge(_validate_student(record, index))
        result.raise_for_errors("Bulk registration validation failed")
        return self._post("/postgraduate/bulkRegister", [pick(r, STUDENT_FIELDS) for r in records])

    def get_student_details(self, f4indexno: str) -> ObjectNode:
        ensure(f4indexno, is_valid_f4_index, "F4 index number")
        return self._post("/postgraduate/getDetails", {"f4indexno": f4indexno})

    def assign_supervisor(self, f4indexno: str, supervisor_staff_id: str, role: str = "primary") -> ObjectNode:
        result = ValidationResult()
        result.check(is_valid_f4_index(f4indexno), f"Invalid F4 index number: {f4indexno}")
        result.check(is_valid_staff_id(supervisor_staff_id), f"Invalid supervisor staff ID: {supervisor_staff_id}")
        result.check(role in SUPERVISOR_ROLES, f"Invalid supervisor role: {role}")
        result.raise_for_errors()
        return self._post(
            "/postgraduate/assignSupervisor",
            {"f4indexno": f4indexno, "supervisor_staff_id": supervisor_staff_id, "supervisor_role": role},
        )

    def get_supervisor_assignments(self, supervisor_staff_id: str) -> ObjectNode:
        ensure(supervisor_staff_id, is_valid_staff_id, "supervisor staff ID")
        return self._post(
            "/postgraduate/getSupervisorAssignments",
            {"supervisor_staff_id": supervisor_staff_id},
        )


def _validate_student(record: Mapping[str, Any], index: int) -> ValidationResult:
    context = f"for student at index {index}"
    result = ValidationResult()
    result.require(
        record,
        ("f4indexno", "firstname", "surname", "programme_code", "institution_code", "study_level"),
        context,
    )
    result.check_pattern(record, "f4indexno", is_valid_f4_index, "F4 index number", context)
    result.check_pattern(record, "programme_code", is_valid_programme_code, "programme code", context)
    result.check_pattern(record, "institution_code", is_valid_institution_code, "institution code", context)
    result.check_pattern(record, "email", is_valid_email, "email", context)
    result.check_pattern(record, "phone", is_valid_phone, "phone number", context)
    result.check_pattern(
        record, "supervisor_staff_id", is_valid_staff_id, "supervisor staff ID", context
    )
    result.check_choice(record, "study_level", STUDY_LEVELS, "study level", context)
    result.check_choice(record, "study_mode", STUDY_MODES, "study mode", context)
    result.check_choice(record, "funding_source", FUNDING_SOURCES, "funding source", context)
    if record.get("study_level") in RESEARCH_LEVELS and not record.get("research_area"):
        result.add_error(f"Research area is required for doctorate programmes {context}")
    return result
