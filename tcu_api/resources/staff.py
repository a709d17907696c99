"""Institution staff records (``/staff/*``)."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from tcu_api.resources.base import BaseResource, as_records, ensure, pick, require_text
from tcu_api.response_tree import ObjectNode
from tcu_api.validation import (
    ValidationResult,
    is_valid_email,
    is_valid_institution_code,
    is_valid_phone,
    is_valid_staff_id,
)

POSITIONS = (
    "professor",
    "associate_professor",
    "senior_lecturer",
    "lecturer",
    "assistant_lecturer",
    "tutorial_assistant",
    "research_fellow",
    "dean",
    "hod",
    "registrar",
    "bursar",
    "librarian",
    "coordinator",
    "administrator",
    "technician",
    "support_staff",
)
EMPLOYMENT_STATUSES = ("permanent", "contract", "temporary", "visiting", "emeritus", "retired")
QUALIFICATION_LEVELS = ("certificate", "diploma", "degree", "masters", "doctorate", "postdoc")
STAFF_FIELDS = (
    "staff_id",
    "firstname",
    "middlename",
    "surname",
    "position",
    "institution_code",
    "department",
    "employment_status",
    "qualification_level",
    "email",
    "phone",
)


class StaffResource(BaseResource):

    def register_staff_member(self, staff: Mapping[str, Any]) -> ObjectNode:
        _validate_staff(staff, 0).raise_for_errors()
        return self._post("/staff/register", pick(staff, STAFF_FIELDS))

    def bulk_register_staff(self, staff: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> ObjectNode:
        records = as_records(staff)
        result = ValidationResult()
        for index, record in enumerate(records):
            result.merge(_validate_staff(record, index))
        result.raise_for_errors("Bulk staff validation failed")
        return self._post("/staff/bulkRegister", [pick(r, STAFF_FIELDS) for r in records])

    def get_staff_details(self, staff_id: str) -> ObjectNode:
        ensure(staff_id, is_valid_staff_id, "staff ID")
        return self._post("/staff/getDetails", {"staff_id": staff_id})

    def get_staff_by_institution(self, institution_code: str, department: str | None = None) -> ObjectNode:
        ensure(institution_code, is_valid_institution_code, "institution code")
        parameters = {"institution_code": institution_code}
        if department is not None:
            parameters["department"] = require_text(department, "Department")
        return self._post("/staff/getByInstitution", parameters)

    def update_employment_status(self, staff_id: str, employment_status: str, reason: str) -> ObjectNode:
        result = ValidationResult()
        result.check(is_valid_staff_id(staff_id), f"Invalid staff ID: {staff_id}")
        result.check(
            employment_status in EMPLOYMENT_STATUSES,
            f"Invalid employment status: {employment_status}",
        )
        result.check(bool(reason and reason.strip()), "Reason is required")
        result.raise_for_errors()
        return self._post(
            "/staff/updateEmploymentStatus",
            {"staff_id": staff_id, "employment_status": employment_status, "reason": reason},
        )

    def get_employment_history(self, staff_id: str) -> ObjectNode:
        ensure(staff_id, is_valid_staff_id, "staff ID")
        return self._post("/staff/getEmploymentHistory", {"staff_id": staff_id})


def _validate_staff(record: Mapping[str, Any], index: int) -> ValidationResult:
    context = f"for staff member at index {index}"
    result = ValidationResult()
    result.require(
        record,
        ("staff_id", "firstname", "surname", "position", "institution_code", "department"),
        context,
    )
    result.check_pattern(record, "staff_id", is_valid_staff_id, "staff ID", context)
    result.check_pattern(record, "institution_code", is_valid_institution_code, "institution code", context)
    result.check_pattern(record, "email", is_valid_email, "email", context)
    result.check_pattern(record, "phone", is_valid_phone, "phone number", context)
    result.check_choice(record, "position", POSITIONS, "position", context)
    result.check_choice(record, "employment_status", EMPLOYMENT_STATUSES, "employment status", context)
    result.check_choice(record, "qualification_level", QUALIFICATION_LEVELS, "qualification level", context)
    return result
