"""Undergraduate applicant endpoints (``/applicants/*``)."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from tcu_api.resources.base import BaseResource, as_records, pick
from tcu_api.response_tree import ObjectNode
from tcu_api.validation import (
    APPLICANT_CATEGORIES,
    GENDERS,
    ValidationResult,
    is_valid_date,
    is_valid_email,
    is_valid_f4_index,
    is_valid_f6_index,
    is_valid_mobile_number,
    is_valid_national_id,
    is_valid_programme_code,
)

APPLICANT_FIELDS = ("f4indexno", "f6indexno", "Gender", "Category", "Otherf4indexno", "Otherf6indexno")

PROGRAMME_SUBMISSION_FIELDS = (
    "f4indexno",
    "f6indexno",
    "Gender",
    "SelectedProgrammes",
    "Category",
    "MobileNumber",
    "OtherMobileNumber",
    "EmailAddress",
    "AdmissionStatus",
    "ProgrammeAdmitted",
    "Reason",
    "Nationality",
    "Impairment",
    "DateOfBirth",
    "NationalIdNumber",
    "Otherf4indexno",
    "Otherf6indexno",
)


class ApplicantResource(BaseResource):
    """Applicant status checks, registration and programme choices."""

    def check_status(self, f4indexno: str | Sequence[str]) -> ObjectNode:
        """Check whether applicants were previously admitted, discontinued or graduated.

        A list of index numbers is sent as repeated ``f4indexno`` elements in a
        single RequestParameters block.
        """
        numbers = [f4indexno] if isinstance(f4indexno, str) else list(f4indexno)
        result = ValidationResult()
        result.check(bool(numbers), "At least one F4 index number is required")
        for position, number in enumerate(numbers):
            result.check(
                isinstance(number, str) and is_valid_f4_index(number),
                f"Invalid F4 index number at position {position}: {number}",
            )
        result.raise_for_errors()

        value: str | list[str] = numbers[0] if len(numbers) == 1 else numbers
        return self._post("/applicants/checkStatus", {"f4indexno": value})

    def add(self, applicants: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> ObjectNode:
        """Register one or more applicants; each becomes its own RequestParameters block."""
        records = as_records(applicants)
        result = ValidationResult()
        for index, record in enumerate(records):
            result.merge(_validate_applicant(record, index))
        result.raise_for_errors("Applicant validation failed")

        return self._post("/applicants/add", [pick(r, APPLICANT_FIELDS) for r in records])

    def submit_programme_choices(
        self, applicants: Mapping[str, Any] | Sequence[Mapping[str, Any]]
    ) -> ObjectNode:
        """Submit selected applicants with their programme choices and contacts."""
        records = as_records(applicants)
        _validate_programme_submissions(records).raise_for_errors(
            "Programme submission validation failed"
        )
        return self._post(
            "/applicants/submitProgramme",
            [pick(r, PROGRAMME_SUBMISSION_FIELDS) for r in records],
        )

    def resubmit(self, applicants: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> ObjectNode:
        """Correct details sent earlier through :meth:`submit_programme_choices`."""
        records = as_records(applicants)
        _validate_programme_submissions(records).raise_for_errors(
            "Programme resubmission validation failed"
        )
        return self._post(
            "/applicants/resubmit",
            [pick(r, PROGRAMME_SUBMISSION_FIELDS) for r in records],
        )

    def get_status(self, programme_code: str) -> ObjectNode:
        return self._by_programme("/applicants/getStatus", programme_code)

    def get_confirmed(self, programme_code: str) -> ObjectNode:
        return self._by_programme("/applicants/getConfirmed", programme_code)

    def get_verification_status(self, programme_code: str) -> ObjectNode:
        return self._by_programme("/applicants/getApplicantVerificationStatus", programme_code)

    def _by_programme(self, endpoint: str, programme_code: str) -> ObjectNode:
        result = ValidationResult()
        result.check(
            is_valid_programme_code(programme_code),
            f"Invalid programme code: {programme_code} (expected format XX000, e.g. UD023)",
        )
        result.raise_for_errors()
        return self._post(endpoint, {"ProgrammeCode": programme_code})


def _validate_applicant(record: Mapping[str, Any], index: int) -> ValidationResult:
    context = f"for applicant at index {index}"
    result = ValidationResult()
    result.require(record, ("f4indexno", "f6indexno", "Gender", "Category"), context)
    result.check_pattern(record, "f4indexno", is_valid_f4_index, "F4 index number", context)
    result.check_pattern(record, "f6indexno", is_valid_f6_index, "F6 index number", context)
    result.check_choice(record, "Gender", GENDERS, "Gender", context)
    result.check_choice(record, "Category", APPLICANT_CATEGORIES, "Category", context)
    _check_index_list(result, record, "Otherf4indexno", is_valid_f4_index, "other F4 index number", context)
    _check_index_list(result, record, "Otherf6indexno", is_valid_f6_index, "other F6 index number", context)
    return result


def _validate_programme_submissions(records: list[Mapping[str, Any]]) -> ValidationResult:
    result = ValidationResult()
    for index, record in enumerate(records):
        context = f"for applicant at index {index}"
        applicant = _validate_applicant(record, index)
        # SelectedProgrammes is required on top of the registration fields
        applicant.require(record, ("SelectedProgrammes",), context)
        _check_index_list(
            applicant, record, "SelectedProgrammes", is_valid_programme_code, "programme code", context
        )
        applicant.check_pattern(record, "MobileNumber", is_valid_mobile_number, "mobile number", context)
        applicant.check_pattern(
            record, "OtherMobileNumber", is_valid_mobile_number, "other mobile number", context
        )
        applicant.check_pattern(record, "EmailAddress", is_valid_email, "email address", context)
        applicant.check_pattern(record, "DateOfBirth", is_valid_date, "date of birth", context)
        applicant.check_pattern(
            record, "NationalIdNumber", is_valid_national_id, "national ID number", context
        )
        result.merge(applicant)
    return result


def _check_index_list(
    result: ValidationResult,
    record: Mapping[str, Any],
    name: str,
    predicate: Any,
    label: str,
    context: str,
) -> None:
    """Validate each entry of a comma-separated field."""
    value = record.get(name)
    if not value or not isinstance(value, str):
        return
    for item in (part.strip() for part in value.split(",")):
        result.check(predicate(item), f"Invalid {label} {context}: {item}")
