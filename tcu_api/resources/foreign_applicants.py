"""International applicants and visa tracking (``/foreign/*``)."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from tcu_api.resources.base import BaseResource, as_records, ensure, pick
from tcu_api.response_tree import ObjectNode
from tcu_api.validation import (
    ValidationResult,
    is_valid_country_code,
    is_valid_date,
    is_valid_email,
    is_valid_institution_code,
    is_valid_passport,
    is_valid_phone,
    is_valid_programme_code,
)

VISA_STATUSES = ("pending", "approved", "rejected", "expired", "not_required")
STUDY_LEVELS = ("undergraduate", "postgraduate", "masters", "doctorate", "certificate", "diploma")
FUNDING_SOURCES = (
    "government",
    "private",
    "scholarship",
    "self_sponsored",
    "sponsor",
    "international_organization",
)
APPLICANT_FIELDS = (
    "passport_number",
    "firstname",
    "middlename",
    "surname",
    "nationality",
    "country_of_origin",
    "programme_code",
    "institution_code",
    "study_level",
    "visa_status",
    "funding_source",
    "passport_expiry_date",
    "date_of_birth",
    "email",
    "phone",
)


class ForeignApplicantResource(BaseResource):

    def register_applicant(self, applicant: Mapping[str, Any]) -> ObjectNode:
        _validate_applicant(applicant, 0).raise_for_errors()
        return self._post("/foreign/register", pick(applicant, APPLICANT_FIELDS))

    def bulk_register_applicants(
        self, applicants: Mapping[str, Any] | Sequence[Mapping[str, Any]]
    ) -> ObjectNode:
        records = as_records(applicants)
        result = ValidationResult()
        for index, record in enumerate(records):
            result.merge(_validate_applicant(record, index))
        result.raise_for_errors("Bulk registration validation failed")
        return self._post("/foreign/bulkRegister", [pick(r, APPLICANT_FIELDS) for r in records])

    def get_applicant_details(self, passport_number: str) -> ObjectNode:
        ensure(passport_number, is_valid_passport, "passport number")
        return self._post("/foreign/getDetails", {"passport_number": passport_number})

    def get_visa_status(self, passport_number: str) -> ObjectNode:
        ensure(passport_number, is_valid_passport, "passport number")
        return self._post("/foreign/getVisaStatus", {"passport_number": passport_number})

    def get_applicants_by_programme(self, programme_code: str) -> ObjectNode:
        ensure(programme_code, is_valid_programme_code, "programme code")
        return self._post("/foreign/getByProgramme", {"programme_code": programme_code})

    def get_visa_requirements(self, nationality: str, study_level: str) -> ObjectNode:
        result = ValidationResult()
        result.check(is_valid_country_code(nationality), f"Invalid nationality: {nationality}")
        result.check(study_level in STUDY_LEVELS, f"Invalid study level: {study_level}")
        result.raise_for_errors()
        return self._post(
            "/foreign/getVisaRequirements",
            {"nationality": nationality, "study_level": study_level},
        )


def _validate_applicant(record: Mapping[str, Any], index: int) -> ValidationResult:
    context = f"for applicant at index {index}"
    result = ValidationResult()
    result.require(
        record,
        (
            "passport_number",
            "firstname",
            "surname",
            "nationality",
            "country_of_origin",
            "programme_code",
            "institution_code",
        ),
        context,
    )
    result.check_pattern(record, "passport_number", is_valid_passport, "passport number", context)
    result.check_pattern(record, "nationality", is_valid_country_code, "nationality", context)
    result.check_pattern(record, "country_of_origin", is_valid_country_code, "country of origin", context)
    result.check_pattern(record, "programme_code", is_valid_programme_code, "programme code", context)
    result.check_pattern(record, "institution_code", is_valid_institution_code, "institution code", context)
    result.check_pattern(record, "email", is_valid_email, "email", context)
    result.check_pattern(record, "phone", is_valid_phone, "phone number", context)
    result.check_pattern(record, "passport_expiry_date", is_valid_date, "passport expiry date", context)
    result.check_pattern(record, "date_of_birth", is_valid_date, "date of birth", context)
    result.check_choice(record, "visa_status", VISA_STATUSES, "visa status", context)
    result.check_choice(record, "study_level", STUDY_LEVELS, "study level", context)
    result.check_choice(record, "funding_source", FUNDING_SOURCES, "funding source", context)
    return result
