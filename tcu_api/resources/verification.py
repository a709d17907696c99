"""Document and certificate verification (``/verification/*``)."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from tcu_api.resources.base import BaseResource, as_records, ensure, pick, require_text
from tcu_api.response_tree import ObjectNode
from tcu_api.validation import ValidationResult, is_valid_f4_index, is_valid_programme_code

DOCUMENT_TYPES = (
    "certificate",
    "transcript",
    "birth_certificate",
    "national_id",
    "passport",
    "medical_certificate",
    "recommendation_letter",
)
CERTIFICATE_TYPES = ("csee", "acsee", "diploma", "degree", "foreign")
VERIFICATION_STATUSES = ("pending", "verified", "rejected", "requires_review")
DOCUMENT_FIELDS = ("document_type", "document_number", "document_data", "issue_date", "issuing_authority")


class VerificationResource(BaseResource):

    def verify_student_documents(
        self, f4indexno: str, documents: Mapping[str, Any] | Sequence[Mapping[str, Any]]
    ) -> ObjectNode:
        """Submit one or more documents for verification.

        Each document becomes its own RequestParameters block carrying the
        applicant's ``f4indexno``.
        """
        ensure(f4indexno, is_valid_f4_index, "F4 index number")
        records = as_records(documents)
        _validate_documents(records).raise_for_errors()
        return self._post(
            "/verification/verifyStudentDocuments",
            [{"f4indexno": f4indexno, **pick(d, DOCUMENT_FIELDS)} for d in records],
        )

    def get_verification_status(self, f4indexno: str) -> ObjectNode:
        ensure(f4indexno, is_valid_f4_index, "F4 index number")
        return self._post("/verification/getVerificationStatus", {"f4indexno": f4indexno})

    def validate_certificate(self, certificate_number: str, certificate_type: str) -> ObjectNode:
        require_text(certificate_number, "Certificate number")
        ensure(certificate_type, CERTIFICATE_TYPES.__contains__, "certificate type")
        return self._post(
            "/verification/validateCertificate",
            {"certificate_number": certificate_number, "certificate_type": certificate_type},
        )

    def get_document_verification_history(
        self, f4indexno: str, document_type: str | None = None
    ) -> ObjectNode:
        ensure(f4indexno, is_valid_f4_index, "F4 index number")
        parameters = {"f4indexno": f4indexno}
        if document_type is not None:
            parameters["document_type"] = ensure(document_type, DOCUMENT_TYPES.__contains__, "document type")
        return self._post("/verification/getDocumentVerificationHistory", parameters)

    def get_verification_statistics(self, programme_code: str) -> ObjectNode:
        ensure(programme_code, is_valid_programme_code, "programme code")
        return self._post("/verification/getVerificationStatistics", {"ProgrammeCode": programme_code})

    def update_verification_status(self, f4indexno: str, status: str, reason: str) -> ObjectNode:
        result = ValidationResult()
        result.check(is_valid_f4_index(f4indexno), f"Invalid F4 index number: {f4indexno}")
        result.check(status in VERIFICATION_STATUSES, f"Invalid verification status: {status}")
        result.check(bool(reason and reason.strip()), "Reason is required")
        result.raise_for_errors()
        return self._post(
            "/verification/updateVerificationStatus",
            {"f4indexno": f4indexno, "status": status, "reason": reason},
        )


def _validate_documents(documents: list[Mapping[str, Any]]) -> ValidationResult:
    result = ValidationResult()
    for index, document in enumerate(documents):
        context = f"for document at index {index}"
        result.require(document, ("document_type", "document_number"), context)
        result.check_choice(document, "document_type", DOCUMENT_TYPES, "document type", context)
    return result
