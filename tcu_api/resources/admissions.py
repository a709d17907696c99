"""Admission confirmation endpoints (``/admission/*``)."""

from __future__ import annotations

from tcu_api.resources.base import BaseResource
from tcu_api.response_tree import ObjectNode
from tcu_api.responses import TcuResponse
from tcu_api.validation import (
    ValidationResult,
    is_valid_confirmation_code,
    is_valid_f4_index,
    is_valid_programme_code,
)


class AdmissionResource(BaseResource):
    """Confirm, reject and list admissions for the institution."""

    def confirm(self, f4indexno: str, confirmation_code: str) -> TcuResponse:
        """Confirm a multiple-admission applicant to this institution.

        The applicant receives *confirmation_code* from TCU by email or SMS.
        """
        _validate_confirmation(f4indexno, confirmation_code)
        tree = self._post(
            "/admission/confirm",
            {"f4indexno": f4indexno, "ConfirmationCode": confirmation_code},
        )
        return TcuResponse.from_tree(tree)

    def unconfirm(self, f4indexno: str, confirmation_code: str) -> TcuResponse:
        _validate_confirmation(f4indexno, confirmation_code)
        tree = self._post(
            "/admission/unconfirm",
            {"f4indexno": f4indexno, "ConfirmationCode": confirmation_code},
        )
        return TcuResponse.from_tree(tree)

    def get_admitted(self, programme_code: str) -> ObjectNode:
        """Download applicants admitted to *programme_code* with their contacts."""
        result = ValidationResult()
        result.check(
            is_valid_programme_code(programme_code),
            f"Invalid programme code: {programme_code} (expected format XX000, e.g. DM023)",
        )
        result.raise_for_errors()
        return self._post("/admission/getAdmitted", {"ProgrammeCode": programme_code})

    def get_programmes(self) -> ObjectNode:
        """List programme codes that have admitted applicants."""
        return self._post("/admission/getProgrammes")

    def request_confirmation_code(self, f4indexno: str) -> TcuResponse:
        _validate_index(f4indexno)
        tree = self._post("/admission/requestConfirmationCode", {"f4indexno": f4indexno})
        return TcuResponse.from_tree(tree)

    def reject(self, f4indexno: str, reason: str = "") -> TcuResponse:
        _validate_index(f4indexno)
        tree = self._post("/admission/reject", _with_reason({"f4indexno": f4indexno}, reason))
        return TcuResponse.from_tree(tree)

    def restore_cancelled_admission(self, f4indexno: str, reason: str = "") -> TcuResponse:
        _validate_index(f4indexno)
        tree = self._post(
            "/admission/restoreCancelledAdmission",
            _with_reason({"f4indexno": f4indexno}, reason),
        )
        return TcuResponse.from_tree(tree)


def _validate_index(f4indexno: str) -> None:
    result = ValidationResult()
    result.check(is_valid_f4_index(f4indexno), f"Invalid F4 index number: {f4indexno}")
    result.raise_for_errors()


def _validate_confirmation(f4indexno: str, confirmation_code: str) -> None:
    result = ValidationResult()
    result.check(is_valid_f4_index(f4indexno), f"Invalid F4 index number: {f4indexno}")
    result.check(is_valid_confirmation_code(confirmation_code), "Invalid confirmation code format")
    result.raise_for_errors()


def _with_reason(parameters: dict[str, str], reason: str) -> dict[str, str]:
    if reason:
        parameters["Reason"] = reason
    return parameters
