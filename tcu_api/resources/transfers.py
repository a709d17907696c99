"""Internal and inter-institutional transfers."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from tcu_api.resources.base import BaseResource, as_records, pick
from tcu_api.response_tree import ObjectNode
from tcu_api.validation import (
    ValidationResult,
    is_valid_f4_index,
    is_valid_institution_code,
    is_valid_programme_code,
)

INTERNAL_TRANSFER_FIELDS = ("f4indexno", "CurrentProgrammeCode", "PreviousProgrammeCode", "Reason")
INTER_INSTITUTIONAL_TRANSFER_FIELDS = (
    "f4indexno",
    "CurrentInstitutionCode",
    "PreviousInstitutionCode",
    "CurrentProgrammeCode",
    "PreviousProgrammeCode",
    "Reason",
)


class TransferResource(BaseResource):
    """Transfers of admitted applicants between programmes or institutions.

    Each transfer record becomes one RequestParameters block. Records use
    ``PreviousProgrammeCode`` / ``CurrentProgrammeCode`` for the source and
    target programme, and the matching ``*InstitutionCode`` pair for
    inter-institutional moves.
    """

    def submit_internal_transfers(
        self, transfers: Mapping[str, Any] | Sequence[Mapping[str, Any]]
    ) -> ObjectNode:
        records = as_records(transfers)
        result = ValidationResult()
        for index, record in enumerate(records):
            result.merge(_validate_transfer(record, index, inter_institutional=False))
        result.raise_for_errors("Transfer validation failed")
        return self._post(
            "/admission/submitInternalTransfers",
            [pick(r, INTERNAL_TRANSFER_FIELDS) for r in records],
        )

    def submit_inter_institutional_transfers(
        self, transfers: Mapping[str, Any] | Sequence[Mapping[str, Any]]
    ) -> ObjectNode:
        records = as_records(transfers)
        result = ValidationResult()
        for index, record in enumerate(records):
            result.merge(_validate_transfer(record, index, inter_institutional=True))
        result.raise_for_errors("Transfer validation failed")
        return self._post(
            "/admission/submitInterInstitutionalTransfers",
            [pick(r, INTER_INSTITUTIONAL_TRANSFER_FIELDS) for r in records],
        )

    def get_internal_transfer_status(self, programme_code: str) -> ObjectNode:
        _check_programme(programme_code)
        return self._post("/transfers/getInternalStatus", {"ProgrammeCode": programme_code})

    def get_inter_institutional_transfer_status(self, programme_code: str) -> ObjectNode:
        _check_programme(programme_code)
        return self._post("/transfers/getInterInstitutionalStatus", {"ProgrammeCode": programme_code})

    def cancel_transfer(self, transfer_id: str, reason: str) -> ObjectNode:
        result = ValidationResult()
        result.check(bool(transfer_id and transfer_id.strip()), "Transfer ID is required")
        result.check(bool(reason and reason.strip()), "Cancellation reason is required")
        result.raise_for_errors()
        return self._post("/transfers/cancel", {"TransferId": transfer_id, "Reason": reason})

    def get_transfer_history(self, f4indexno: str) -> ObjectNode:
        result = ValidationResult()
        result.check(is_valid_f4_index(f4indexno), f"Invalid F4 index number: {f4indexno}")
        result.raise_for_errors()
        return self._post("/transfers/history", {"f4indexno": f4indexno})


def _check_programme(programme_code: str) -> None:
    result = ValidationResult()
    result.check(is_valid_programme_code(programme_code), f"Invalid programme code: {programme_code}")
    result.raise_for_errors()


def _validate_transfer(
    record: Mapping[str, Any], index: int, inter_institutional: bool
) -> ValidationResult:
    context = f"for transfer at index {index}"
    result = ValidationResult()
    required = ["f4indexno", "PreviousProgrammeCode", "CurrentProgrammeCode", "Reason"]
    if inter_institutional:
        required += ["PreviousInstitutionCode", "CurrentInstitutionCode"]
    result.require(record, required, context)

    result.check_pattern(record, "f4indexno", is_valid_f4_index, "F4 index number", context)
    for name in ("PreviousProgrammeCode", "CurrentProgrammeCode"):
        result.check_pattern(record, name, is_valid_programme_code, "programme code", context)

    if inter_institutional:
        for name in ("PreviousInstitutionCode", "CurrentInstitutionCode"):
            result.check_pattern(record, name, is_valid_institution_code, "institution code", context)
        previous = record.get("PreviousInstitutionCode")
        if previous and previous == record.get("CurrentInstitutionCode"):
            result.add_error(f"Source and target institutions cannot be the same {context}")
    else:
        previous = record.get("PreviousProgrammeCode")
        if previous and previous == record.get("CurrentProgrammeCode"):
            result.add_error(f"Source and target programmes cannot be the same {context}")
    return result
