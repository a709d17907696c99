"""Typed view over the provider's ``ResponseParameters`` blocks.

The pipeline returns a generic tree. Endpoints that answer with the common
``f4indexno`` / ``StatusCode`` / ``StatusDescription`` shape can be read
through TcuResponse, which also maps provider status codes to their meaning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

from tcu_api.errors import FieldNotFound, TypeMismatch
from tcu_api.response_tree import Leaf, ObjectNode


class ResponseCode(IntEnum):
    """Status codes reported inside ResponseParameters (not HTTP statuses)."""

    SUCCESS = 200
    PRIOR_ADMISSION = 201
    CLEAR = 202
    ALREADY_ADMITTED = 203
    SESSION_TOKEN_DOES_NOT_EXIST = 204
    MALFORMED_XML_REQUEST = 205
    EMPTY_FORM_FOUR_INDEX_NUMBER = 206
    OPERATION_FAIL = 207
    DUPLICATE_RECORD = 208
    RE_SUBMITTED_SUCCESSFUL = 209
    NOT_FOUND = 210
    MANDATORY_PARAMETERS = 211
    CONFIRMED_SUCCESSFUL = 212
    CONFIRM_TO_OTHER_HLI = 213
    CONFIRM_TO_YOUR_HLI = 214
    NO_MULTIPLE_ADMISSION = 215
    PROGRAMME_CAPACITY_IS_FULL = 216
    INVALID_CONFIRMATION_CODE = 217
    UNCONFIRMED_SUCCESSFULLY = 218
    OPERATION_FAILED = 219
    NOT_CONFIRMED = 220
    FAILED_TO_UN_CONFIRM = 221
    CONFIRMATION_CODE_SENT_TO_EMAIL = 222
    CONFIRMATION_CODE_SENT_TO_EMAIL_AND_SMS = 223
    NO_ADMISSION_FOUND = 224
    MULTIPLE_ADMISSION = 225
    SINGLE_ADMISSION = 226
    OPERATION_NOT_ALLOWED = 227
    NOT_CANCELLED_ADMISSION_HERE = 228
    NOT_CANCELLED_ADMISSION_ANYWHERE = 229
    ADMISSION_RESTORED = 230
    APPLICANT_CLEARED = 231
    APPLICANT_NOT_CLEARED = 232
    CONFIRMED_ADMISSION_IN_THIS_PROGRAMME = 233
    CONFIRMED_ADMISSION_TO_OTHER_INSTITUTION = 234


RESPONSE_MESSAGES: dict[int, str] = {
    ResponseCode.SUCCESS: "Operation was performed successfully.",
    ResponseCode.PRIOR_ADMISSION: "Applicant record was found in prior admission list.",
    ResponseCode.CLEAR: "Applicant has no prior admission.",
    ResponseCode.ALREADY_ADMITTED: "Applicant is already admitted in current admission cycle.",
    ResponseCode.SESSION_TOKEN_DOES_NOT_EXIST: (
        "The given session token does not exist in system, please contact system administrator."
    ),
    ResponseCode.MALFORMED_XML_REQUEST: "Invalid xml request.",
    ResponseCode.EMPTY_FORM_FOUR_INDEX_NUMBER: "Form four index number cannot be null.",
    ResponseCode.OPERATION_FAIL: "Data was not successfully submitted to TCU.",
    ResponseCode.DUPLICATE_RECORD: "The applicant has already been submitted previously.",
    ResponseCode.RE_SUBMITTED_SUCCESSFUL: "The applicant has already been re-submitted previously.",
    ResponseCode.NOT_FOUND: "No record found",
    ResponseCode.MANDATORY_PARAMETERS: "Empty mandatory parameters",
    ResponseCode.CONFIRMED_SUCCESSFUL: "Applicant successfully confirmed",
    ResponseCode.CONFIRM_TO_OTHER_HLI: "Applicant has already confirmed to other institution",
    ResponseCode.CONFIRM_TO_YOUR_HLI: "Applicant has already confirmed to this institution",
    ResponseCode.NO_MULTIPLE_ADMISSION: "The applicant has no multiple admission",
    ResponseCode.PROGRAMME_CAPACITY_IS_FULL: (
        "The programme capacity is full. No more confirmations are allowed"
    ),
    ResponseCode.INVALID_CONFIRMATION_CODE: "Invalid confirmation code",
    ResponseCode.UNCONFIRMED_SUCCESSFULLY: "Un-confirmed successfully",
    ResponseCode.OPERATION_FAILED: "Failed to un-confirm the admission",
    ResponseCode.NOT_CONFIRMED: "The applicant has not confirmed admission to any institution",
    ResponseCode.FAILED_TO_UN_CONFIRM: (
        "Unable to un-confirm since the applicant has not confirmed to this institution"
    ),
    ResponseCode.CONFIRMATION_CODE_SENT_TO_EMAIL: "Confirmation code has been sent to your email address.",
    ResponseCode.CONFIRMATION_CODE_SENT_TO_EMAIL_AND_SMS: (
        "Confirmation code has been sent to your email address and mobile number."
    ),
    ResponseCode.NO_ADMISSION_FOUND: "You have no admission to this institution",
    ResponseCode.MULTIPLE_ADMISSION: "The applicant has multiple admissions",
    ResponseCode.SINGLE_ADMISSION: "The applicant has single admission",
    ResponseCode.OPERATION_NOT_ALLOWED: "Operation not allowed at the moment",
    ResponseCode.NOT_CANCELLED_ADMISSION_HERE: "Applicant have not cancelled admission in this programme",
    ResponseCode.NOT_CANCELLED_ADMISSION_ANYWHERE: (
        "Applicant have not cancelled admission in any institution"
    ),
    ResponseCode.ADMISSION_RESTORED: "Applicant admission restored successfully",
    ResponseCode.APPLICANT_CLEARED: "Applicant cleared by the Commission",
    ResponseCode.APPLICANT_NOT_CLEARED: "Applicant NOT cleared by the Commission",
    ResponseCode.CONFIRMED_ADMISSION_IN_THIS_PROGRAMME: "Applicant confirmed in this programme",
    ResponseCode.CONFIRMED_ADMISSION_TO_OTHER_INSTITUTION: "Applicant Confirmed to other HLI",
}

SUCCESS_CODES = frozenset({
    ResponseCode.SUCCESS,
    ResponseCode.PRIOR_ADMISSION,
    ResponseCode.CLEAR,
    ResponseCode.RE_SUBMITTED_SUCCESSFUL,
    ResponseCode.CONFIRMED_SUCCESSFUL,
    ResponseCode.UNCONFIRMED_SUCCESSFULLY,
    ResponseCode.CONFIRMATION_CODE_SENT_TO_EMAIL,
    ResponseCode.CONFIRMATION_CODE_SENT_TO_EMAIL_AND_SMS,
    ResponseCode.ADMISSION_RESTORED,
    ResponseCode.APPLICANT_CLEARED,
    ResponseCode.CONFIRMED_ADMISSION_IN_THIS_PROGRAMME,
})

DUPLICATE_CODES = frozenset({
    ResponseCode.ALREADY_ADMITTED,
    ResponseCode.DUPLICATE_RECORD,
    ResponseCode.CONFIRM_TO_OTHER_HLI,
    ResponseCode.CONFIRM_TO_YOUR_HLI,
})

NOT_FOUND_CODES = frozenset({
    ResponseCode.NOT_FOUND,
    ResponseCode.NO_ADMISSION_FOUND,
    ResponseCode.NOT_CANCELLED_ADMISSION_HERE,
    ResponseCode.NOT_CANCELLED_ADMISSION_ANYWHERE,
})

VALIDATION_ERROR_CODES = frozenset({
    ResponseCode.MALFORMED_XML_REQUEST,
    ResponseCode.EMPTY_FORM_FOUR_INDEX_NUMBER,
    ResponseCode.MANDATORY_PARAMETERS,
    ResponseCode.INVALID_CONFIRMATION_CODE,
})

_STANDARD_FIELDS = ("f4indexno", "StatusCode", "StatusDescription")


def response_message(code: int) -> str:
    return RESPONSE_MESSAGES.get(code, "Unknown response code")


@dataclass(frozen=True)
class TcuResponse:
    """One ResponseParameters block in the common status shape."""

    status_code: int
    status_description: str = ""
    f4indexno: str | None = None
    data: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_parameters(cls, block: ObjectNode) -> "TcuResponse":
        """Build from a single ResponseParameters element."""
        raw_code = block.get_text("StatusCode")
        try:
            status_code = int(raw_code.strip())
        except ValueError:
            raise TypeMismatch(f"StatusCode is not numeric: {raw_code!r}") from None

        description = block.get_text("StatusDescription") if "StatusDescription" in block else ""
        f4indexno = block.get_text("f4indexno") if "f4indexno" in block else None
        data = {
            key: node.text
            for key, node in block.children.items()
            if key not in _STANDARD_FIELDS and isinstance(node, Leaf)
        }
        return cls(status_code, description, f4indexno, data)

    @classmethod
    def all_from_tree(cls, tree: ObjectNode) -> list["TcuResponse"]:
        """Read every ResponseParameters block under the root element."""
        root_tag = next(iter(tree.keys()), None)
        if root_tag is None:
            raise FieldNotFound("Response document is empty")
        blocks = tree.get_list(f"{root_tag}.ResponseParameters")
        responses = []
        for block in blocks:
            if not isinstance(block, ObjectNode):
                raise TypeMismatch("ResponseParameters must contain child elements")
            responses.append(cls.from_parameters(block))
        return responses

    @classmethod
    def from_tree(cls, tree: ObjectNode) -> "TcuResponse":
        """Read the first ResponseParameters block under the root element."""
        return cls.all_from_tree(tree)[0]

    @property
    def is_success(self) -> bool:
        return self.status_code in SUCCESS_CODES

    @property
    def is_error(self) -> bool:
        return not self.is_success

    @property
    def is_duplicate(self) -> bool:
        return self.status_code in DUPLICATE_CODES

    @property
    def is_not_found(self) -> bool:
        return self.status_code in NOT_FOUND_CODES

    @property
    def is_validation_error(self) -> bool:
        return self.status_code in VALIDATION_ERROR_CODES

    @property
    def message(self) -> str:
        return response_message(self.status_code)
