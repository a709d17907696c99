"""Field validators shared by the resource classes.

Validators are plain predicates. Resources collect every failure in a
ValidationResult and raise once, so callers see all problems together.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Iterable, Mapping

from tcu_api.errors import ValidationError

# S0123/0001/2018: school code / candidate number / year
F4_INDEX_PATTERN = re.compile(r"^[A-Z][0-9]{4}/[0-9]{4}/[0-9]{4}$")
F6_INDEX_PATTERN = F4_INDEX_PATTERN
AVN_PATTERN = re.compile(r"^AVN[0-9]{6,10}$")
# Dashboard and admission endpoints use two letters and three digits (UD023, DM038)
PROGRAMME_CODE_PATTERN = re.compile(r"^[A-Z]{2}[0-9]{3}$")
INSTITUTION_CODE_PATTERN = re.compile(r"^[A-Z0-9]{3,10}$")
PHONE_PATTERN = re.compile(r"^(\+255|0)?[67][0-9]{8}$")
MOBILE_NUMBER_PATTERN = re.compile(r"^[0-9]{10}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
DATE_PATTERN = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
NATIONAL_ID_PATTERN = re.compile(r"^[0-9]{8}-[0-9]{5}-[0-9]{5}-[0-9]{2}$")
PASSPORT_PATTERN = re.compile(r"^[A-Z0-9]{6,20}$")
COUNTRY_CODE_PATTERN = re.compile(r"^[A-Z]{2,3}$")
STAFF_ID_PATTERN = re.compile(r"^[A-Z0-9]{6,20}$")
ACADEMIC_YEAR_PATTERN = re.compile(r"^[0-9]{4}/[0-9]{4}$")
CONFIRMATION_CODE_PATTERN = re.compile(r"^[A-Za-z0-9]+$")

GENDERS = ("M", "F")
APPLICANT_CATEGORIES = ("A", "B", "C")


def _matches(pattern: re.Pattern[str], value: Any) -> bool:
    # Callers pass raw user input, which may be None or a number
    return isinstance(value, str) and bool(pattern.match(value))


def is_valid_f4_index(value: Any) -> bool:
    return _matches(F4_INDEX_PATTERN, value)


def is_valid_f6_index(value: Any) -> bool:
    return _matches(F6_INDEX_PATTERN, value)


def is_valid_avn(value: Any) -> bool:
    return _matches(AVN_PATTERN, value)


def is_valid_programme_code(value: Any) -> bool:
    return _matches(PROGRAMME_CODE_PATTERN, value)


def is_valid_institution_code(value: Any) -> bool:
    return _matches(INSTITUTION_CODE_PATTERN, value)


def is_valid_phone(value: Any) -> bool:
    """Tanzanian numbers: +255xxxxxxxxx, 0xxxxxxxxx or xxxxxxxxx."""
    return _matches(PHONE_PATTERN, value)


def is_valid_mobile_number(value: Any) -> bool:
    return _matches(MOBILE_NUMBER_PATTERN, value)


def is_valid_email(value: Any) -> bool:
    return _matches(EMAIL_PATTERN, value)


def is_valid_national_id(value: Any) -> bool:
    return _matches(NATIONAL_ID_PATTERN, value)


def is_valid_passport(value: Any) -> bool:
    return _matches(PASSPORT_PATTERN, value)


def is_valid_country_code(value: Any) -> bool:
    """ISO 3166 alpha-2 or alpha-3 code, upper case."""
    return _matches(COUNTRY_CODE_PATTERN, value)


def is_valid_staff_id(value: Any) -> bool:
    return _matches(STAFF_ID_PATTERN, value)


def is_valid_date(value: Any) -> bool:
    """YYYY-MM-DD that is also a real calendar date."""
    if not _matches(DATE_PATTERN, value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_valid_academic_year(value: Any) -> bool:
    """Consecutive years such as 2024/2025."""
    if not _matches(ACADEMIC_YEAR_PATTERN, value):
        return False
    first, second = value.split("/")
    return int(second) == int(first) + 1


def is_valid_confirmation_code(value: Any) -> bool:
    """Mixed-case alphanumeric of any length except 4."""
    return _matches(CONFIRMATION_CODE_PATTERN, value) and len(value) != 4


class ValidationResult:
    """Accumulates validation errors for one resource call."""

    def __init__(self) -> None:
        self.errors: list[str] = []

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def check(self, condition: bool, message: str) -> None:
        """Record *message* when *condition* is false."""
        if not condition:
            self.errors.append(message)

    def require(self, data: Mapping[str, Any], fields: Iterable[str], context: str = "") -> None:
        """Record an error for each field in *fields* that is missing or empty."""
        suffix = f" {context}" if context else ""
        for name in fields:
            value = data.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                self.errors.append(f"Missing required field '{name}'{suffix}")

    def check_pattern(
        self,
        data: Mapping[str, Any],
        name: str,
        predicate: Any,
        label: str,
        context: str = "",
    ) -> None:
        """Validate an optional field: skipped when absent, checked when present."""
        value = data.get(name)
        if value in (None, ""):
            return
        if not isinstance(value, str) or not predicate(value):
            suffix = f" {context}" if context else ""
            self.errors.append(f"Invalid {label}{suffix}: {value}")

    def check_choice(
        self,
        data: Mapping[str, Any],
        name: str,
        allowed: Iterable[str],
        label: str,
        context: str = "",
    ) -> None:
        """Validate an optional enumerated field against *allowed*."""
        value = data.get(name)
        if value in (None, ""):
            return
        allowed = tuple(allowed)
        if value not in allowed:
            suffix = f" {context}" if context else ""
            self.errors.append(
                f"Invalid {label}{suffix}: {value} (expected one of {', '.join(allowed)})"
            )

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def merge(self, other: "ValidationResult") -> None:
        self.errors.extend(other.errors)

    def raise_for_errors(self, message: str = "Validation failed") -> None:
        if self.errors:
            raise ValidationError(message, list(self.errors))
