"""Tests for field validators and ValidationResult.

Tests cover:
- Format predicates for index numbers, codes, contacts and dates
- ValidationResult accumulation and raising
"""

import pytest

from tcu_api.errors import ValidationError
from tcu_api.validation import (
    ValidationResult,
    is_valid_academic_year,
    is_valid_confirmation_code,
    is_valid_country_code,
    is_valid_date,
    is_valid_f4_index,
    is_valid_institution_code,
    is_valid_national_id,
    is_valid_phone,
    is_valid_programme_code,
    is_valid_staff_id,
)


class TestPredicates:
    @pytest.mark.parametrize("value", ["S0123/0001/2018", "P5678/0102/2020"])
    def test_f4_index_valid(self, value: str) -> None:
        assert is_valid_f4_index(value)

    @pytest.mark.parametrize("value", ["S0123456789", "s0123/0001/2018", "S0123/001/2018", ""])
    def test_f4_index_invalid(self, value: str) -> None:
        assert not is_valid_f4_index(value)

    def test_programme_code(self) -> None:
        assert is_valid_programme_code("UD023")
        assert not is_valid_programme_code("UD0234")
        assert not is_valid_programme_code("ud023")

    def test_institution_code(self) -> None:
        assert is_valid_institution_code("UDSM")
        assert not is_valid_institution_code("UD")

    @pytest.mark.parametrize("value", ["+255712345678", "0712345678", "612345678"])
    def test_phone_valid(self, value: str) -> None:
        assert is_valid_phone(value)

    def test_phone_invalid(self) -> None:
        assert not is_valid_phone("0812345678")

    def test_dates(self) -> None:
        assert is_valid_date("2024-02-29")
        assert not is_valid_date("2023-02-29")
        assert not is_valid_date("29/02/2024")

    def test_academic_year_must_be_consecutive(self) -> None:
        assert is_valid_academic_year("2024/2025")
        assert not is_valid_academic_year("2024/2024")

    @pytest.mark.parametrize("value, expected", [("AbC12", True), ("x", True), ("ABCD", False), ("Ab-12", False)])
    def test_confirmation_code(self, value: str, expected: bool) -> None:
        assert is_valid_confirmation_code(value) is expected

    def test_national_id(self) -> None:
        assert is_valid_national_id("19900101-12345-00001-23")
        assert not is_valid_national_id("1990010112345")

    def test_country_and_staff_id(self) -> None:
        assert is_valid_country_code("TZA")
        assert not is_valid_country_code("tz")
        assert is_valid_staff_id("UDSM00123")
        assert not is_valid_staff_id("UD-1")

    @pytest.mark.parametrize(
        "predicate",
        [
            is_valid_f4_index,
            is_valid_programme_code,
            is_valid_phone,
            is_valid_date,
            is_valid_academic_year,
            is_valid_confirmation_code,
        ],
    )
    @pytest.mark.parametrize("value", [None, 712345678, ["UD023"]])
    def test_non_string_is_invalid(self, predicate, value) -> None:
        assert predicate(value) is False


class TestValidationResult:
    def test_require_reports_each_missing_field(self) -> None:
        result = ValidationResult()
        result.require({"a": "x", "b": " ", "c": None}, ("a", "b", "c", "d"), "for record 0")
        assert result.errors == [
            "Missing required field 'b' for record 0",
            "Missing required field 'c' for record 0",
            "Missing required field 'd' for record 0",
        ]

    def test_check_pattern_skips_absent(self) -> None:
        result = ValidationResult()
        result.check_pattern({}, "email", lambda v: False, "email")
        result.check_pattern({"email": ""}, "email", lambda v: False, "email")
        assert result.is_valid

    def test_check_pattern_non_string(self) -> None:
        result = ValidationResult()
        result.check_pattern({"phone": 712345678}, "phone", is_valid_phone, "phone number")
        assert result.errors == ["Invalid phone number: 712345678"]

    def test_check_choice(self) -> None:
        result = ValidationResult()
        result.check_choice({"Gender": "X"}, "Gender", ("M", "F"), "Gender")
        assert result.errors == ["Invalid Gender: X (expected one of M, F)"]

    def test_merge_and_raise(self) -> None:
        first = ValidationResult()
        first.add_error("one")
        second = ValidationResult()
        second.add_error("two")
        first.merge(second)

        with pytest.raises(ValidationError) as exc_info:
            first.raise_for_errors("Batch failed")
        assert exc_info.value.errors == ["one", "two"]
        assert str(exc_info.value) == "Batch failed: one; two"

    def test_raise_is_noop_when_valid(self) -> None:
        ValidationResult().raise_for_errors()
