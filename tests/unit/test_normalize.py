"""
Unit tests for field normalization.

Includes property-based testing with hypothesis for idempotence.
"""

from datetime import date

import pytest
from hypothesis import given
from hypothesis import strategies as st

from sales_index.core.normalize import (
    clean_str,
    lookup_ci,
    pad_identifier,
    parse_amount,
    parse_fixed_date,
    parse_flag,
    sanitize_key,
    sanitize_row,
)


@pytest.mark.unit
class TestParseAmount:
    """Tests for parse_amount"""

    @pytest.mark.parametrize("raw,expected", [
        ("10.50", 10.5),
        ("$1,234.50", 1234.5),
        (" 7 ", 7.0),
        ("-3.25", -3.25),
        ("€99", 99.0),
        (12, 12.0),
        (4.5, 4.5),
    ])
    def test_parses_formatted_amounts(self, raw, expected):
        """Test thousands separators and currency symbols are stripped"""
        assert parse_amount(raw) == expected

    def test_comma_is_a_thousands_separator(self):
        """Test "$25,00" reads as 2500, not 25.00"""
        assert parse_amount("$25,00") == 2500.0

    @pytest.mark.parametrize("raw", [None, "", "   ", "n/a", "1.2.3", "nan", "inf", float("nan"), True])
    def test_garbage_is_zero(self, raw):
        """Test anything that is not a finite number yields 0.0"""
        assert parse_amount(raw) == 0.0

    @given(st.floats(allow_nan=False, allow_infinity=False, min_value=-1e12, max_value=1e12))
    def test_formatting_a_number_parses_back(self, value):
        """Test a plainly formatted number parses back to itself"""
        assert parse_amount(repr(value)) == value


@pytest.mark.unit
class TestParseFixedDate:
    """Tests for parse_fixed_date"""

    def test_two_digit_parts(self):
        assert parse_fixed_date("06/01/2025") == date(2025, 6, 1)

    def test_one_digit_parts(self):
        assert parse_fixed_date("6/1/2025") == date(2025, 6, 1)

    def test_surrounding_whitespace(self):
        assert parse_fixed_date("  12/31/2024 ") == date(2024, 12, 31)

    @pytest.mark.parametrize("raw", [
        "2025-06-01",
        "13/01/2025",
        "02/30/2025",
        "00/10/2025",
        "1/1/25",
        "",
        None,
        "06/01/2025 10:00",
    ])
    def test_invalid_dates_are_none(self, raw):
        """Test other shapes and impossible dates yield None"""
        assert parse_fixed_date(raw) is None

    def test_leap_day(self):
        assert parse_fixed_date("02/29/2024") == date(2024, 2, 29)
        assert parse_fixed_date("02/29/2023") is None


@pytest.mark.unit
class TestPadIdentifier:
    """Tests for pad_identifier"""

    @pytest.mark.parametrize("raw,expected", [
        ("7", "0007"),
        (" 42 ", "0042"),
        ("0007", "0007"),
        ("12345", "12345"),
        ("AB", "AB"),
        ("", ""),
        (None, ""),
        (7, "0007"),
    ])
    def test_padding(self, raw, expected):
        assert pad_identifier(raw) == expected

    @given(st.text(max_size=12))
    def test_idempotent(self, raw):
        """Test padding an already padded identifier changes nothing"""
        once = pad_identifier(raw)
        assert pad_identifier(once) == once


@pytest.mark.unit
class TestKeysAndRows:
    """Tests for sanitize_key, sanitize_row and lookup_ci"""

    def test_sanitize_key_replaces_separators(self):
        assert sanitize_key(" A/B\\C ") == "A-B-C"

    def test_sanitize_key_is_not_injective(self):
        assert sanitize_key("A/B") == sanitize_key("A-B")

    @given(st.text(max_size=40))
    def test_sanitize_key_idempotent(self, raw):
        once = sanitize_key(raw)
        assert "/" not in once
        assert sanitize_key(once) == once

    def test_sanitize_row(self):
        row = {"Item.Code": "K1", "": "dropped", "  ": "dropped", " Qty ": "3"}
        assert sanitize_row(row) == {"Item_Code": "K1", "Qty": "3"}

    def test_lookup_ci_prefers_exact_key(self):
        row = {"invoiceno": "lower", "InvoiceNo": "exact"}
        assert lookup_ci(row, "InvoiceNo") == "exact"

    def test_lookup_ci_ignores_case_and_whitespace(self):
        assert lookup_ci({" INVOICENO ": "X"}, "InvoiceNo") == "X"
        assert lookup_ci({"Other": "X"}, "InvoiceNo") is None
        assert lookup_ci({}, "InvoiceNo") is None

    def test_clean_str(self):
        assert clean_str(None) == ""
        assert clean_str("  x ") == "x"
        assert clean_str(5) == "5"


@pytest.mark.unit
@pytest.mark.parametrize("raw,expected", [
    ("Y", True), ("yes", True), ("TRUE", True), ("t", True), ("1", True),
    ("N", False), ("", False), (None, False), ("0", False),
])
def test_parse_flag(raw, expected):
    """Test credit-hold style flags"""
    assert parse_flag(raw) is expected
