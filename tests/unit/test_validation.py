"""
Unit tests for input validation utilities.
"""

import pytest

from sales_index.core.tiers import Tier
from sales_index.utils.validation import (
    MAX_OPPORTUNITY_COUNT,
    ValidationError,
    validate_file_path,
    validate_item_code,
    validate_opportunity_count,
    validate_salesperson_no,
    validate_sql_identifier,
    validate_tier,
)


@pytest.mark.unit
class TestValidationUtilities:
    """Tests for lookup input validation"""

    def test_validate_item_code_valid(self):
        assert validate_item_code(" K233 ") == "K233"

    @pytest.mark.parametrize("value", ["", "   ", None, 42, "a\x00b", "x" * 256])
    def test_validate_item_code_invalid(self, value):
        with pytest.raises(ValidationError):
            validate_item_code(value)

    def test_validate_salesperson_no(self):
        assert validate_salesperson_no("7") == "0007"
        assert validate_salesperson_no(" 0007 ") == "0007"
        assert validate_salesperson_no(None) == ""
        assert validate_salesperson_no("HOUSE") == "HOUSE"

        with pytest.raises(ValidationError):
            validate_salesperson_no("9" * 65)

    def test_validate_tier(self):
        assert validate_tier("a") is Tier.A
        assert validate_tier(None) is None

        with pytest.raises(ValidationError) as exc_info:
            validate_tier("Z")
        assert "A, B, C, D" in str(exc_info.value)

    def test_validate_opportunity_count(self):
        assert validate_opportunity_count(4) == 4
        assert validate_opportunity_count(1000) == MAX_OPPORTUNITY_COUNT

        for bad in (0, -1, "3", True, 2.5):
            with pytest.raises(ValidationError):
                validate_opportunity_count(bad)


@pytest.mark.unit
class TestIdentifierValidation:
    """Tests for SQL identifier and file path checks"""

    def test_sql_identifier_valid(self):
        assert validate_sql_identifier("documents") == "documents"
        assert validate_sql_identifier("_docs_2") == "_docs_2"

    @pytest.mark.parametrize("value", ["", "1docs", "docs; DROP TABLE x;", "my-docs", "d" * 41])
    def test_sql_identifier_invalid(self, value):
        with pytest.raises(ValidationError):
            validate_sql_identifier(value)

    def test_file_path(self):
        assert validate_file_path(" /exports/Inv_HH.csv ") == "/exports/Inv_HH.csv"

        for bad in ("", "   ", "a\x00b", "x" * 4097):
            with pytest.raises(ValidationError):
                validate_file_path(bad)
