"""
Input validation utilities for the lookup surface and the store backend.

Provides reusable validation functions for item codes, salesperson codes,
tiers and opportunity counts coming from callers, plus SQL identifier and
file path checks used when wiring the pipeline together.
"""

import re

from sales_index.core.normalize import clean_str, pad_identifier
from sales_index.core.tiers import Tier, parse_tier

# Upper bound on opportunities returned by one lookup
MAX_OPPORTUNITY_COUNT = 25


class ValidationError(ValueError):
    """Raised when input validation fails."""
    pass


def validate_item_code(item_code: str, field_name: str = "item_code") -> str:
    """
    Validate an item code.

    Args:
        item_code: The item code to validate
        field_name: Name of the field (for error messages)

    Returns:
        The item code, trimmed

    Raises:
        ValidationError: If the code is missing or too long

    Examples:
        >>> validate_item_code(" ABC-100 ")
        'ABC-100'
    """
    if not isinstance(item_code, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    item_code = item_code.strip()
    if not item_code:
        raise ValidationError(f"{field_name} is required")

    if "\x00" in item_code:
        raise ValidationError(f"{field_name} contains null bytes")

    if len(item_code) > 255:
        raise ValidationError(f"{field_name} exceeds maximum length of 255 characters")

    return item_code


def validate_salesperson_no(salesperson_no: str | None, field_name: str = "salesperson_no") -> str:
    """
    Normalize a salesperson code to its zero-padded form.

    An empty code is allowed and means "all salespeople".

    Examples:
        >>> validate_salesperson_no("7")
        '0007'
        >>> validate_salesperson_no(None)
        ''
    """
    text = clean_str(salesperson_no)
    if len(text) > 64:
        raise ValidationError(f"{field_name} exceeds maximum length of 64 characters")
    return pad_identifier(text, 4)


def validate_tier(tier: str | None, field_name: str = "tier") -> Tier | None:
    """
    Validate an optional tier letter.

    Raises:
        ValidationError: If the tier is given but is not one of A-D
    """
    try:
        return parse_tier(tier)
    except ValueError as e:
        raise ValidationError(f"{field_name} must be one of A, B, C, D; got {tier!r}") from e


def validate_opportunity_count(count: int, field_name: str = "opportunity_count") -> int:
    """
    Validate how many opportunities to return.

    Values above the maximum are clamped rather than rejected.

    Raises:
        ValidationError: If the count is not a positive integer
    """
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValidationError(f"{field_name} must be an integer, got {type(count).__name__}")

    if count <= 0:
        raise ValidationError(f"{field_name} must be a positive integer, got {count}")

    return min(count, MAX_OPPORTUNITY_COUNT)


def validate_sql_identifier(identifier: str, field_name: str = "identifier") -> str:
    """
    Validate an SQL identifier (table name).

    Use this for dynamic table names to prevent SQL injection.

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> validate_sql_identifier("documents")
        'documents'
        >>> validate_sql_identifier("documents; DROP TABLE x;")  # doctest: +SKIP
        ValidationError: identifier contains invalid characters
    """
    if not identifier or not isinstance(identifier, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    identifier = identifier.strip()

    # Alphanumeric and underscores only, must start with letter or underscore
    if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', identifier):
        raise ValidationError(
            f"{field_name} contains invalid characters. "
            "SQL identifiers must start with a letter or underscore and contain only "
            "alphanumeric characters and underscores."
        )

    # Leaves room for the "_collection_path_idx" suffix within PostgreSQL's 63
    if len(identifier) > 40:
        raise ValidationError(f"{field_name} exceeds maximum length of 40 characters")

    return identifier


def validate_file_path(file_path: str, field_name: str = "file_path") -> str:
    """
    Validate an input file path.

    Returns:
        The path, trimmed

    Raises:
        ValidationError: If validation fails
    """
    if not file_path or not isinstance(file_path, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    file_path = file_path.strip()

    if not file_path:
        raise ValidationError(f"{field_name} cannot be empty or whitespace-only")

    if "\x00" in file_path:
        raise ValidationError(f"{field_name} contains null bytes")

    if len(file_path) > 4096:  # Linux PATH_MAX
        raise ValidationError(f"{field_name} exceeds maximum length of 4096 characters")

    return file_path
