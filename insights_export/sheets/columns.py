"""Spreadsheet column letter helpers (A = 0, Z = 25, AA = 26)."""

import re

from insights_export.core.exceptions import DataValidationError

_COLUMN_PATTERN = re.compile(r"^[A-Z]+$")


def normalize_column(column: str) -> str:
    """Upper-case and strip a column letter, validating its shape."""
    letters = (column or "").strip().upper()
    if not _COLUMN_PATTERN.match(letters):
        raise DataValidationError(
            "Invalid sheet column",
            field="sheet_column",
            expected="letters A-Z",
            actual=column,
        )
    return letters


def column_to_index(column: str) -> int:
    """
    Convert a column letter to its zero-based index.

    Args:
        column: Column letter(s), e.g. "A", "F", "AA"

    Returns:
        Zero-based column index

    Raises:
        DataValidationError: If the value is not a column letter
    """
    index = 0
    for char in normalize_column(column):
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index - 1


def index_to_column(index: int) -> str:
    """Inverse of column_to_index."""
    if index < 0:
        raise DataValidationError(
            "Column index must be non-negative",
            field="column_index",
            actual=index,
        )
    letters = ""
    n = index + 1
    while n > 0:
        n, remainder = divmod(n - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters
