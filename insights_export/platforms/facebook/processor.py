"""Insights row projection.

Turns raw insight rows into the string cells written to the sheet, one
DataFrame column per mapped sheet column letter.

Example:
    >>> df = (InsightsProcessor(rows)
    ...     .project(mapping)
    ...     .drop_inactive_rows(("F", "G", "H"))
    ...     .get_df())
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd
from loguru import logger

from insights_export.domain.models import ColumnMapping
from insights_export.platforms.facebook.metrics import extract_value, numeric_value


def project_row(row: Dict[str, Any], mapping: ColumnMapping) -> List[Tuple[int, str]]:
    """Return ``(column_index, value)`` for every active mapping entry."""
    return [
        (entry.column_index, extract_value(row, entry.metric_key))
        for entry in mapping.active_entries()
    ]


class InsightsProcessor:
    """Chainable processor from raw insight rows to sheet cells.

    Attributes:
        rows: Raw insight rows still in the result (never mutated)
        df: Projected cells; columns are sheet column letters
    """

    def __init__(self, rows: Iterable[Dict[str, Any]]):
        self.rows: List[Dict[str, Any]] = list(rows)
        self.df = pd.DataFrame()
        self._mapping: Optional[ColumnMapping] = None
        logger.debug(f"InsightsProcessor initialized with {len(self.rows)} rows")

    def get_df(self) -> pd.DataFrame:
        return self.df

    def project(self, mapping: ColumnMapping) -> "InsightsProcessor":
        """Project every row through the mapping.

        Args:
            mapping: Column mapping; inactive entries produce no column

        Returns:
            Self for chaining
        """
        self._mapping = mapping
        columns = [entry.sheet_column for entry in mapping.active_entries()]
        keys = [entry.metric_key for entry in mapping.active_entries()]

        records = [[extract_value(row, key) for key in keys] for row in self.rows]
        self.df = pd.DataFrame(records, columns=columns, dtype=object)

        logger.debug(f"Projected {len(self.df)} rows onto columns {columns}")
        return self

    def drop_inactive_rows(self, stats_columns: Iterable[str]) -> "InsightsProcessor":
        """Drop rows whose mapped statistics are all zero.

        A row survives when at least one statistics column maps to a metric
        whose numeric value is positive. Nothing is dropped when no statistics
        column is mapped.

        Args:
            stats_columns: Sheet column letters holding statistics

        Returns:
            Self for chaining
        """
        if self._mapping is None:
            raise RuntimeError("project() must be called before drop_inactive_rows()")

        stats = set(stats_columns)
        stats_keys = [
            entry.metric_key
            for entry in self._mapping.active_entries()
            if entry.sheet_column in stats
        ]
        if not stats_keys or not self.rows:
            return self

        keep = [
            any(numeric_value(row, key) > 0 for key in stats_keys)
            for row in self.rows
        ]
        dropped = keep.count(False)

        self.rows = [row for row, kept in zip(self.rows, keep) if kept]
        self.df = self.df[keep].reset_index(drop=True)

        if dropped:
            logger.info(f"Dropped {dropped} row(s) with no activity in {sorted(stats)}")
        return self
