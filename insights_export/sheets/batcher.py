"""Contiguous write range batching.

Active mapping entries are grouped into maximal runs of adjacent sheet
columns so each run becomes one range in a single batch update. Columns
between runs are never touched.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from insights_export.domain.models import ColumnMappingEntry
from insights_export.sheets.columns import index_to_column


@dataclass
class RangeGroup:
    """A run of adjacent mapped columns."""

    start_index: int
    end_index: int
    entries: List[ColumnMappingEntry] = field(default_factory=list)

    @property
    def start_column(self) -> str:
        return index_to_column(self.start_index)

    @property
    def end_column(self) -> str:
        return index_to_column(self.end_index)

    @property
    def columns(self) -> List[str]:
        return [entry.sheet_column for entry in self.entries]

    def a1_range(self, tab: str, first_row: int, last_row: Optional[int] = None) -> str:
        """Quoted A1 range for this group, e.g. ``'Data'!F11:H13``.

        Without ``last_row`` the range is open-ended (``'Data'!F2:H``).
        """
        end = f"{self.end_column}{last_row}" if last_row is not None else self.end_column
        return f"{quote_tab(tab)}!{self.start_column}{first_row}:{end}"


def quote_tab(tab: str) -> str:
    """Quote a tab name for A1 notation, escaping embedded quotes."""
    return "'" + tab.replace("'", "''") + "'"


def build_range_groups(entries: Iterable[ColumnMappingEntry]) -> List[RangeGroup]:
    """Group active entries into ascending, non-overlapping contiguous runs.

    Args:
        entries: Mapping entries in any order; inactive ones are ignored

    Returns:
        Range groups ordered by start column

    Example:
        columns {A, B, C, F, H, I, J} -> [A-C], [F], [H-J]
    """
    active = sorted((e for e in entries if e.is_active), key=lambda e: e.column_index)
    groups: List[RangeGroup] = []

    for entry in active:
        index = entry.column_index
        if groups and index == groups[-1].end_index + 1:
            groups[-1].end_index = index
            groups[-1].entries.append(entry)
        else:
            groups.append(RangeGroup(index, index, [entry]))

    return groups
