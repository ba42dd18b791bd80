"""Sheet writer for append and overwrite runs.

Every run issues exactly one ``values.batchUpdate`` carrying one range per
contiguous column group. Overwrite first clears the mapped groups from row 2
down; columns outside the mapping and the header row are never touched.
"""

from typing import Any, Dict, List, Sequence

import pandas as pd
from googleapiclient.errors import HttpError
from loguru import logger

from insights_export.core.constants import FIRST_DATA_ROW, HEADER_ROW, WriteMode
from insights_export.core.exceptions import SheetWriteError
from insights_export.sheets.batcher import RangeGroup, quote_tab
from insights_export.sheets.columns import index_to_column

VALUE_INPUT_OPTION = "USER_ENTERED"


class SheetWriter:
    """Writes projected rows into a spreadsheet tab.

    Attributes:
        service: Google Sheets API v4 resource
    """

    def __init__(self, service: Any):
        self.service = service

    def _values(self):
        return self.service.spreadsheets().values()

    def read_column_values(self, spreadsheet_id: str, tab: str, end_column: str = "A") -> List[List[str]]:
        """Read ``'<tab>'!A:<end_column>`` and return its rows."""
        range_name = f"{quote_tab(tab)}!A:{end_column}"
        try:
            result = self._values().get(spreadsheetId=spreadsheet_id, range=range_name).execute()
        except HttpError as e:
            raise SheetWriteError(
                f"Failed to read {range_name}: {e}",
                spreadsheet_id=spreadsheet_id,
                ranges=[range_name],
            ) from e
        return (result or {}).get("values") or []

    def find_last_row(self, spreadsheet_id: str, tab: str, end_column: str) -> int:
        """Number of rows in use, at least the header row."""
        return len(self.read_column_values(spreadsheet_id, tab, end_column)) or HEADER_ROW

    def clear_groups(self, spreadsheet_id: str, tab: str, groups: Sequence[RangeGroup]) -> None:
        """Clear each group from the first data row down."""
        ranges = [group.a1_range(tab, FIRST_DATA_ROW) for group in groups]
        try:
            self._values().batchClear(
                spreadsheetId=spreadsheet_id,
                body={"ranges": ranges},
            ).execute()
        except HttpError as e:
            raise SheetWriteError(
                f"Failed to clear {len(ranges)} range(s): {e}",
                spreadsheet_id=spreadsheet_id,
                ranges=ranges,
            ) from e
        logger.debug(f"Cleared ranges {ranges}")

    def batch_update(self, spreadsheet_id: str, data: List[Dict[str, Any]]) -> None:
        """Send one ``values.batchUpdate`` with the given range/value pairs."""
        if not data:
            return
        try:
            self._values().batchUpdate(
                spreadsheetId=spreadsheet_id,
                body={"valueInputOption": VALUE_INPUT_OPTION, "data": data},
            ).execute()
        except HttpError as e:
            raise SheetWriteError(
                f"Batch update failed: {e}",
                spreadsheet_id=spreadsheet_id,
                ranges=[entry["range"] for entry in data],
            ) from e

    def write(
        self,
        groups: Sequence[RangeGroup],
        frame: pd.DataFrame,
        mode: WriteMode,
        spreadsheet_id: str,
        tab: str,
    ) -> int:
        """Write a projected frame using the given mode.

        Args:
            groups: Contiguous column groups, ascending
            frame: Projected cells, one column per mapped sheet column
            mode: Append after the last used row, or overwrite from row 2
            spreadsheet_id: Destination spreadsheet
            tab: Destination tab name

        Returns:
            Number of rows written

        Raises:
            SheetWriteError: If any Sheets API call fails
        """
        if not groups:
            return 0

        if mode is WriteMode.APPEND:
            end_column = index_to_column(max(group.end_index for group in groups))
            start_row = self.find_last_row(spreadsheet_id, tab, end_column) + 1
        else:
            self.clear_groups(spreadsheet_id, tab, groups)
            start_row = FIRST_DATA_ROW

        row_count = len(frame)
        if row_count == 0:
            logger.info("No rows to write")
            return 0

        end_row = start_row + row_count - 1
        data = [
            {
                "range": group.a1_range(tab, start_row, end_row),
                "values": frame[group.columns].values.tolist(),
            }
            for group in groups
        ]
        self.batch_update(spreadsheet_id, data)

        logger.success(
            f"Wrote {row_count} row(s) to {quote_tab(tab)} rows {start_row}-{end_row} "
            f"({mode.value}, {len(groups)} range(s))"
        )
        return row_count
