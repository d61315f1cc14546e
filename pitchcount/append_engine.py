"""Write paths for tabs without a row-reservation primitive.

Team tabs: the insertion point is the first blank cell of the anchor column
at or below the data-start row, and the block is written there with a plain
overwrite. Two requests that scan the same tab at the same time can pick the
same row; there is no lock.

Log tabs: Sheets' own append is used, since the tab has a single column group
and only the header row needs protecting.
"""
from __future__ import annotations

from typing import Any, Sequence

from pitchcount.errors import CapacityError
from pitchcount.google_sheets import SpreadsheetClient, WriteMode, cell_text, offset_column
from pitchcount.row_locator import DATA_START_ROW
from pitchcount.simple_logger import get_logger

logger = get_logger(__name__)

MAX_SCAN_ROWS = 5000


class AppendEngine:
    def __init__(
        self,
        client: SpreadsheetClient,
        *,
        data_start_row: int = DATA_START_ROW,
        max_scan_rows: int = MAX_SCAN_ROWS,
    ) -> None:
        if max_scan_rows <= 0:
            raise ValueError("max_scan_rows must be a positive integer.")
        self.client = client
        self.data_start_row = data_start_row
        self.max_scan_rows = max_scan_rows

    def find_insertion_row(self, spreadsheet_id: str, tab_title: str, anchor_column: str) -> int:
        """First row at or below the data-start row whose anchor cell is blank."""
        start = self.data_start_row
        end = start + self.max_scan_rows - 1
        values = self.client.read_range(
            spreadsheet_id, tab_title, f"{anchor_column}{start}:{anchor_column}{end}"
        )
        for offset in range(self.max_scan_rows):
            row = values[offset] if offset < len(values) else None
            if not cell_text(row):
                return start + offset
        raise CapacityError(tab_title, start, self.max_scan_rows)

    def append_rows(
        self,
        spreadsheet_id: str,
        tab_title: str,
        rows: Sequence[Sequence[Any]],
        *,
        anchor_column: str = "I",
        header_row: Sequence[Any] | None = None,
    ) -> int:
        """Write *rows* at the first free row of *tab_title*; return that row.

        The tab is created when missing, with *header_row* on row 1.
        """
        if not rows:
            raise ValueError("rows must not be empty.")
        width = max(len(row) for row in rows)
        end_column = offset_column(anchor_column, width - 1)

        created = self.client.ensure_tab(spreadsheet_id, tab_title)
        if created and header_row:
            header_end = offset_column(anchor_column, len(header_row) - 1)
            self.client.write_range(
                spreadsheet_id,
                tab_title,
                f"{anchor_column}1:{header_end}1",
                [list(header_row)],
                value_input_option="RAW",
            )

        start_row = self.find_insertion_row(spreadsheet_id, tab_title, anchor_column)
        end_row = start_row + len(rows) - 1
        self.client.write_range(
            spreadsheet_id,
            tab_title,
            f"{anchor_column}{start_row}:{end_column}{end_row}",
            [list(row) for row in rows],
            WriteMode.OVERWRITE,
        )
        logger.info(
            "Wrote rows",
            extra={"tab": tab_title, "start_row": start_row, "end_row": end_row, "created_tab": created},
        )
        return start_row

    def ensure_header(self, spreadsheet_id: str, tab_title: str, header_row: Sequence[Any]) -> bool:
        """Write *header_row* on row 1 only if A1 is blank. Returns True if written."""
        existing = self.client.read_range(spreadsheet_id, tab_title, "A1:A1")
        if cell_text(existing[0] if existing else None):
            return False
        end_column = offset_column("A", len(header_row) - 1)
        self.client.write_range(
            spreadsheet_id,
            tab_title,
            f"A1:{end_column}1",
            [list(header_row)],
            value_input_option="RAW",
        )
        logger.info("Wrote header row", extra={"tab": tab_title})
        return True

    def append_log_rows(
        self,
        spreadsheet_id: str,
        tab_title: str,
        rows: Sequence[Sequence[Any]],
        *,
        header_row: Sequence[Any] | None = None,
    ) -> dict:
        """Append *rows* after the last row of a log tab, creating tab and header if needed."""
        if not rows:
            raise ValueError("rows must not be empty.")
        self.client.ensure_tab(spreadsheet_id, tab_title)
        if header_row:
            self.ensure_header(spreadsheet_id, tab_title, header_row)
        response = self.client.write_range(
            spreadsheet_id,
            tab_title,
            "A1",
            [list(row) for row in rows],
            WriteMode.APPEND,
        )
        logger.info("Appended log rows", extra={"tab": tab_title, "count": len(rows)})
        return response
