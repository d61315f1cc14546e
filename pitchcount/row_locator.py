"""Find which team tab holds a key, and where.

Team tabs share one layout: the identifier column (``O`` for VIDs) starts at
the data-start row and runs to the end of the sheet. The first tab, in
listing order, whose column contains the key wins; later tabs are not read.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from pitchcount.google_sheets import SpreadsheetClient, cell_text
from pitchcount.simple_logger import get_logger

logger = get_logger(__name__)

DATA_START_ROW = 4
ADMIN_TABS = ("Coaches_Email", "Disputes")
HIDDEN_TAB_PREFIX = "_"


@dataclass(frozen=True)
class RowMatch:
    tab_title: str
    rows: tuple[int, ...]

    @property
    def first_row(self) -> int:
        return self.rows[0]

    @property
    def last_row(self) -> int:
        return self.rows[-1]

    def span(self, start_column: str, end_column: str) -> str:
        """A1 range covering first..last match, including rows in between."""
        return f"{start_column}{self.first_row}:{end_column}{self.last_row}"


class RowLocator:
    def __init__(
        self,
        client: SpreadsheetClient,
        *,
        data_start_row: int = DATA_START_ROW,
        excluded_titles: Iterable[str] = ADMIN_TABS,
        hidden_prefix: str = HIDDEN_TAB_PREFIX,
    ) -> None:
        self.client = client
        self.data_start_row = data_start_row
        self.excluded_titles = frozenset(excluded_titles)
        self.hidden_prefix = hidden_prefix

    def candidate_tabs(self, titles: Iterable[str]) -> list[str]:
        """Drop admin tabs and tabs hidden by the name prefix, keeping order."""
        return [
            title
            for title in titles
            if title not in self.excluded_titles
            and not (self.hidden_prefix and str(title).startswith(self.hidden_prefix))
        ]

    def matching_rows(self, column_values: Sequence[Sequence], key: str) -> list[int]:
        """Sheet row numbers whose trimmed value equals *key*."""
        return [
            self.data_start_row + index
            for index, row in enumerate(column_values)
            if cell_text(row) == key
        ]

    def locate(
        self,
        spreadsheet_id: str,
        identifier_column: str,
        key: str,
        candidate_tabs: Sequence[str] | None = None,
    ) -> RowMatch | None:
        """Return the first tab holding *key* and every matching row in it.

        ``None`` means no candidate tab contains the key.
        """
        key = str(key).strip()
        if not key:
            return None
        if candidate_tabs is None:
            candidate_tabs = self.client.list_tab_titles(spreadsheet_id)
        tabs = self.candidate_tabs(candidate_tabs)

        column_range = f"{identifier_column}{self.data_start_row}:{identifier_column}"
        for tab_title in tabs:
            values = self.client.read_range(spreadsheet_id, tab_title, column_range)
            rows = self.matching_rows(values, key)
            if rows:
                logger.info(
                    "Located key",
                    extra={"tab": tab_title, "first_row": rows[0], "last_row": rows[-1], "matches": len(rows)},
                )
                return RowMatch(tab_title=tab_title, rows=tuple(rows))

        logger.info("Key not found in any candidate tab", extra={"tabs_scanned": len(tabs)})
        return None
