# Google API Client Libraries for Google Sheets
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from pitchcount.credentials import AccessToken, get_access_token
from pitchcount.errors import MetadataError, PitchCountError, ReadError, WriteError
from pitchcount.settings import Settings
from pitchcount.simple_logger import get_logger

logger = get_logger(__name__)


# --- Helpers -----------------------------------------------------------------


def _quote_sheet_title(title: str) -> str:
    """Escape a sheet title for A1 notation."""
    escaped = str(title).replace("'", "''")
    return f"'{escaped}'"


def _a1_range(title: str, cell_range: str) -> str:
    """Build A1 notation with a properly escaped sheet title."""
    prefix = _quote_sheet_title(title)
    return f"{prefix}!{cell_range}" if cell_range else prefix


def _column_number_to_letter(number: int) -> str:
    """Convert a 1-based column number into its A1 notation letter."""
    if number < 1:
        raise ValueError("Column number must be at least 1.")
    letters = []
    current = number
    while current > 0:
        current, remainder = divmod(current - 1, 26)
        letters.append(chr(ord("A") + remainder))
    return "".join(reversed(letters))


def _column_letter_to_number(letters: str) -> int:
    """Convert an A1 column letter (``"A"``, ``"O"``, ``"AB"``) to its 1-based number."""
    cleaned = letters.strip().upper()
    if not cleaned or not cleaned.isalpha():
        raise ValueError(f"Invalid column letter: {letters!r}")
    number = 0
    for char in cleaned:
        number = number * 26 + (ord(char) - ord("A") + 1)
    return number


def offset_column(letter: str, offset: int) -> str:
    """Return the column *offset* places to the right of *letter*."""
    return _column_number_to_letter(_column_letter_to_number(letter) + offset)


def cell_text(row: Sequence[Any] | None, index: int = 0) -> str:
    """Trimmed string value of ``row[index]``; short or missing rows read as ``""``."""
    if not row or index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def _error_details(exc: HttpError) -> str:
    content = getattr(exc, "content", b"") or b""
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return str(content)


def _error_status(exc: HttpError) -> int | None:
    resp = getattr(exc, "resp", None)
    return getattr(resp, "status", None)


# --- Types -------------------------------------------------------------------


class WriteMode(enum.Enum):
    """How ``write_range`` places values."""

    OVERWRITE = "overwrite"  # values.update on exactly the given range
    APPEND = "append"  # values.append after the last row of the table


@dataclass(frozen=True)
class CellUpdate:
    """One range of a ``batch_update_cells`` call."""

    tab_title: str
    cell_range: str
    values: list[list[Any]]

    @property
    def a1(self) -> str:
        return _a1_range(self.tab_title, self.cell_range)


# --- Client ------------------------------------------------------------------


class SpreadsheetClient:
    """Thin wrapper over the Sheets v4 resource used as a row store.

    Every call issues exactly one request. ``num_retries`` is passed through to
    ``execute`` so googleapiclient can retry 5xx/429 responses with backoff;
    it defaults to 0 (fail on the first upstream error).
    """

    def __init__(self, service: Any, *, num_retries: int = 0) -> None:
        self.service = service
        self.num_retries = num_retries

    def _execute(self, request: Any, error_cls: type[PitchCountError], action: str) -> dict:
        try:
            return request.execute(num_retries=self.num_retries) or {}
        except HttpError as exc:
            details = _error_details(exc)
            logger.error(
                f"Google API responded with an error while {action}.",
                extra={"status": _error_status(exc)},
            )
            raise error_cls(
                f"Sheets API error while {action} ({_error_status(exc)})",
                details=details,
            ) from exc

    def list_tab_titles(self, spreadsheet_id: str) -> list[str]:
        """Titles of every tab in listing order."""
        request = self.service.spreadsheets().get(
            spreadsheetId=spreadsheet_id,
            fields="sheets.properties.title",
        )
        metadata = self._execute(request, MetadataError, "reading spreadsheet metadata")
        titles = []
        for sheet in metadata.get("sheets", []):
            title = (sheet.get("properties") or {}).get("title")
            if title:
                titles.append(title)
        return titles

    def read_range(self, spreadsheet_id: str, tab_title: str, cell_range: str) -> list[list[Any]]:
        """Values of a range, rows outer. Trailing empty cells and rows are absent."""
        request = self.service.spreadsheets().values().get(
            spreadsheetId=spreadsheet_id,
            range=_a1_range(tab_title, cell_range),
            majorDimension="ROWS",
        )
        response = self._execute(request, ReadError, f"reading {tab_title}!{cell_range}")
        values = response.get("values", [])
        return values if isinstance(values, list) else []

    def write_range(
        self,
        spreadsheet_id: str,
        tab_title: str,
        cell_range: str,
        values: list[list[Any]],
        mode: WriteMode = WriteMode.OVERWRITE,
        *,
        value_input_option: str = "USER_ENTERED",
    ) -> dict:
        """Write *values* at *cell_range*.

        ``USER_ENTERED`` lets Sheets parse dates and numbers the way a person
        typing them would; pass ``"RAW"`` to store strings literally.
        """
        a1 = _a1_range(tab_title, cell_range)
        body = {"values": values}
        values_resource = self.service.spreadsheets().values()
        if mode is WriteMode.APPEND:
            request = values_resource.append(
                spreadsheetId=spreadsheet_id,
                range=a1,
                valueInputOption=value_input_option,
                insertDataOption="INSERT_ROWS",
                body=body,
            )
        else:
            request = values_resource.update(
                spreadsheetId=spreadsheet_id,
                range=a1,
                valueInputOption=value_input_option,
                body=body,
            )
        return self._execute(request, WriteError, f"writing {tab_title}!{cell_range}")

    def batch_update_cells(
        self,
        spreadsheet_id: str,
        updates: Sequence[CellUpdate],
        *,
        value_input_option: str = "USER_ENTERED",
    ) -> dict:
        """Write several disjoint ranges in one request.

        Not transactional on the server: after a failure some ranges may
        already be written.
        """
        if not updates:
            return {}
        request = self.service.spreadsheets().values().batchUpdate(
            spreadsheetId=spreadsheet_id,
            body={
                "valueInputOption": value_input_option,
                "data": [
                    {"range": update.a1, "majorDimension": "ROWS", "values": update.values}
                    for update in updates
                ],
            },
        )
        return self._execute(request, WriteError, "batch updating cells")

    def create_tab(self, spreadsheet_id: str, title: str) -> bool:
        """Add a tab. Returns False when a tab with that title already exists."""
        request = self.service.spreadsheets().batchUpdate(
            spreadsheetId=spreadsheet_id,
            body={"requests": [{"addSheet": {"properties": {"title": title}}}]},
        )
        try:
            request.execute(num_retries=self.num_retries)
        except HttpError as exc:
            details = _error_details(exc)
            if _error_status(exc) == 400 and "already exists" in details:
                logger.info("Tab already exists; nothing to create.", extra={"tab": title})
                return False
            raise WriteError(
                f"addSheet failed for '{title}' ({_error_status(exc)})", details=details
            ) from exc
        logger.info("Created tab", extra={"tab": title, "spreadsheet_id": spreadsheet_id})
        return True

    def ensure_tab(self, spreadsheet_id: str, title: str) -> bool:
        """Create *title* unless it is already listed. Returns True if created."""
        if title in self.list_tab_titles(spreadsheet_id):
            return False
        return self.create_tab(spreadsheet_id, title)


# --- Google Sheets API Wiring ------------------------------------------------


def get_google_sheets_service(token: AccessToken):
    """Build a Sheets v4 service that authenticates with an already-minted token."""
    credentials = Credentials(token=token.value)
    return build("sheets", "v4", credentials=credentials, cache_discovery=False)


def open_spreadsheet_client(
    settings: Settings,
    *,
    token_source: Callable[[Settings], AccessToken] = get_access_token,
) -> SpreadsheetClient:
    """Mint a token for the configured service account and wrap a Sheets service."""
    token = token_source(settings)
    service = get_google_sheets_service(token)
    return SpreadsheetClient(service, num_retries=settings.sheets_num_retries)


__all__ = [
    "CellUpdate",
    "SpreadsheetClient",
    "WriteMode",
    "cell_text",
    "get_google_sheets_service",
    "offset_column",
    "open_spreadsheet_client",
]
