"""Shared test configuration and fixtures.

Provides an in-memory stand-in for the Sheets v4 discovery resource so the
client, locator, engine and handlers can run against real cell grids instead
of hand-wired mocks.
"""

import json
import re
from types import SimpleNamespace

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from googleapiclient.errors import HttpError

from pitchcount.google_sheets import SpreadsheetClient
from pitchcount.settings import Settings


# ---------------------------------------------------------------------------
# A1 parsing for the fake
# ---------------------------------------------------------------------------

def _column_number(letters):
    number = 0
    for char in letters:
        number = number * 26 + (ord(char) - ord("A") + 1)
    return number


def split_a1(a1):
    """``"'O''Brien'!I4:O"`` -> ``("O'Brien", "I4:O")``."""
    assert a1.startswith("'"), f"range is not quoted: {a1}"
    title = []
    index = 1
    while True:
        char = a1[index]
        if char == "'":
            if index + 1 < len(a1) and a1[index + 1] == "'":
                title.append("'")
                index += 2
                continue
            index += 1
            break
        title.append(char)
        index += 1
    rest = a1[index:]
    return "".join(title), rest[1:] if rest.startswith("!") else ""


def parse_bounds(cells):
    """``"I4:O"`` -> ((col, row), (col, row-or-None))."""
    parts = cells.split(":")
    refs = []
    for part in parts:
        match = re.fullmatch(r"([A-Z]+)(\d*)", part)
        assert match, f"unsupported cell reference: {part}"
        refs.append((_column_number(match.group(1)), int(match.group(2)) if match.group(2) else None))
    start = refs[0]
    end = refs[1] if len(refs) > 1 else start
    return start, end


def http_error(status, message):
    content = json.dumps({"error": {"code": status, "message": message}}).encode("utf-8")
    return HttpError(SimpleNamespace(status=status, reason=message), content)


# ---------------------------------------------------------------------------
# Fake Sheets service
# ---------------------------------------------------------------------------

class _Call:
    def __init__(self, fn):
        self._fn = fn

    def execute(self, num_retries=0):
        return self._fn()


class FakeSheetsService:
    """Grid-backed fake of ``build("sheets", "v4")``.

    ``tabs`` maps title -> {(row, col): value}; insertion order is listing
    order. Every request is recorded in ``calls`` as (method, kwargs).
    ``failures`` maps a method name to an HttpError raised on execute.
    """

    def __init__(self, tabs=None):
        self.tabs = {title: {} for title in (tabs or [])}
        self.calls = []
        self.failures = {}

    # -- grid helpers used by tests ------------------------------------------

    def put(self, title, cell, rows):
        """Write *rows* with the top-left at *cell* (e.g. ``"I4"``)."""
        (col, row), _ = parse_bounds(cell)
        grid = self.tabs.setdefault(title, {})
        for r_offset, values in enumerate(rows):
            for c_offset, value in enumerate(values):
                grid[(row + r_offset, col + c_offset)] = value

    def cell(self, title, ref):
        (col, row), _ = parse_bounds(ref)
        return self.tabs[title].get((row, col), "")

    def row(self, title, row, first="I", last="O"):
        start, end = _column_number(first), _column_number(last)
        return [self.tabs[title].get((row, col), "") for col in range(start, end + 1)]

    def calls_to(self, method):
        return [kwargs for name, kwargs in self.calls if name == method]

    # -- resource surface ----------------------------------------------------

    def spreadsheets(self):
        return _Spreadsheets(self)

    def _request(self, method, kwargs, fn):
        self.calls.append((method, kwargs))

        def run():
            if method in self.failures:
                raise self.failures[method]
            return fn()

        return _Call(run)

    def _read(self, a1):
        title, cells = split_a1(a1)
        grid = self.tabs[title]
        (c1, r1), (c2, r2) = parse_bounds(cells)
        last_row = r2 if r2 is not None else max([r for r, _ in grid] or [0])
        rows = []
        for row in range(r1, last_row + 1):
            values = [grid.get((row, col), "") for col in range(c1, c2 + 1)]
            while values and values[-1] == "":
                values.pop()
            rows.append(values)
        while rows and not rows[-1]:
            rows.pop()
        return {"range": a1, "values": rows} if rows else {"range": a1}

    def _write(self, a1, values):
        title, cells = split_a1(a1)
        (col, row), _ = parse_bounds(cells)
        grid = self.tabs[title]
        for r_offset, row_values in enumerate(values):
            for c_offset, value in enumerate(row_values):
                grid[(row + r_offset, col + c_offset)] = value
        return {"updatedRange": a1, "updatedRows": len(values)}

    def _append(self, a1, values):
        title, _ = split_a1(a1)
        grid = self.tabs[title]
        next_row = max([r for (r, _c), value in grid.items() if value != ""] or [0]) + 1
        for r_offset, row_values in enumerate(values):
            for c_offset, value in enumerate(row_values):
                grid[(next_row + r_offset, 1 + c_offset)] = value
        return {"updates": {"updatedRows": len(values)}}

    def _add_sheet(self, body):
        for request in body["requests"]:
            title = request["addSheet"]["properties"]["title"]
            if title in self.tabs:
                raise http_error(
                    400, f'Invalid requests[0].addSheet: A sheet with the name "{title}" already exists.'
                )
            self.tabs[title] = {}
        return {"replies": [{}]}


class _Spreadsheets:
    def __init__(self, service):
        self._service = service

    def get(self, **kwargs):
        service = self._service
        return service._request(
            "spreadsheets.get",
            kwargs,
            lambda: {"sheets": [{"properties": {"title": title}} for title in service.tabs]},
        )

    def batchUpdate(self, **kwargs):
        return self._service._request(
            "spreadsheets.batchUpdate", kwargs, lambda: self._service._add_sheet(kwargs["body"])
        )

    def values(self):
        return _Values(self._service)


class _Values:
    def __init__(self, service):
        self._service = service

    def get(self, **kwargs):
        return self._service._request("values.get", kwargs, lambda: self._service._read(kwargs["range"]))

    def update(self, **kwargs):
        return self._service._request(
            "values.update", kwargs, lambda: self._service._write(kwargs["range"], kwargs["body"]["values"])
        )

    def append(self, **kwargs):
        return self._service._request(
            "values.append", kwargs, lambda: self._service._append(kwargs["range"], kwargs["body"]["values"])
        )

    def batchUpdate(self, **kwargs):
        def run():
            for item in kwargs["body"]["data"]:
                self._service._write(item["range"], item["values"])
            return {"totalUpdatedRows": len(kwargs["body"]["data"])}

        return self._service._request("values.batchUpdate", kwargs, run)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_service():
    return FakeSheetsService()


@pytest.fixture
def client(fake_service):
    return SpreadsheetClient(fake_service)


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key):
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


@pytest.fixture
def make_settings(private_key_pem):
    """Settings with every value set; override any field by name."""

    def factory(**overrides):
        values = {
            "main_sheet_id": "main-sheet",
            "disputes_sheet_id": "disputes-sheet",
            "coach_email_sheet_id": "coach-sheet",
            "coach_email_sheet_name": "Home",
            "main_tab": "Submissions",
            "disputes_tab": "Disputes",
            "roster_file_id": "roster-file",
            "google_client_email": "svc@project.iam.gserviceaccount.com",
            "google_private_key": private_key_pem,
            "email_relay_url": None,
            "email_relay_key": None,
            "site_base_url": None,
            "token_cache_enabled": False,
            "sheets_num_retries": 0,
            "log_level": "WARNING",
        }
        values.update(overrides)
        return Settings(**values)

    return factory
