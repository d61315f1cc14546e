"""Coach contacts keyed by school value.

The directory tab lists one school per row from row 2, columns E..J:
school value, varsity coach name, varsity email, phone, JV coach name,
JV email.
"""
from __future__ import annotations

from dataclasses import dataclass

from pitchcount.google_sheets import SpreadsheetClient, cell_text

DIRECTORY_RANGE = "E2:J"


@dataclass(frozen=True)
class CoachContact:
    name: str = ""
    email: str = ""
    phone: str = ""


@dataclass(frozen=True)
class SchoolCoaches:
    varsity: CoachContact
    jv: CoachContact


class CoachDirectory:
    def __init__(self, entries: dict[str, SchoolCoaches]) -> None:
        self._entries = entries

    @staticmethod
    def _key(school: str | None) -> str:
        return str(school or "").strip().lower()

    @classmethod
    def from_rows(cls, rows: list[list]) -> "CoachDirectory":
        entries: dict[str, SchoolCoaches] = {}
        for row in rows:
            school = cell_text(row, 0)
            if not school:
                continue
            phone = cell_text(row, 3)
            entries[cls._key(school)] = SchoolCoaches(
                varsity=CoachContact(cell_text(row, 1), cell_text(row, 2), phone),
                jv=CoachContact(cell_text(row, 4), cell_text(row, 5), phone),
            )
        return cls(entries)

    @classmethod
    def load(cls, client: SpreadsheetClient, spreadsheet_id: str, tab_title: str) -> "CoachDirectory":
        return cls.from_rows(client.read_range(spreadsheet_id, tab_title, DIRECTORY_RANGE))

    def __len__(self) -> int:
        return len(self._entries)

    def pick_opponent_coach(self, school: str, coach_role: str = "VARSITY") -> CoachContact | None:
        """Coach to email for *school*: the role's coach first, else the other one."""
        record = self._entries.get(self._key(school))
        if record is None:
            return None
        if str(coach_role or "VARSITY").upper() == "JV":
            preference = (record.jv, record.varsity)
        else:
            preference = (record.varsity, record.jv)
        for contact in preference:
            if contact.email:
                return contact
        return None

    def contact_for(self, school: str) -> CoachContact:
        """Varsity contact for *school*; empty when the school is unknown."""
        record = self._entries.get(self._key(school))
        return record.varsity if record else CoachContact()
