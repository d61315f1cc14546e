"""Request payloads accepted by the POST handlers.

Models are lenient about shape (unknown keys are ignored, most fields are
optional) because the front end sends loosely built objects; the handlers
decide what is actually required.
"""
from __future__ import annotations

import math
import re
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from pitchcount.errors import ValidationError

Scalar = Union[str, int, float, None]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)


def _list_or_empty(value: Any) -> Any:
    return value if isinstance(value, list) else []


def _object_or_empty(value: Any) -> Any:
    return {} if value is None else value


def _text_or_empty(value: Any) -> Any:
    return "" if value is None else value


def parse_number(value: Any) -> int | float | None:
    """Numeric value of a count field; None for blanks and non-numbers."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return int(number) if number.is_integer() else number


# --- Pitch submission --------------------------------------------------------


class PitcherEntry(_Payload):
    player: Optional[str] = None
    player_id: Optional[str] = Field(None, alias="playerId")
    pitch_count: Scalar = None
    pitches: Scalar = None
    jersey_number: Scalar = Field(None, alias="jerseyNumber")

    @property
    def name(self) -> str:
        raw = self.player or self.player_id or ""
        return re.sub(r"\s+", " ", str(raw).strip())

    @property
    def count(self) -> int | float | None:
        raw = self.pitch_count if self.pitch_count is not None else self.pitches
        return parse_number(raw)

    @property
    def is_valid(self) -> bool:
        return bool(self.name) and self.count is not None


class TeamRef(_Payload):
    team: Optional[str] = None


class Opponent(_Payload):
    type: Optional[str] = None
    team: Optional[str] = None
    school: Optional[str] = None

    @property
    def is_out_of_state(self) -> bool:
        return self.type == "out-of-state"

    @property
    def school_value(self) -> str:
        """Out-of-state opponents are free text; in-state ones use the tab value."""
        raw = self.school if self.is_out_of_state else self.team
        return str(raw or "").strip()


class Game(_Payload):
    submitting: TeamRef = Field(default_factory=TeamRef)
    opponent: Opponent = Field(default_factory=Opponent)
    pitchers: list[Optional[PitcherEntry]] = Field(default_factory=list)

    @field_validator("submitting", "opponent", mode="before")
    @classmethod
    def _missing_ref_is_empty(cls, value: Any) -> Any:
        return _object_or_empty(value)

    @field_validator("pitchers", mode="before")
    @classmethod
    def _pitchers_as_list(cls, value: Any) -> Any:
        return _list_or_empty(value)

    def valid_pitchers(self) -> list[PitcherEntry]:
        return [pitcher for pitcher in self.pitchers if pitcher is not None and pitcher.is_valid]


class PitchSubmission(_Payload):
    game_date: Optional[str] = Field(None, alias="gameDate")
    coach_role: Optional[str] = Field(None, alias="coachRole")
    games: list[Optional[Game]] = Field(default_factory=list)

    @field_validator("games", mode="before")
    @classmethod
    def _games_as_list(cls, value: Any) -> Any:
        return _list_or_empty(value)

    @property
    def role(self) -> str:
        return (self.coach_role or "VARSITY").strip().upper() or "VARSITY"


# --- Disputes ----------------------------------------------------------------


class DisputeEntry(_Payload):
    name: Optional[str] = None
    recorded_pitch_count: Scalar = Field(None, alias="recordedPitchCount")
    dispute_type: Optional[str] = Field(None, alias="disputeType")
    proposed_pitcher: Optional[str] = Field(None, alias="proposedPitcher")
    proposed_pitch_count: Scalar = Field(None, alias="proposedPitchCount")
    note: Optional[str] = None
    team_school_value: Optional[str] = Field(None, alias="teamSchoolValue")


class MissingPitcher(_Payload):
    name: Optional[str] = None
    pitch_count: Scalar = Field(None, alias="pitchCount")
    note: Optional[str] = None
    team_school_value: Optional[str] = Field(None, alias="teamSchoolValue")


class DisputeSubmission(_Payload):
    vid: str = ""
    school: str = ""
    coach_name: str = Field("", alias="coachName")
    coach_email: str = Field("", alias="coachEmail")
    disputes: list[Optional[DisputeEntry]] = Field(default_factory=list)
    missing_pitchers: list[Optional[MissingPitcher]] = Field(default_factory=list, alias="missingPitchers")

    @field_validator("vid", "school", "coach_name", "coach_email", mode="before")
    @classmethod
    def _null_text_is_blank(cls, value: Any) -> Any:
        return _text_or_empty(value)

    @field_validator("disputes", "missing_pitchers", mode="before")
    @classmethod
    def _entries_as_list(cls, value: Any) -> Any:
        return _list_or_empty(value)

    def recorded_school(self) -> str:
        """School whose counts are disputed: first teamSchoolValue seen."""
        for entry in [*self.disputes, *self.missing_pitchers]:
            if entry is not None and entry.team_school_value:
                return entry.team_school_value
        return ""


# --- Generic log entry -------------------------------------------------------


class LogEntry(_Payload):
    team: Optional[str] = None
    date: Optional[str] = None
    opponent: Optional[str] = None
    level: Optional[str] = None
    type: Optional[str] = None
    payload: Any = None


def parse_payload(model: type[_Payload], data: Any) -> Any:
    """Validate *data* against *model*, raising the handler ValidationError."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        raise ValidationError(f"Invalid request body: {problems}") from exc
