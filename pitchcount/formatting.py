from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def format_mdy(yyyy_mm_dd: str) -> str:
    """``"2024-03-10"`` -> ``"3/10/2024"``; ``""`` when the input is not a Y-M-D date."""
    parts = str(yyyy_mm_dd or "").strip().split("-")
    if len(parts) != 3:
        return ""
    try:
        year, month, day = (int(part) for part in parts)
    except ValueError:
        return ""
    if not (year and month and day):
        return ""
    return f"{month}/{day}/{year}"


def format_verification_time(moment: datetime | None = None, tz_name: str = "America/Los_Angeles") -> str:
    """``M/d/yyyy h:mm AM`` in *tz_name*, the format coaches see in the sheet."""
    moment = moment or datetime.now(timezone.utc)
    local = moment.astimezone(ZoneInfo(tz_name))
    hour = local.hour % 12 or 12
    period = "AM" if local.hour < 12 else "PM"
    return f"{local.month}/{local.day}/{local.year} {hour}:{local.minute:02d} {period}"


def build_verified_by(coach_name: str | None, coach_email: str | None) -> str:
    name = (coach_name or "").strip()
    email = (coach_email or "").strip()
    if name and email:
        return f"{name} ({email})"
    return email or name or "Verified"


def display_name(school_value: str) -> str:
    """Tab values use underscores for spaces (``Bishop_Gorman``)."""
    return str(school_value or "").replace("_", " ")
