"""
handlers.py — the HTTP endpoints, one function each

Every handler takes a framework-neutral ``Request`` and returns a ``Response``
with a JSON body. Collaborators are keyword arguments so a host (or a test)
can swap them:

- settings        immutable Settings; defaults to the process settings
- client_factory  Settings -> SpreadsheetClient; defaults to minting a token
- relay           EmailRelay; defaults to one built from settings, if configured
- clock           () -> aware datetime used for timestamps
- new_vid         () -> str, one verification id per in-state game

Team tab layout (rows 1-3 are header/metadata, data from row 4):

    I date | J opponent | K player | L count | M verified at | N verified by | O VID
"""
from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

import requests

from pitchcount import formatting
from pitchcount import simple_logger
from pitchcount.append_engine import AppendEngine
from pitchcount.coach_directory import CoachDirectory
from pitchcount.email_relay import EmailJob, EmailRelay
from pitchcount.envelope import JSON_HEADERS, Request, Response, json_endpoint, json_response
from pitchcount.errors import NotFoundError, PitchCountError, ValidationError
from pitchcount.google_sheets import CellUpdate, SpreadsheetClient, cell_text, open_spreadsheet_client
from pitchcount.models import DisputeSubmission, LogEntry, PitchSubmission, parse_payload
from pitchcount.roster import ROSTER_CACHE_SECONDS, fetch_roster
from pitchcount.row_locator import RowLocator
from pitchcount.settings import Settings, get_settings

logger = simple_logger.get_logger(__name__)

ClientFactory = Callable[[Settings], SpreadsheetClient]
Clock = Callable[[], datetime]

FIRST_COLUMN = "I"
LAST_COLUMN = "O"
VID_COLUMN = "O"
VID_OFFSET = 6  # O relative to I

DISPUTE_HEADER = [
    "Timestamp",
    "VID",
    "Disputing School",
    "Disputing Coach Name",
    "Disputing Coach Email",
    "Disputing Coach Phone",
    "Recorded School Name",
    "Recorded Coach Name",
    "Recorded Coach Email",
    "Recorded Coach Phone",
    "Recorded Pitcher",
    "Recorded Count",
    "Dispute Type",
    "Proposed Pitcher",
    "Proposed Count",
    "Missing Pitcher?",
    "Disputing Coach Notes",
    "Admin Notes",
]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_vid() -> str:
    return str(uuid.uuid4())


def _iso_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _resolve_settings(settings: Settings | None) -> Settings:
    return settings or get_settings()


def _blank(value: Any) -> Any:
    return "" if value is None else value


# --- Submission --------------------------------------------------------------


@dataclass
class SubmissionPlan:
    tab_title: str
    formatted_date: str
    coach_role: str
    rows: list[list[Any]] = field(default_factory=list)
    email_jobs: list[EmailJob] = field(default_factory=list)


def plan_submission(submission: PitchSubmission, *, new_vid: Callable[[], str] = _new_vid) -> SubmissionPlan:
    """Turn a submission into sheet rows (I..O) and one email job per in-state game."""
    if not (submission.game_date or "").strip():
        raise ValidationError("Missing gameDate")
    if not submission.games:
        raise ValidationError("No games found in submission")

    first_game = submission.games[0]
    tab_title = ((first_game.submitting.team if first_game else None) or "").strip()
    if not tab_title:
        raise ValidationError("Submitting team missing (game 1)")

    formatted_date = formatting.format_mdy(submission.game_date)
    if not formatted_date:
        raise ValidationError("gameDate must be formatted YYYY-MM-DD")

    plan = SubmissionPlan(tab_title=tab_title, formatted_date=formatted_date, coach_role=submission.role)
    for game in submission.games:
        if game is None:
            continue
        pitchers = game.valid_pitchers()
        if not pitchers:
            continue
        opponent_school = game.opponent.school_value
        vid = new_vid() if (not game.opponent.is_out_of_state and opponent_school) else ""

        for pitcher in pitchers:
            plan.rows.append([formatted_date, opponent_school, pitcher.name, pitcher.count, "", "", vid])

        if vid:
            plan.email_jobs.append(
                EmailJob(
                    opponent_school=opponent_school,
                    submitting_school=tab_title,
                    formatted_date=formatted_date,
                    verification_id=vid,
                    coach_role=plan.coach_role,
                    opponent_pitchers=[
                        {"name": p.name, "pitchCount": p.count, "jerseyNumber": p.jersey_number}
                        for p in pitchers
                    ],
                )
            )

    if not plan.rows:
        raise ValidationError("No valid pitchers provided.")
    return plan


def _send_email_jobs(
    jobs: list[EmailJob],
    relay: EmailRelay | None,
    client: SpreadsheetClient,
    settings: Settings,
) -> tuple[int, int]:
    """Send verification emails. Returns (attempted, sent); never raises upstream errors."""
    if relay is None or not jobs:
        return 0, 0
    try:
        directory = CoachDirectory.load(client, settings.coach_email_sheet_id, settings.coach_email_sheet_name)
    except PitchCountError as exc:
        logger.warning("Coach directory unavailable; skipping emails", extra={"error": exc.message})
        return 0, 0

    attempted = sent = 0
    for job in jobs:
        coach = directory.pick_opponent_coach(job.opponent_school, job.coach_role)
        if coach is None or not coach.email:
            logger.info("No coach email for opponent", extra={"opponent": job.opponent_school})
            continue
        attempted += 1
        if relay.send(job, coach):
            sent += 1
    return attempted, sent


@json_endpoint
def submit_pitch_data(
    request: Request,
    *,
    settings: Settings | None = None,
    client_factory: ClientFactory = open_spreadsheet_client,
    relay: EmailRelay | None = None,
    new_vid: Callable[[], str] = _new_vid,
) -> Response:
    """POST: record one game day of pitch counts on the submitting team's tab."""
    settings = _resolve_settings(settings)
    body = request.json()
    data = (body.get("payload") or body) if isinstance(body, dict) else body
    submission = parse_payload(PitchSubmission, data)
    plan = plan_submission(submission, new_vid=new_vid)
    settings.require("main_sheet_id")

    client = client_factory(settings)
    engine = AppendEngine(client, max_scan_rows=settings.insertion_scan_rows)
    start_row = engine.append_rows(
        settings.main_sheet_id, plan.tab_title, plan.rows, anchor_column=FIRST_COLUMN
    )

    if relay is None:
        relay = EmailRelay.from_settings(settings)
    attempted, sent = _send_email_jobs(plan.email_jobs, relay, client, settings)

    logger.info(
        "Submission recorded",
        extra={"tab": plan.tab_title, "start_row": start_row, "rows": len(plan.rows), "emails_sent": sent},
    )
    return json_response(
        {
            "success": True,
            "message": f"Submitted {len(plan.rows)} pitcher(s) for {plan.tab_title} on {plan.formatted_date}.",
            "team": plan.tab_title,
            "date": plan.formatted_date,
            "count": len(plan.rows),
            "emailsAttempted": attempted,
            "emailsSent": sent,
        }
    )


# --- Verification ------------------------------------------------------------


@json_endpoint
def verify_pitch_counts(
    request: Request,
    *,
    settings: Settings | None = None,
    client_factory: ClientFactory = open_spreadsheet_client,
    clock: Clock = _utc_now,
) -> Response:
    """GET: stamp every row of a VID with the verification time and verifier."""
    settings = _resolve_settings(settings)
    vid = request.param("vid")
    if not vid:
        raise ValidationError("Missing verification id (VID).")
    settings.require("main_sheet_id")

    verified_by = formatting.build_verified_by(request.param("coachName"), request.param("coachEmail"))
    stamp = formatting.format_verification_time(clock(), settings.verification_timezone)

    client = client_factory(settings)
    match = RowLocator(client).locate(settings.main_sheet_id, VID_COLUMN, vid)
    if match is None:
        raise NotFoundError("VID not found in any team sheet.")

    first = client.read_range(settings.main_sheet_id, match.tab_title, f"I{match.first_row}:J{match.first_row}")
    first_row = first[0] if first else []

    client.batch_update_cells(
        settings.main_sheet_id,
        [CellUpdate(match.tab_title, f"M{row}:N{row}", [[stamp, verified_by]]) for row in match.rows],
    )
    logger.info("Verification recorded", extra={"tab": match.tab_title, "rows": len(match.rows)})
    return json_response(
        {
            "success": True,
            "message": f"Verification recorded. ({match.tab_title})",
            "sheet": match.tab_title,
            "rows": len(match.rows),
            "dateDisplay": cell_text(first_row, 0),
            "opponentDisplay": cell_text(first_row, 1),
        }
    )


# --- Disputes ----------------------------------------------------------------


@json_endpoint
def get_dispute_context(
    request: Request,
    *,
    settings: Settings | None = None,
    client_factory: ClientFactory = open_spreadsheet_client,
) -> Response:
    """GET: the recorded pitchers of a VID, for the dispute form."""
    settings = _resolve_settings(settings)
    vid = request.param("vid")
    disputing_school = request.param("school")
    if not vid:
        raise ValidationError("Missing VID.")
    settings.require("main_sheet_id")

    client = client_factory(settings)
    match = RowLocator(client).locate(settings.main_sheet_id, VID_COLUMN, vid)
    if match is None:
        raise NotFoundError("VID not found in any team sheet.")

    rows = client.read_range(settings.main_sheet_id, match.tab_title, match.span(FIRST_COLUMN, LAST_COLUMN))
    submitting_display = formatting.display_name(match.tab_title)
    game_date = opponent = ""
    pitchers = []
    for row in rows:
        if cell_text(row, VID_OFFSET) != vid:
            continue
        game_date = game_date or cell_text(row, 0)
        opponent = opponent or cell_text(row, 1)
        player = cell_text(row, 2)
        count = cell_text(row, 3)
        pitchers.append(
            {
                "id": f"{vid}-{player}",
                "name": player,
                "teamDisplay": submitting_display,
                "schoolValue": match.tab_title,
                "recordedPitchCount": _as_count(count),
            }
        )

    disputing_display = formatting.display_name(disputing_school)
    return json_response(
        {
            "success": True,
            "vid": vid,
            "school": disputing_school,
            "dateDisplay": game_date,
            "opponentDisplay": opponent,
            "homeTeamDisplay": disputing_display,
            "awayTeamDisplay": submitting_display,
            "matchup": f"{disputing_display} vs {submitting_display}",
            "pitchers": pitchers,
        }
    )


def _as_count(text: str) -> Any:
    if text == "":
        return ""
    try:
        number = float(text)
    except ValueError:
        return text
    return int(number) if number.is_integer() else number


def build_dispute_rows(
    dispute: DisputeSubmission,
    directory: CoachDirectory | None,
    timestamp: str,
) -> list[list[Any]]:
    """Rows A..R for the disputes log; ``disputeType == "none"`` entries are skipped."""
    recorded_school = dispute.recorded_school()
    disputing = directory.contact_for(dispute.school) if directory else None
    recorded = directory.contact_for(recorded_school) if directory else None

    prefix = [
        timestamp,
        dispute.vid,
        dispute.school,
        dispute.coach_name or (disputing.name if disputing else ""),
        dispute.coach_email or (disputing.email if disputing else ""),
        disputing.phone if disputing else "",
        recorded_school,
        recorded.name if recorded else "",
        recorded.email if recorded else "",
        recorded.phone if recorded else "",
    ]

    rows: list[list[Any]] = []
    for entry in dispute.disputes:
        if entry is None or entry.dispute_type == "none":
            continue
        rows.append(
            prefix
            + [
                entry.name or "",
                _blank(entry.recorded_pitch_count),
                entry.dispute_type or "",
                entry.proposed_pitcher or "",
                _blank(entry.proposed_pitch_count),
                "",
                entry.note or "",
                "",
            ]
        )
    for missing in dispute.missing_pitchers:
        if missing is None or not missing.name:
            continue
        rows.append(
            prefix
            + ["", "", "missing", missing.name, _blank(missing.pitch_count), "Y", missing.note or "", ""]
        )
    return rows


def _has_dispute_rows(dispute: DisputeSubmission) -> bool:
    return any(d is not None and d.dispute_type != "none" for d in dispute.disputes) or any(
        m is not None and m.name for m in dispute.missing_pitchers
    )


@json_endpoint
def submit_pitch_dispute(
    request: Request,
    *,
    settings: Settings | None = None,
    client_factory: ClientFactory = open_spreadsheet_client,
    clock: Clock = _utc_now,
) -> Response:
    """POST: append one disputes-log row per disputed or missing pitcher."""
    settings = _resolve_settings(settings)
    body = request.json()
    if not body:
        raise ValidationError("No dispute payload received.")
    dispute = parse_payload(DisputeSubmission, body)
    settings.require("disputes_sheet_id", "coach_email_sheet_id")

    if not _has_dispute_rows(dispute):
        return json_response(
            {"success": True, "message": "No actual disputes were selected. Nothing recorded.", "rows": 0}
        )

    client = client_factory(settings)
    directory = CoachDirectory.load(client, settings.coach_email_sheet_id, settings.coach_email_sheet_name)
    rows = build_dispute_rows(dispute, directory, _iso_timestamp(clock()))

    AppendEngine(client).append_log_rows(
        settings.disputes_sheet_id, settings.disputes_tab, rows, header_row=DISPUTE_HEADER
    )
    logger.info("Dispute recorded", extra={"vid": dispute.vid, "rows": len(rows)})
    return json_response(
        {
            "success": True,
            "message": f"Dispute recorded for {dispute.school or '(unknown school)'} (VID {dispute.vid}).",
            "rows": len(rows),
        }
    )


# --- Generic log entry -------------------------------------------------------


@json_endpoint
def submit_entry(
    request: Request,
    *,
    settings: Settings | None = None,
    client_factory: ClientFactory = open_spreadsheet_client,
    clock: Clock = _utc_now,
) -> Response:
    """POST: append a single free-form entry to the submissions or disputes log."""
    settings = _resolve_settings(settings)
    entry = parse_payload(LogEntry, request.json())
    if not entry.team or not entry.date:
        raise ValidationError("Missing required fields: team, date")

    if entry.type == "dispute":
        settings.require("disputes_sheet_id")
        spreadsheet_id, tab_title = settings.disputes_sheet_id, settings.disputes_tab
    else:
        settings.require("main_sheet_id")
        spreadsheet_id, tab_title = settings.main_sheet_id, settings.main_tab

    row = [
        _iso_timestamp(clock()),
        entry.team,
        entry.date,
        entry.opponent or "",
        entry.level or "",
        json.dumps(entry.payload) if entry.payload else "",
    ]
    AppendEngine(client_factory(settings)).append_log_rows(spreadsheet_id, tab_title, [row])
    return json_response({"success": True})


# --- Roster ------------------------------------------------------------------


@json_endpoint
def get_roster(
    request: Request,
    *,
    settings: Settings | None = None,
    session: requests.Session | None = None,
) -> Response:
    """GET: pass the roster JSON through from Drive with a short public cache."""
    settings = _resolve_settings(settings)
    settings.require("roster_file_id")
    text = fetch_roster(settings.roster_file_id, session=session, timeout=settings.http_timeout_seconds)
    headers = dict(JSON_HEADERS)
    headers["Cache-Control"] = f"public, max-age={ROSTER_CACHE_SECONDS}"
    return Response(status=200, body=text, headers=headers)
