"""Fire-and-forget notifications through the email relay.

A failed send is logged and reported as False; it never fails the request
that triggered it, since the data write has already happened.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import requests

from pitchcount.coach_directory import CoachContact
from pitchcount.settings import Settings
from pitchcount.simple_logger import get_logger

logger = get_logger(__name__)


@dataclass
class EmailJob:
    """Verification request for the opposing coach of one in-state game."""

    opponent_school: str
    submitting_school: str
    formatted_date: str
    verification_id: str
    coach_role: str
    opponent_pitchers: list[dict[str, Any]] = field(default_factory=list)

    def payload(self, *, relay_key: str, coach: CoachContact, site_base_url: str) -> dict[str, Any]:
        return {
            "relayKey": relay_key,
            "opponentSchool": self.opponent_school,
            "submittingSchool": self.submitting_school,
            "formattedDate": self.formatted_date,
            "opponentPitchers": self.opponent_pitchers,
            "verificationId": self.verification_id,
            "coachRole": self.coach_role,
            "coachName": coach.name or "",
            "coachEmail": coach.email or "",
            "siteBaseUrl": site_base_url,
        }


class EmailRelay:
    def __init__(
        self,
        url: str,
        relay_key: str,
        site_base_url: str,
        *,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.url = url
        self.relay_key = relay_key
        self.site_base_url = site_base_url
        self.session = session
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "EmailRelay | None":
        """Relay built from settings, or None when the relay is not configured."""
        if not settings.relay_configured:
            return None
        return cls(
            settings.email_relay_url,
            settings.email_relay_key.get_secret_value(),
            settings.site_base_url,
            timeout=settings.http_timeout_seconds,
            **kwargs,
        )

    def send(self, job: EmailJob, coach: CoachContact) -> bool:
        payload = job.payload(relay_key=self.relay_key, coach=coach, site_base_url=self.site_base_url)
        http = self.session or requests
        try:
            response = http.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning(
                "Email relay request failed",
                extra={"verification_id": job.verification_id, "error": str(exc)},
            )
            return False
        if not response.ok:
            logger.warning(
                "Email relay failed",
                extra={
                    "verification_id": job.verification_id,
                    "status": response.status_code,
                    "body": response.text[:500],
                },
            )
            return False
        logger.info("Email relay accepted job", extra={"verification_id": job.verification_id})
        return True
