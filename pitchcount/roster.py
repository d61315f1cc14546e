"""Roster JSON pass-through from Google Drive."""
from __future__ import annotations

from urllib.parse import quote

import requests

from pitchcount.errors import ReadError

DRIVE_DOWNLOAD_URL = "https://drive.google.com/uc?export=download&id={file_id}"
ROSTER_CACHE_SECONDS = 300


def fetch_roster(file_id: str, *, session: requests.Session | None = None, timeout: float = 30.0) -> str:
    """Download the roster document and return its text unchanged."""
    http = session or requests
    url = DRIVE_DOWNLOAD_URL.format(file_id=quote(file_id, safe=""))
    try:
        response = http.get(url, timeout=timeout)
    except requests.RequestException as exc:
        raise ReadError(f"Failed to fetch roster JSON: {exc}") from exc
    if not response.ok:
        raise ReadError("Failed to fetch roster JSON", details=response.text)
    return response.text
