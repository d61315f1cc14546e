"""Framework-neutral request/response types and the JSON error envelope.

Whatever router hosts the handlers only has to build a ``Request`` and turn
the returned ``Response`` into its own response object.
"""
from __future__ import annotations

import functools
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from pitchcount.errors import PitchCountError, ValidationError
from pitchcount.simple_logger import get_logger

logger = get_logger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


@dataclass(frozen=True)
class Request:
    query: Mapping[str, str] = field(default_factory=dict)
    body: bytes | str | None = None

    def param(self, name: str) -> str:
        """Query parameter, trimmed; ``""`` when absent."""
        return str(self.query.get(name) or "").strip()

    def json(self) -> Any:
        if self.body in (None, b"", ""):
            raise ValidationError("Request body is empty.")
        try:
            return json.loads(self.body)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Request body is not valid JSON: {exc}") from exc


@dataclass(frozen=True)
class Response:
    status: int
    body: str
    headers: Mapping[str, str] = field(default_factory=lambda: dict(JSON_HEADERS))

    def json(self) -> Any:
        return json.loads(self.body)


def json_response(payload: Any, status: int = 200) -> Response:
    return Response(status=status, body=json.dumps(payload), headers=dict(JSON_HEADERS))


def error_response(exc: PitchCountError) -> Response:
    payload: dict[str, Any] = {"success": False, "error": exc.message}
    if exc.details:
        payload["details"] = exc.details
    return json_response(payload, exc.status_code)


def json_endpoint(handler: Callable[..., Response]) -> Callable[..., Response]:
    """Map taxonomy errors to their status and anything else to a logged 500."""

    @functools.wraps(handler)
    def wrapper(*args: Any, **kwargs: Any) -> Response:
        try:
            return handler(*args, **kwargs)
        except PitchCountError as exc:
            log = logger.warning if exc.status_code < 500 else logger.error
            log(
                f"{handler.__name__} failed: {exc.message}",
                extra={"error_type": type(exc).__name__, "status": exc.status_code},
            )
            return error_response(exc)
        except Exception as exc:
            logger.exception(f"{handler.__name__} raised an unexpected error")
            return json_response({"success": False, "error": str(exc)}, 500)

    return wrapper
