from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
import json
import traceback

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40}
_threshold = _LEVELS["INFO"]

# Keys whose values must never reach the log stream.
_REDACTED_KEYS = frozenset(
    {
        "private_key",
        "assertion",
        "access_token",
        "authorization",
        "relaykey",
        "relay_key",
        "token",
    }
)


def configure(level: str) -> None:
    """Set the minimum level emitted by every SimpleLogger."""
    global _threshold
    _threshold = _LEVELS.get(str(level).upper(), _LEVELS["INFO"])


def _redact(extra: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in extra.items():
        if str(key).lower() in _REDACTED_KEYS:
            cleaned[key] = "***"
        elif isinstance(value, dict):
            cleaned[key] = _redact(value)
        else:
            cleaned[key] = value
    return cleaned


class SimpleLogger:
    """Minimal logger that prints one line per message to stdout.

    Mirrors a subset of the standard logging.Logger API used in this project.
    Serverless log collectors treat each stdout line as one record, so extras
    are rendered as compact JSON on the same line.
    """

    def __init__(self, name: str) -> None:
        self.name = name

    def _emit(self, level: str, message: str, extra: dict[str, Any] | None, exc_info: Any) -> None:
        if _LEVELS[level] < _threshold:
            return
        timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
        extra_suffix = ""
        if extra:
            extra_suffix = " | extra=" + json.dumps(_redact(extra), default=str, sort_keys=True)
        print(f"[{timestamp}] {level} {self.name}: {message}{extra_suffix}", flush=True)

        if exc_info:
            if exc_info is True:
                traceback.print_exc()
            elif isinstance(exc_info, BaseException):
                traceback.print_exception(exc_info.__class__, exc_info, exc_info.__traceback__)
            else:
                print(exc_info)

    def _log(self, level: str, message: str, args: tuple, kwargs: dict) -> None:
        extra = kwargs.pop("extra", None)
        exc_info = kwargs.pop("exc_info", None)
        if args:
            message = message % args
        self._emit(level, message, extra, exc_info)

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._log("DEBUG", message, args, kwargs)

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._log("INFO", message, args, kwargs)

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._log("WARNING", message, args, kwargs)

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._log("ERROR", message, args, kwargs)

    def exception(self, message: str, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("exc_info", True)
        self.error(message, *args, **kwargs)


def get_logger(name: str) -> SimpleLogger:
    """Factory matching logging.getLogger signature."""
    return SimpleLogger(name)


__all__ = ["SimpleLogger", "configure", "get_logger"]
