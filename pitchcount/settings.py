"""
settings.py — single source of truth for config

Design goals
- One import, no surprises: `from pitchcount.settings import get_settings`
- Works locally (.env) and in a serverless runtime (plain env vars)
- Immutable: handlers receive the settings object, they never read os.environ
- Missing values are reported by env var name before any remote call

Secrets
- GOOGLE_PRIVATE_KEY and EMAIL_RELAY_KEY are SecretStr so they never show up
  in reprs or log lines
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pitchcount import simple_logger
from pitchcount.errors import ConfigError

# Load .env robustly: search upward from CWD, or honor DOTENV_PATH if provided
dotenv_path = os.environ.get("DOTENV_PATH") or find_dotenv(".env", usecwd=True)
if dotenv_path:
    load_dotenv(dotenv_path=dotenv_path)


# ----------------------------
# Settings object
# ----------------------------

class Settings(BaseSettings):
    model_config = SettingsConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    # Spreadsheets
    main_sheet_id: Optional[str] = Field(None, alias="MAIN_SHEET_ID")
    disputes_sheet_id: Optional[str] = Field(None, alias="DISPUTES_SHEET_ID")
    coach_email_sheet_id: Optional[str] = Field(None, alias="COACH_EMAIL_SHEET_ID")
    coach_email_sheet_name: str = Field("Home", alias="COACH_EMAIL_SHEET_NAME")
    main_tab: str = Field("Submissions", alias="MAIN_TAB")
    disputes_tab: str = Field("Disputes", alias="DISPUTES_TAB")
    roster_file_id: Optional[str] = Field(None, alias="ROSTER_FILE_ID")

    # Service account
    google_client_email: Optional[str] = Field(None, alias="GOOGLE_CLIENT_EMAIL")
    google_private_key: Optional[SecretStr] = Field(None, alias="GOOGLE_PRIVATE_KEY")
    token_cache_enabled: bool = Field(False, alias="TOKEN_CACHE_ENABLED")

    # Email relay
    email_relay_url: Optional[str] = Field(None, alias="EMAIL_RELAY_URL")
    email_relay_key: Optional[SecretStr] = Field(None, alias="EMAIL_RELAY_KEY")
    site_base_url: Optional[str] = Field(None, alias="SITE_BASE_URL")

    # Behaviour
    sheets_num_retries: int = Field(0, alias="SHEETS_NUM_RETRIES", ge=0)
    http_timeout_seconds: float = Field(30.0, alias="HTTP_TIMEOUT_SECONDS", gt=0)
    insertion_scan_rows: int = Field(5000, alias="INSERTION_SCAN_ROWS", gt=0)
    verification_timezone: str = Field("America/Los_Angeles", alias="VERIFICATION_TIMEZONE")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    @field_validator(
        "main_sheet_id",
        "disputes_sheet_id",
        "coach_email_sheet_id",
        "roster_file_id",
        "google_client_email",
        "email_relay_url",
        "site_base_url",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    def require(self, *field_names: str) -> None:
        """Raise ConfigError naming every listed setting that is unset."""
        missing = []
        for name in field_names:
            value = getattr(self, name)
            if isinstance(value, SecretStr):
                value = value.get_secret_value().strip()
            if not value:
                alias = type(self).model_fields[name].alias or name.upper()
                missing.append(alias)
        if missing:
            raise ConfigError(f"Missing env var {' / '.join(missing)}")

    @property
    def relay_configured(self) -> bool:
        """True when every setting the email relay needs is present."""
        return bool(
            self.email_relay_url
            and self.email_relay_key
            and self.email_relay_key.get_secret_value()
            and self.site_base_url
            and self.coach_email_sheet_id
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings instance; also sets the log threshold from LOG_LEVEL."""
    settings = Settings()
    simple_logger.configure(settings.log_level)
    return settings
