"""Service-account token minting.

Builds an RS256-signed JWT assertion for the service account and trades it
at Google's OAuth2 token endpoint for a one-hour bearer token (the
JWT-bearer grant). The private key and the signed assertion never leave this
module except in the token request body.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import requests
from google.auth import crypt
from google.auth import jwt as google_jwt

from pitchcount.errors import AuthError, ConfigError
from pitchcount.settings import Settings
from pitchcount.simple_logger import get_logger

logger = get_logger(__name__)

SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
TOKEN_URI = "https://oauth2.googleapis.com/token"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
TOKEN_LIFETIME = timedelta(seconds=3600)
_ASSERTION_HEADER = {"alg": "RS256", "typ": "JWT"}


@dataclass(frozen=True)
class ServiceAccountCredential:
    issuer_email: str
    private_key: str = field(repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceAccountCredential":
        settings.require("google_client_email", "google_private_key")
        return cls(
            issuer_email=settings.google_client_email,
            private_key=settings.google_private_key.get_secret_value(),
        )


@dataclass(frozen=True)
class AccessToken:
    value: str = field(repr=False)
    issued_at: datetime
    expiry: datetime

    def is_valid(self, now: datetime | None = None, skew: timedelta = timedelta(seconds=60)) -> bool:
        """True while the token has more than *skew* of its lifetime left."""
        now = now or datetime.now(timezone.utc)
        return now + skew < self.expiry


def normalize_private_key(raw: str) -> str:
    """Turn literal ``\\n`` escapes (common in env vars) into real newlines."""
    return raw.replace("\\n", "\n").strip() + "\n"


def _signer_for(credential: ServiceAccountCredential) -> crypt.RSASigner:
    if not credential.issuer_email or not credential.private_key:
        raise ConfigError("Missing env var GOOGLE_CLIENT_EMAIL / GOOGLE_PRIVATE_KEY")
    try:
        return crypt.RSASigner.from_string(normalize_private_key(credential.private_key))
    except (ValueError, TypeError):
        # Not chained: parser messages can include key bytes.
        raise ConfigError("GOOGLE_PRIVATE_KEY is not a valid PKCS8 RSA private key") from None


def build_assertion(
    credential: ServiceAccountCredential,
    issued_at: datetime,
    *,
    scope: str = SHEETS_SCOPE,
    audience: str = TOKEN_URI,
) -> str:
    """Return the signed ``header.payload.signature`` JWT for *credential*."""
    signer = _signer_for(credential)
    iat = int(issued_at.timestamp())
    payload = {
        "iss": credential.issuer_email,
        "scope": scope,
        "aud": audience,
        "iat": iat,
        "exp": iat + int(TOKEN_LIFETIME.total_seconds()),
    }
    token = google_jwt.encode(signer, payload, header=dict(_ASSERTION_HEADER))
    return token.decode("ascii") if isinstance(token, bytes) else token


def _response_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def mint(
    credential: ServiceAccountCredential,
    *,
    now: datetime | None = None,
    session: requests.Session | None = None,
    timeout: float = 30.0,
) -> AccessToken:
    """Exchange a freshly signed assertion for a bearer token.

    Raises:
        ConfigError: When the issuer email or private key is missing or unusable.
        AuthError: When the token endpoint rejects the assertion or is unreachable.
    """
    issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    assertion = build_assertion(credential, issued_at)
    http = session or requests

    try:
        response = http.post(
            TOKEN_URI,
            data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise AuthError(f"Token request failed: {exc}") from exc

    body = _response_body(response)
    if not response.ok or not isinstance(body, dict) or "access_token" not in body:
        logger.error(
            "Token endpoint rejected the service account assertion.",
            extra={"status": response.status_code, "issuer": credential.issuer_email},
        )
        raise AuthError(f"Token error ({response.status_code})", details=str(body))

    logger.debug("Minted access token", extra={"issuer": credential.issuer_email})
    return AccessToken(
        value=body["access_token"],
        issued_at=issued_at,
        expiry=issued_at + TOKEN_LIFETIME,
    )


class TokenCache:
    """Reuses a minted token until it is close to expiry.

    One entry per issuer. Safe to share between threads of a warm worker.
    """

    def __init__(self, skew: timedelta = timedelta(seconds=60)) -> None:
        self.skew = skew
        self._tokens: dict[str, AccessToken] = {}
        self._lock = threading.Lock()

    def get(self, credential: ServiceAccountCredential, **mint_kwargs: Any) -> AccessToken:
        now = mint_kwargs.get("now") or datetime.now(timezone.utc)
        with self._lock:
            cached = self._tokens.get(credential.issuer_email)
            if cached is not None and cached.is_valid(now, self.skew):
                return cached
            token = mint(credential, **mint_kwargs)
            self._tokens[credential.issuer_email] = token
            return token

    def clear(self) -> None:
        with self._lock:
            self._tokens.clear()


_token_cache = TokenCache()


def get_access_token(settings: Settings, *, session: requests.Session | None = None) -> AccessToken:
    """Mint (or reuse, when TOKEN_CACHE_ENABLED) a token for the configured account."""
    credential = ServiceAccountCredential.from_settings(settings)
    kwargs: dict[str, Any] = {"session": session, "timeout": settings.http_timeout_seconds}
    if settings.token_cache_enabled:
        return _token_cache.get(credential, **kwargs)
    return mint(credential, **kwargs)
