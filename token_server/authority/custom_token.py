"""Signed assertions exchanged with Google endpoints."""

import time
from typing import Callable, Optional

import jwt

from token_server.bootstrap.credentials import ServiceAccount
from token_server.domain.durations import format_google_duration

APP_CHECK_AUDIENCE = (
    "https://firebaseappcheck.googleapis.com/"
    "google.firebase.appcheck.v1.TokenExchangeService"
)
OAUTH_SCOPES = (
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/firebase",
)
CUSTOM_TOKEN_LIFETIME_SECONDS = 5 * 60
ACCESS_ASSERTION_LIFETIME_SECONDS = 60 * 60

# App Check rejects custom token TTLs outside this window.
MIN_TTL_MILLIS = 30 * 60 * 1000
MAX_TTL_MILLIS = 7 * 24 * 60 * 60 * 1000

ALGORITHM = "RS256"


def _sign(account: ServiceAccount, payload: dict) -> str:
    headers = {"kid": account.private_key_id} if account.private_key_id else None
    return jwt.encode(payload, account.private_key, algorithm=ALGORITHM, headers=headers)


def create_custom_token(
    account: ServiceAccount,
    app_id: str,
    ttl_millis: Optional[int] = None,
    clock: Callable[[], float] = time.time,
) -> str:
    """Sign the custom token App Check swaps for an App Check token."""
    if ttl_millis is not None and not MIN_TTL_MILLIS <= ttl_millis <= MAX_TTL_MILLIS:
        raise ValueError(
            f"ttl_millis must be between {MIN_TTL_MILLIS} and {MAX_TTL_MILLIS}, "
            f"got {ttl_millis}"
        )
    issued_at = int(clock())
    payload = {
        "iss": account.client_email,
        "sub": account.client_email,
        "aud": APP_CHECK_AUDIENCE,
        "iat": issued_at,
        "exp": issued_at + CUSTOM_TOKEN_LIFETIME_SECONDS,
        "app_id": app_id,
    }
    if ttl_millis is not None:
        payload["ttl"] = format_google_duration(ttl_millis)
    return _sign(account, payload)


def create_access_assertion(
    account: ServiceAccount, clock: Callable[[], float] = time.time
) -> str:
    """Sign the JWT-bearer assertion that buys an OAuth2 access token."""
    issued_at = int(clock())
    payload = {
        "iss": account.client_email,
        "scope": " ".join(OAUTH_SCOPES),
        "aud": account.token_uri,
        "iat": issued_at,
        "exp": issued_at + ACCESS_ASSERTION_LIFETIME_SECONDS,
    }
    return _sign(account, payload)
