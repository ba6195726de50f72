"""Client for the credential authority that mints App Check tokens."""

import logging
import threading
import time
from typing import Callable, Optional, Protocol
from urllib.parse import quote

import requests

from token_server.authority.custom_token import (
    create_access_assertion,
    create_custom_token,
)
from token_server.bootstrap.config import DEFAULT_AUTHORITY_TIMEOUT
from token_server.bootstrap.credentials import ServiceAccount
from token_server.domain.correlation_id import CorrelationLoggerAdapter
from token_server.domain.durations import parse_google_duration_millis
from token_server.domain.models import TokenResult

AUTHORITY_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("token_server.authority"), {}
)

APP_CHECK_ENDPOINT = "https://firebaseappcheck.googleapis.com/v1"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ACCESS_TOKEN_REFRESH_MARGIN_SECONDS = 60


class CredentialAuthorityError(Exception):
    """Raised for any failure to obtain a token from the authority."""


class CredentialAuthority(Protocol):  # pylint: disable=too-few-public-methods
    """Anything that can mint a token for an application."""

    def create_token(self, app_id: str, ttl_millis: int) -> TokenResult:
        """Return a fresh token or raise ``CredentialAuthorityError``."""


def _error_detail(response: requests.Response) -> str:
    """Pull the message out of a Google API error envelope when present."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            description = payload.get("error_description")
            return f"{error}: {description}" if description else error
    text = response.text.strip()
    return text or response.reason or "no details"


def _post_json(
    session: requests.Session, url: str, what: str, timeout: float, **kwargs
) -> dict:
    try:
        response = session.post(url, timeout=timeout, **kwargs)
    except requests.RequestException as error:
        raise CredentialAuthorityError(f"{what} failed: {error}") from error
    if not response.ok:
        raise CredentialAuthorityError(
            f"{what} failed with HTTP {response.status_code}: {_error_detail(response)}"
        )
    try:
        payload = response.json()
    except ValueError as error:
        raise CredentialAuthorityError(
            f"{what} returned a body that is not JSON"
        ) from error
    if not isinstance(payload, dict):
        raise CredentialAuthorityError(f"{what} returned a non-object JSON body")
    return payload


class AccessTokenCache:
    """OAuth2 access token for the service account, refreshed before expiry."""

    def __init__(
        self,
        account: ServiceAccount,
        session_provider: Callable[[], requests.Session],
        timeout: float = DEFAULT_AUTHORITY_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._account = account
        self._session = session_provider
        self._timeout = timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._expires_at = 0.0

    def get(self) -> str:
        with self._lock:
            now = self._clock()
            if self._token is None or now >= self._expires_at:
                self._refresh(now)
            return self._token

    def _refresh(self, now: float) -> None:
        payload = _post_json(
            self._session(),
            self._account.token_uri,
            "OAuth2 access token request",
            self._timeout,
            data={
                "grant_type": JWT_BEARER_GRANT,
                "assertion": create_access_assertion(self._account, self._clock),
            },
        )
        token = payload.get("access_token")
        if not isinstance(token, str) or not token:
            raise CredentialAuthorityError(
                "OAuth2 access token response is missing access_token"
            )
        expires_in = payload.get("expires_in", 3600)
        if not isinstance(expires_in, (int, float)):
            expires_in = 3600
        self._token = token
        self._expires_at = now + max(0, expires_in - ACCESS_TOKEN_REFRESH_MARGIN_SECONDS)
        AUTHORITY_LOGGER.debug(
            "Access token refreshed",
            extra={"event": "access_token_refreshed", "ttl_millis": expires_in * 1000},
        )


class AppCheckAuthority:
    """Mints tokens through the Firebase App Check custom token exchange."""

    def __init__(
        self,
        account: ServiceAccount,
        project_id: str,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_AUTHORITY_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        # pylint: disable=too-many-arguments, too-many-positional-arguments
        self._account = account
        self._project_id = project_id
        self._shared_session = session
        self._local = threading.local()
        self._timeout = timeout
        self._clock = clock
        self._access_tokens = AccessTokenCache(account, self._sessions, timeout, clock)

    def _sessions(self) -> requests.Session:
        """Return the session of the calling worker thread.

        ``requests.Session`` is not documented as thread-safe, so each worker
        keeps its own connection pool unless a session was injected.
        """
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
        return session

    def exchange_url(self, app_id: str) -> str:
        return (
            f"{APP_CHECK_ENDPOINT}/projects/{quote(self._project_id, safe='')}"
            f"/apps/{quote(app_id, safe='')}:exchangeCustomToken"
        )

    def create_token(self, app_id: str, ttl_millis: int) -> TokenResult:
        """Exchange a freshly signed custom token for an App Check token."""
        try:
            custom_token = create_custom_token(
                self._account, app_id, ttl_millis, self._clock
            )
        except ValueError as error:
            raise CredentialAuthorityError(str(error)) from error

        access_token = self._access_tokens.get()
        payload = _post_json(
            self._sessions(),
            self.exchange_url(app_id),
            "App Check token exchange",
            self._timeout,
            json={"customToken": custom_token},
            headers={"Authorization": f"Bearer {access_token}"},
        )
        return self._parse_exchange(payload)

    @staticmethod
    def _parse_exchange(payload: dict) -> TokenResult:
        token = payload.get("token")
        ttl = payload.get("ttl")
        if not isinstance(token, str) or not token:
            raise CredentialAuthorityError(
                "App Check token exchange response is missing the token"
            )
        if not isinstance(ttl, str):
            raise CredentialAuthorityError(
                "App Check token exchange response is missing the ttl"
            )
        try:
            return TokenResult(token, parse_google_duration_millis(ttl))
        except ValueError as error:
            raise CredentialAuthorityError(
                f"App Check token exchange returned an unusable ttl: {error}"
            ) from error
