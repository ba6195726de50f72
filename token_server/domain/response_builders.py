"""Pure HTTP response builders."""

import json
from typing import Optional

from token_server.bootstrap.config import SECURITY_HEADERS
from token_server.domain.http_types import (
    HttpRequest,
    HttpResponse,
    should_close,
    status_allows_body,
)
from token_server.domain.status_codes import reason_phrase_for
from token_server.security.cors import CorsConfig, apply_cors_headers

TEXT_CONTENT_TYPE = "text/plain"
JSON_CONTENT_TYPE = "application/json"


def _build(
    status_code: int,
    reason: str,
    content_type: str,
    body: bytes,
    request: Optional[HttpRequest],
    cors_config: Optional[CorsConfig],
    extra_headers: Optional[dict[str, str]] = None,
    close_connection: Optional[bool] = None,
) -> HttpResponse:
    # pylint: disable=too-many-arguments, too-many-positional-arguments
    headers = {"Content-Type": content_type, **SECURITY_HEADERS}
    if extra_headers:
        headers.update(extra_headers)
    apply_cors_headers(headers, request, cors_config)
    if close_connection is None:
        close_connection = should_close(request.headers) if request is not None else True
    return HttpResponse(status_code, reason, headers, body, close_connection)


def text_response(
    status_code: int,
    message: str,
    request: Optional[HttpRequest],
    cors_config: Optional[CorsConfig],
    reason: Optional[str] = None,
    extra_headers: Optional[dict[str, str]] = None,
) -> HttpResponse:
    """Return a ``text/plain`` response whose body is a single sentence."""
    # pylint: disable=too-many-arguments, too-many-positional-arguments
    return _build(
        status_code,
        reason if reason is not None else reason_phrase_for(status_code),
        TEXT_CONTENT_TYPE,
        message.encode("utf-8"),
        request,
        cors_config,
        extra_headers,
    )


def token_response(
    token: str,
    ttl_millis: int,
    request: HttpRequest,
    cors_config: Optional[CorsConfig],
) -> HttpResponse:
    """Return the 200 response carrying a token and its TTL."""
    payload = json.dumps({"token": token, "ttlMillis": ttl_millis})
    return _build(
        200, "OK", JSON_CONTENT_TYPE, payload.encode("utf-8"), request, cors_config
    )


def forced_response(
    code: int,
    reason: str,
    request: HttpRequest,
    cors_config: Optional[CorsConfig],
) -> HttpResponse:
    """Return the operator-forced response, whatever the request was."""
    if not status_allows_body(code):
        # No final response follows a forced 1xx, so the connection ends.
        return _build(
            code,
            reason,
            TEXT_CONTENT_TYPE,
            b"",
            request,
            cors_config,
            close_connection=True if code < 200 else None,
        )
    message = (
        f"The server was configured to respond with HTTP {code} ({reason}) "
        "to every request."
    )
    return text_response(code, message, request, cors_config, reason=reason)


def entity_too_large_response(
    limit: int, cors_config: Optional[CorsConfig] = None
) -> HttpResponse:
    """Produce a 413 response that always closes the connection."""
    message = f"Request body exceeds the limit of {limit} bytes."
    return _build(
        413,
        "Payload Too Large",
        TEXT_CONTENT_TYPE,
        message.encode(),
        None,
        cors_config,
        close_connection=True,
    )


def malformed_request_response(
    detail: str, cors_config: Optional[CorsConfig] = None
) -> HttpResponse:
    """Produce a 400 response for requests that could not be framed."""
    message = f"Malformed HTTP request: {detail}."
    return _build(
        400,
        "Bad Request",
        TEXT_CONTENT_TYPE,
        message.encode(),
        None,
        cors_config,
        close_connection=True,
    )


def draining_response(
    request: Optional[HttpRequest] = None, cors_config: Optional[CorsConfig] = None
) -> HttpResponse:
    """Produce a 503 response indicating the server is shutting down."""
    return _build(
        503,
        "Service Unavailable",
        TEXT_CONTENT_TYPE,
        b"The server is shutting down.",
        request,
        cors_config,
        close_connection=True,
    )
