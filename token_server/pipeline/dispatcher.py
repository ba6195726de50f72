"""Turns one buffered request into exactly one response."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from token_server.authority.client import CredentialAuthority, CredentialAuthorityError
from token_server.bootstrap.config import ServerConfig
from token_server.domain.correlation_id import CorrelationLoggerAdapter
from token_server.domain.http_types import HttpRequest, HttpResponse
from token_server.domain.models import DEFAULT_TTL_MILLIS, ParsedRequestBody
from token_server.domain.response_builders import (
    forced_response,
    text_response,
    token_response,
)
from token_server.domain.status_codes import reason_phrase_for
from token_server.pipeline.validation import RequestRejected, validate_token_request
from token_server.security.cors import CorsConfig

DISPATCH_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("token_server.pipeline.dispatcher"), {}
)


@dataclass(frozen=True)
class DispatchContext:
    """Read-only collaborators shared by every request."""

    config: ServerConfig
    authority: Optional[CredentialAuthority] = None
    expected_project_id: Optional[str] = None
    cors_config: Optional[CorsConfig] = None


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


def _reject(
    rejection: RequestRejected, request: HttpRequest, context: DispatchContext
) -> HttpResponse:
    DISPATCH_LOGGER.warning(
        "Request rejected",
        extra={
            "event": "request_rejected",
            "status_code": rejection.status_code,
            "reason": reason_phrase_for(rejection.status_code),
            "detail": rejection.message,
        },
    )
    return text_response(
        rejection.status_code,
        rejection.message,
        request,
        context.cors_config,
        extra_headers=rejection.headers,
    )


def _mint(
    body: ParsedRequestBody,
    request: HttpRequest,
    context: DispatchContext,
    started: float,
) -> HttpResponse:
    if context.authority is None:
        return _mint_failed(
            CredentialAuthorityError("no credential authority is configured"),
            request,
            context,
        )
    try:
        result = context.authority.create_token(body.app_id, DEFAULT_TTL_MILLIS)
    except CredentialAuthorityError as error:
        return _mint_failed(error, request, context)
    except Exception as error:  # pylint: disable=broad-except
        DISPATCH_LOGGER.error(
            "Unexpected error from credential authority", exc_info=True
        )
        return _mint_failed(error, request, context)

    forced_ttl = context.config.forced_ttl_millis
    ttl_millis = forced_ttl if forced_ttl is not None else result.ttl_millis
    DISPATCH_LOGGER.info(
        "Token issued",
        extra={
            "event": "token_issued",
            "status_code": 200,
            "app_id": body.app_id,
            "project_id": body.project_id,
            "token": result.token,
            "ttl_millis": ttl_millis,
            "forced": False,
            "duration_ms": _elapsed_ms(started),
        },
    )
    return token_response(result.token, ttl_millis, request, context.cors_config)


def _mint_failed(
    error: Exception, request: HttpRequest, context: DispatchContext
) -> HttpResponse:
    DISPATCH_LOGGER.error(
        "Token creation failed",
        extra={
            "event": "token_mint_failed",
            "status_code": 500,
            "error_type": type(error).__name__,
            "error": str(error),
        },
    )
    return text_response(
        500, f"Creating the token failed: {error}", request, context.cors_config
    )


def dispatch_request(request: HttpRequest, context: DispatchContext) -> HttpResponse:
    """Validate ``request`` and answer it with a token or an error.

    The forced response, when configured, wins before anything about the
    request is looked at. Otherwise the request goes through
    ``validate_token_request`` and, if it passes, is answered with the forced
    token or with one minted by the credential authority. The authority is
    called at most once.
    """
    started = time.perf_counter()
    config = context.config
    DISPATCH_LOGGER.info(
        "Request received",
        extra={
            "event": "request_received",
            "method": request.method,
            "route": request.path,
            "content_type": request.headers.get("content-type", "-"),
            "bytes_in": len(request.body),
        },
    )

    if config.forced_response is not None:
        forced = config.forced_response
        DISPATCH_LOGGER.info(
            "Forced response returned",
            extra={
                "event": "forced_response_returned",
                "status_code": forced.code,
                "reason": forced.reason,
            },
        )
        return forced_response(forced.code, forced.reason, request, context.cors_config)

    try:
        body = validate_token_request(request, context.expected_project_id)
    except RequestRejected as rejection:
        return _reject(rejection, request, context)

    if config.forced_token is not None:
        ttl_millis = (
            config.forced_ttl_millis
            if config.forced_ttl_millis is not None
            else DEFAULT_TTL_MILLIS
        )
        DISPATCH_LOGGER.info(
            "Forced token issued",
            extra={
                "event": "token_issued",
                "status_code": 200,
                "app_id": body.app_id,
                "project_id": body.project_id,
                "ttl_millis": ttl_millis,
                "forced": True,
                "duration_ms": _elapsed_ms(started),
            },
        )
        return token_response(
            config.forced_token, ttl_millis, request, context.cors_config
        )

    return _mint(body, request, context, started)
