"""Validation of token requests, one layer at a time.

Each ``enforce_*``/``parse_*`` step either returns the value the next step
needs or raises ``RequestRejected`` describing the first problem found.
"""

import json
from typing import Optional
from urllib.parse import parse_qs

from token_server.domain.http_types import HttpRequest
from token_server.domain.models import ParsedRequestBody

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
SUPPORTED_CONTENT_TYPES = (JSON_CONTENT_TYPE, FORM_CONTENT_TYPE)
REQUIRED_FIELDS = ("appId", "projectId")


class RequestRejected(Exception):
    """Raised when a request fails validation; carries the response status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.headers = headers or {}


def describe_type(value: object) -> str:
    """Name the JSON type of a decoded value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def enforce_post_method(request: HttpRequest) -> None:
    if request.method != "POST":
        raise RequestRejected(
            405,
            f"Unsupported HTTP method: {request.method} (only POST is supported).",
            {"Allow": "POST"},
        )


def enforce_content_type(request: HttpRequest) -> str:
    """Return the request media type if it is one the server can parse."""
    media_type = request.content_type
    if media_type in SUPPORTED_CONTENT_TYPES:
        return media_type
    received = request.headers.get("content-type")
    received_text = f'"{received}"' if received is not None else "none"
    raise RequestRejected(
        415,
        f"Unsupported Content-Type: {received_text} "
        f"(expected {JSON_CONTENT_TYPE} or {FORM_CONTENT_TYPE}).",
    )


def decode_body(body: bytes) -> str:
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError as error:
        raise RequestRejected(
            400, f"Request body is not valid UTF-8: {error}."
        ) from error


def parse_form_body(text: str) -> dict[str, str]:
    """Project a form-encoded body onto the request fields.

    Keys that are absent stay absent; for repeated keys the first value wins.
    """
    values = parse_qs(text, keep_blank_values=True)
    return {name: values[name][0] for name in REQUIRED_FIELDS if name in values}


def parse_body(text: str, media_type: str) -> object:
    if media_type == FORM_CONTENT_TYPE:
        return parse_form_body(text)
    try:
        return json.loads(text)
    except json.JSONDecodeError as error:
        raise RequestRejected(
            400, f"Request body is not valid JSON: {error}."
        ) from error
    except RecursionError as error:
        raise RequestRejected(
            400, "Request body is not valid JSON: nesting is too deep."
        ) from error


def enforce_object_shape(parsed: object) -> dict:
    if not isinstance(parsed, dict):
        raise RequestRejected(
            400,
            f"Request body must be a JSON object, but got {describe_type(parsed)}.",
        )
    return parsed


def require_string_field(body: dict, name: str) -> str:
    if name not in body:
        present = ", ".join(sorted(str(key) for key in body)) or "none"
        raise RequestRejected(
            400,
            f'Request body is missing the required property "{name}" '
            f"(properties present: {present}).",
        )
    value = body[name]
    if not isinstance(value, str):
        raise RequestRejected(
            400,
            f'Property "{name}" must be a string, but got {describe_type(value)}.',
        )
    return value


def enforce_project_match(project_id: str, expected_project_id: Optional[str]) -> None:
    """Reject requests for another project when the server knows its own."""
    if not expected_project_id or project_id == expected_project_id:
        return
    raise RequestRejected(
        400,
        f'Request projectId "{project_id}" does not match the project id '
        f'"{expected_project_id}" of the server credentials.',
    )


def validate_token_request(
    request: HttpRequest, expected_project_id: Optional[str]
) -> ParsedRequestBody:
    """Run every validation layer in order and return the checked payload."""
    enforce_post_method(request)
    media_type = enforce_content_type(request)
    text = decode_body(request.body)
    body = enforce_object_shape(parse_body(text, media_type))
    app_id = require_string_field(body, "appId")
    project_id = require_string_field(body, "projectId")
    enforce_project_match(project_id, expected_project_id)
    return ParsedRequestBody(app_id=app_id, project_id=project_id)
