"""Integration tests exercising the token endpoint over real sockets."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import requests

from tests.utils.http import send_raw_request

pytestmark = pytest.mark.integration

if TYPE_CHECKING:
    from tests.conftest import ServerProcessInfo

VALID_FIELDS = {"appId": "1:1234567890:web:a892437b8923", "projectId": "my-project"}


def test_json_request_returns_forced_token(base_url: str) -> None:
    """A valid JSON request gets the configured token and TTL."""

    response = requests.post(base_url, json=VALID_FIELDS, timeout=5)
    assert response.status_code == 200
    assert response.headers["Content-Type"] == "application/json"
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert response.json() == {"token": "ftok", "ttlMillis": 5000}


def test_form_request_returns_forced_token(base_url: str) -> None:
    """Form-encoded bodies are accepted just like JSON ones."""

    response = requests.post(base_url, data=VALID_FIELDS, timeout=5)
    assert response.status_code == 200
    assert response.json() == {"token": "ftok", "ttlMillis": 5000}


def test_path_is_ignored(base_url: str) -> None:
    """Any path reaches the same handler."""

    response = requests.post(f"{base_url}/some/where", json=VALID_FIELDS, timeout=5)
    assert response.status_code == 200


def test_get_request_is_rejected_with_405(base_url: str) -> None:
    """Only POST is supported."""

    response = requests.get(base_url, timeout=5)
    assert response.status_code == 405
    assert response.headers["Content-Type"] == "text/plain"
    assert response.headers["Allow"] == "POST"
    assert "GET" in response.text


def test_text_plain_request_is_rejected_with_415(base_url: str) -> None:
    """Unsupported content types are rejected before the body is read."""

    response = requests.post(
        base_url,
        data="appId=a",
        headers={"Content-Type": "text/plain"},
        timeout=5,
    )
    assert response.status_code == 415
    assert "text/plain" in response.text


def test_missing_field_is_rejected_with_400(base_url: str) -> None:
    """Required-field checks still run when a token is forced."""

    response = requests.post(base_url, json={"appId": "a1"}, timeout=5)
    assert response.status_code == 400
    assert "projectId" in response.text
    assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_responses_carry_request_id(base_url: str) -> None:
    """The incoming X-Request-ID is echoed back."""

    response = requests.post(
        base_url,
        json=VALID_FIELDS,
        headers={"X-Request-ID": "integration-id-1"},
        timeout=5,
    )
    assert response.headers["X-Request-ID"] == "integration-id-1"


def test_keep_alive_serves_several_requests(base_url: str) -> None:
    """A persistent connection is reused across requests."""

    with requests.Session() as session:
        first = session.post(base_url, json=VALID_FIELDS, timeout=5)
        second = session.post(base_url, data=VALID_FIELDS, timeout=5)
    assert first.status_code == second.status_code == 200


def test_oversized_body_is_rejected_with_413(
    server_process: "ServerProcessInfo",
) -> None:
    """Bodies beyond the configured limit are refused by the transport."""

    payload = (
        b"POST / HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"Content-Type: application/json\r\n"
        b"Content-Length: 10000000\r\n\r\n"
    )
    response = send_raw_request(
        server_process["host"], server_process["port"], payload
    )
    assert response.status_code == 413
    assert response.headers.get("connection") == "close"


def test_malformed_request_line_is_rejected_with_400(
    server_process: "ServerProcessInfo",
) -> None:
    """Garbage that does not frame an HTTP request gets a 400."""

    response = send_raw_request(
        server_process["host"], server_process["port"], b"NONSENSE\r\n\r\n"
    )
    assert response.status_code == 400


def test_forced_response_overrides_everything(
    teapot_server_process: "ServerProcessInfo",
) -> None:
    """A forced response is returned for any method and body."""

    base = teapot_server_process["base_url"]
    get_response = requests.get(base, timeout=5)
    post_response = requests.post(base, json=VALID_FIELDS, timeout=5)
    for response in (get_response, post_response):
        assert response.status_code == 418
        assert response.reason == "I'm a teapot"
        assert response.headers["Content-Type"] == "text/plain"
        assert response.headers["Access-Control-Allow-Origin"] == "*"
