"""Integration tests for the CORS allow-list."""

import pytest
import requests

from tests.conftest import _launch_server, reserve_port

pytestmark = pytest.mark.integration

VALID_FIELDS = {"appId": "1:2:web:3", "projectId": "my-project"}


@pytest.fixture(name="cors_server")
def _cors_server(tmp_path):
    host = "127.0.0.1"
    port = reserve_port(host)
    extra_args = [
        "--token",
        "ftok",
        "--cors-allowed-origins",
        "https://app.example.com",
    ]
    yield from _launch_server(host, port, extra_args, tmp_path / "server.log")


def test_cors_custom_allowlist(cors_server):
    """An allow-list echoes matching origins and omits the header otherwise."""
    base_url = cors_server["base_url"]

    response = requests.post(
        base_url,
        json=VALID_FIELDS,
        headers={"Origin": "https://app.example.com"},
        timeout=5,
    )
    assert response.status_code == 200
    assert (
        response.headers.get("Access-Control-Allow-Origin") == "https://app.example.com"
    )
    assert response.headers.get("Vary") == "Origin"

    response = requests.post(
        base_url,
        json=VALID_FIELDS,
        headers={"Origin": "https://evil.example.com"},
        timeout=5,
    )
    assert response.status_code == 200
    assert "Access-Control-Allow-Origin" not in response.headers
