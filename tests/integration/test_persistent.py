"""Integration tests for persistent connections."""

from __future__ import annotations

import socket

import pytest

from tests.utils.http import read_http_response

pytestmark = pytest.mark.integration

BODY = b"appId=1%3A2%3Aweb%3A3&projectId=my-project"


def build_request(connection: str | None = None) -> bytes:
    lines = [
        "POST / HTTP/1.1",
        "Host: localhost",
        "Content-Type: application/x-www-form-urlencoded",
        f"Content-Length: {len(BODY)}",
    ]
    if connection:
        lines.append(f"Connection: {connection}")
    lines.extend(["", ""])
    return "\r\n".join(lines).encode() + BODY


def test_multiple_requests_share_connection(server_process):
    host = server_process["host"]
    port = server_process["port"]

    with socket.create_connection((host, port), timeout=5) as client:
        for _ in range(2):
            client.sendall(build_request())
            response = read_http_response(client)
            assert response.status_code == 200
            assert b'"ftok"' in response.body

        client.sendall(build_request(connection="close"))
        final = read_http_response(client)
        assert final.status_code == 200
        assert final.headers["connection"] == "close"

        client.settimeout(1)
        assert client.recv(1) == b""
