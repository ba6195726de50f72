"""Reading requests from and writing responses to client sockets."""

import logging
import socket
import urllib.parse
from typing import Optional, Tuple

from token_server.bootstrap.config import HEADER_DELIMITER, MAX_BODY_BYTES
from token_server.domain.correlation_id import (
    CorrelationLoggerAdapter,
    get_correlation_id,
    set_correlation_id,
)
from token_server.domain.http_types import HttpRequest, HttpResponse, status_allows_body

IO_LOGGER = CorrelationLoggerAdapter(logging.getLogger("token_server.io"), {})

RECV_CHUNK_SIZE = 4096
MAX_HEADER_BYTES = 16 * 1024


class RequestEntityTooLarge(Exception):
    """Raised when a request body exceeds the configured limit."""


class MalformedRequest(ValueError):
    """Raised when the bytes received do not frame an HTTP request."""


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed = {}
    for line in lines:
        name, separator, value = line.partition(":")
        if not separator or not name.strip():
            continue
        parsed[name.strip().lower()] = value.strip()
    return parsed


def parse_request_line(request_line: str) -> Tuple[str, str]:
    """Return the method and decoded path of the request line."""
    parts = request_line.split(" ")
    if len(parts) != 3 or not parts[2].startswith("HTTP/"):
        raise MalformedRequest("invalid request line")
    method, target, _ = parts
    if not method:
        raise MalformedRequest("invalid request line")
    path = urllib.parse.unquote(urllib.parse.urlsplit(target).path) or "/"
    return method, path


def determine_content_length(headers: dict[str, str], max_body_bytes: int) -> int:
    """Validate and return the declared Content-Length (0 when absent)."""
    if "chunked" in headers.get("transfer-encoding", "").lower():
        raise MalformedRequest("chunked request bodies are not supported")
    header_value = headers.get("content-length")
    if header_value is None:
        return 0
    try:
        content_length = int(header_value)
    except ValueError as exc:
        raise MalformedRequest("invalid Content-Length") from exc
    if content_length < 0:
        raise MalformedRequest("negative Content-Length")
    if content_length > max_body_bytes:
        raise RequestEntityTooLarge
    return content_length


def receive_request(
    client_socket: socket.socket,
    buffer: bytes,
    max_body_bytes: int = MAX_BODY_BYTES,
) -> Tuple[Optional[HttpRequest], bytes]:
    """Read bytes from the socket until a complete request is buffered.

    Returns ``(None, b"")`` when the client goes away before that.
    """
    while HEADER_DELIMITER not in buffer:
        if len(buffer) > MAX_HEADER_BYTES:
            raise MalformedRequest("request headers too large")
        chunk = client_socket.recv(RECV_CHUNK_SIZE)
        if not chunk:
            return None, b""
        buffer += chunk

    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    header_lines = header_block.decode("iso-8859-1").split("\r\n")
    method, path = parse_request_line(header_lines[0])
    headers = parse_headers(header_lines[1:])

    incoming_correlation_id = headers.get("x-request-id")
    if incoming_correlation_id:
        set_correlation_id(incoming_correlation_id)

    content_length = determine_content_length(headers, max_body_bytes)

    while len(remainder) < content_length:
        chunk = client_socket.recv(RECV_CHUNK_SIZE)
        if not chunk:
            return None, b""
        remainder += chunk

    body = remainder[:content_length]
    leftover = remainder[content_length:]
    IO_LOGGER.debug(
        "Parsed request",
        extra={"method": method, "route": path, "bytes_in": len(body)},
    )
    return HttpRequest(method, path, headers, body), leftover


def serialize_response(response: HttpResponse) -> bytes:
    headers = dict(response.headers)

    correlation_id = get_correlation_id()
    if correlation_id:
        headers["X-Request-ID"] = correlation_id

    if status_allows_body(response.status_code):
        headers["Content-Length"] = str(len(response.body))
    if response.close_connection:
        headers["Connection"] = "close"
    header_lines = [response.status_line]
    header_lines.extend(f"{name}: {value}" for name, value in headers.items())
    return "\r\n".join(header_lines).encode("latin-1", "replace") + b"\r\n\r\n" + response.body


def send_response(client_socket: socket.socket, response: HttpResponse) -> None:
    """Serialize and send the HTTP response over the socket."""
    client_socket.sendall(serialize_response(response))
    IO_LOGGER.debug(
        "Sent response",
        extra={"status_code": response.status_code, "bytes_out": len(response.body)},
    )
