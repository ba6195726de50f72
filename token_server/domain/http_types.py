"""Shared HTTP type definitions to avoid circular imports."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class HttpRequest:
    """Represents a parsed HTTP request with its body fully buffered."""

    method: str
    path: str
    headers: dict[str, str]
    body: bytes

    @property
    def content_type(self) -> Optional[str]:
        """Return the media type of the body, without parameters, lowercased."""
        raw_value = self.headers.get("content-type")
        if raw_value is None:
            return None
        media_type = raw_value.split(";", 1)[0].strip().lower()
        return media_type or None


@dataclass(frozen=True)
class HttpResponse:
    """Represents an HTTP response to be sent to a client."""

    status_code: int
    reason: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    close_connection: bool = False

    @property
    def status_line(self) -> str:
        return f"HTTP/1.1 {self.status_code} {self.reason}"


def should_close(headers: dict[str, str]) -> bool:
    """Determine whether the connection should be closed after responding."""
    return headers.get("connection", "").lower() == "close"


def status_allows_body(status_code: int) -> bool:
    """Informational, 204 and 304 responses carry neither body nor Content-Length."""
    return not (100 <= status_code < 200 or status_code in (204, 304))
