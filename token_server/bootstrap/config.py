"""Server configuration and CLI argument parsing."""

import argparse
import math
import os
from dataclasses import dataclass
from typing import Optional

from token_server.domain.durations import parse_duration_millis
from token_server.domain.status_codes import resolve_status


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value is not None else default


MAX_BODY_BYTES = _env_int("TOKEN_SERVER_MAX_BODY_BYTES", 64 * 1024)
DEFAULT_HOST = os.getenv("TOKEN_SERVER_HOST", "127.0.0.1")
DEFAULT_PORT = os.getenv("TOKEN_SERVER_PORT", "0")
DEFAULT_SOCKET_TIMEOUT = _env_int("TOKEN_SERVER_SOCKET_TIMEOUT", 60)
DEFAULT_SHUTDOWN_GRACE_SECONDS = _env_int("TOKEN_SERVER_SHUTDOWN_GRACE_SECONDS", 30)
DEFAULT_AUTHORITY_TIMEOUT = _env_float("TOKEN_SERVER_AUTHORITY_TIMEOUT", 10.0)
DEFAULT_CORS_ALLOWED_ORIGINS = os.getenv("TOKEN_SERVER_CORS_ALLOWED_ORIGINS", "*")

HEADER_DELIMITER = b"\r\n\r\n"
MAX_PORT = 65535

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "Cache-Control": "no-store",
}

USAGE_EPILOG = """\
The GOOGLE_APPLICATION_CREDENTIALS environment variable must name the service
account JSON file of the Firebase project, unless --token or --response-code
is given.

Requests must be POSTed with content type application/json or
application/x-www-form-urlencoded and carry two keys:
  projectId  the Firebase project id (e.g. "my-project")
  appId      the Firebase app id (e.g. "1:1234567890:web:a892437b8923")

Examples:
  {"projectId":"my-project","appId":"1:1234567890:web:a892437b8923"}
  projectId=my-project&appId=1%3A1234567890%3Aweb%3Aa892437b8923

On success the response is application/json with the keys "token" and
"ttlMillis".
"""


@dataclass(frozen=True)
class ForcedResponse:
    """Status line returned for every request when forced by the operator."""

    code: int
    reason: str


@dataclass(frozen=True)
class ServerConfig:
    """Process-wide, read-only settings resolved once at startup."""

    host: str = "127.0.0.1"
    port: int = 0
    forced_response: Optional[ForcedResponse] = None
    forced_token: Optional[str] = None
    forced_ttl_millis: Optional[int] = None
    socket_timeout: int = DEFAULT_SOCKET_TIMEOUT
    shutdown_grace_seconds: int = DEFAULT_SHUTDOWN_GRACE_SECONDS

    @property
    def needs_credentials(self) -> bool:
        """Whether requests can reach the credential authority at all."""
        return self.forced_response is None and self.forced_token is None


def coerce_port(value: str) -> int:
    """Parse a TCP port; ``0`` asks the OS for any free port."""
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid port: {value} (must be a number)"
        ) from None
    if port < 0:
        raise argparse.ArgumentTypeError(
            f"invalid port: {value} (must be greater than or equal to zero)"
        )
    if port > MAX_PORT:
        raise argparse.ArgumentTypeError(
            f"invalid port: {value} (must be less than or equal to {MAX_PORT})"
        )
    return port


def coerce_ttl(value: str) -> int:
    """Parse a TTL given in milliseconds or as a duration such as ``"5m"``."""
    try:
        ttl_millis = parse_duration_millis(value)
    except ValueError:
        ttl_millis = math.nan
    if not math.isfinite(ttl_millis):
        raise argparse.ArgumentTypeError(f'invalid TTL: "{value}" (unable to parse)')
    if ttl_millis < 0:
        raise argparse.ArgumentTypeError(
            f"invalid TTL: {value} ({ttl_millis:g} milliseconds) "
            "(must be greater than or equal to zero)"
        )
    return round(ttl_millis)


def coerce_response_code(value: str) -> ForcedResponse:
    """Accept either a status code (``418``) or a reason phrase (``"OK"``)."""
    try:
        resolved = resolve_status(value)
    except ValueError as error:
        raise argparse.ArgumentTypeError(str(error)) from None
    return ForcedResponse(resolved.code, resolved.reason)


def coerce_token(value: str) -> str:
    if not value:
        raise argparse.ArgumentTypeError("invalid token: must not be empty")
    return value


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for server configuration."""
    parser = argparse.ArgumentParser(
        description=(
            "Run an HTTP server that can be used as a custom App Check provider."
        ),
        epilog=USAGE_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-H",
        "--host",
        default=DEFAULT_HOST,
        help="Network interface on which the HTTP server listens",
    )
    parser.add_argument(
        "-p",
        "--port",
        type=coerce_port,
        default=DEFAULT_PORT,
        help="TCP port to bind; 0 (zero) picks a random available port",
    )
    parser.add_argument(
        "--ttl",
        type=coerce_ttl,
        default=None,
        help=(
            "TTL reported in response bodies, overriding the one granted by the "
            "App Check server; milliseconds or a duration such as 5m or 1h"
        ),
    )
    parser.add_argument(
        "-r",
        "--response-code",
        type=coerce_response_code,
        default=None,
        help=(
            "Unconditionally return this HTTP response, given as a code (418) "
            "or a reason phrase (\"I'm a teapot\")"
        ),
    )
    parser.add_argument(
        "--token",
        type=coerce_token,
        default=None,
        help=(
            "Token to return instead of getting one from the App Check server; "
            "reported with a 30 minute TTL unless --ttl is given"
        ),
    )
    default_log_level = os.getenv("TOKEN_SERVER_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("TOKEN_SERVER_LOG_DESTINATION", "stdout")
    default_log_format = os.getenv("TOKEN_SERVER_LOG_FORMAT", "json").lower()
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--log-format",
        default=default_log_format,
        choices=["json", "text"],
        type=str.lower,
    )
    parser.add_argument(
        "--socket-timeout",
        type=int,
        default=DEFAULT_SOCKET_TIMEOUT,
        help="Socket timeout in seconds for request processing",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=int,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Grace period in seconds for graceful shutdown",
    )
    parser.add_argument(
        "--cors-allowed-origins",
        default=DEFAULT_CORS_ALLOWED_ORIGINS,
        help="Comma-separated list of allowed CORS origins (default: *)",
    )
    return parser.parse_args(argv)


def build_server_config(args: argparse.Namespace) -> ServerConfig:
    """Freeze the parsed arguments into the configuration shared by workers."""
    return ServerConfig(
        host=args.host,
        port=args.port,
        forced_response=args.response_code,
        forced_token=args.token,
        forced_ttl_millis=args.ttl,
        socket_timeout=args.socket_timeout,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
    )
