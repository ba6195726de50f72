"""Listening socket creation."""

import logging
import socket

from token_server.bootstrap.config import ServerConfig
from token_server.domain.correlation_id import CorrelationLoggerAdapter

SOCKET_LOGGER = CorrelationLoggerAdapter(logging.getLogger("token_server.socket"), {})

ACCEPT_POLL_SECONDS = 0.5


def create_server_socket(config: ServerConfig) -> socket.socket:
    """Bind the listening socket; port 0 lets the OS pick a free port."""
    try:
        server_socket = socket.create_server((config.host, config.port))
    except OSError as error:
        SOCKET_LOGGER.critical(
            "Failed to bind listening socket",
            extra={
                "event": "bind_failed",
                "host": config.host,
                "port": config.port,
                "error": str(error),
            },
        )
        raise
    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    return server_socket


def bound_address(server_socket: socket.socket) -> tuple[str, int]:
    """Return the host and port the socket actually listens on."""
    host, port = server_socket.getsockname()[:2]
    return host, port
