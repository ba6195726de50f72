"""Worker thread logic for handling individual client connections."""

import logging
import socket
import threading
from dataclasses import dataclass
from typing import Optional

from token_server.bootstrap.config import MAX_BODY_BYTES
from token_server.domain.correlation_id import (
    CorrelationLoggerAdapter,
    clear_correlation_id,
    generate_correlation_id,
    set_correlation_id,
)
from token_server.domain.http_types import HttpRequest
from token_server.domain.response_builders import (
    draining_response,
    entity_too_large_response,
    malformed_request_response,
)
from token_server.lifecycle.state import ServerLifecycle
from token_server.pipeline.dispatcher import dispatch_request
from token_server.pipeline.io import (
    MalformedRequest,
    RequestEntityTooLarge,
    receive_request,
    send_response,
)
from token_server.security.cors import CorsConfig
from token_server.transport.context import WorkerContext

WORKER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("token_server.transport.worker"), {}
)


@dataclass
class _Connection:
    client_socket: socket.socket
    client: str
    thread: threading.Thread


def _read_request(
    connection: _Connection,
    buffer: bytes,
    max_body_bytes: int,
    cors_config: Optional[CorsConfig] = None,
) -> tuple[Optional[HttpRequest], bytes]:
    """Read the next request; on framing errors answer and return ``None``."""
    try:
        return receive_request(connection.client_socket, buffer, max_body_bytes)
    except RequestEntityTooLarge:
        WORKER_LOGGER.warning(
            "Request body size exceeded limit",
            extra={
                "event": "body_size_exceeded",
                "client": connection.client,
                "limit": max_body_bytes,
            },
        )
        send_response(
            connection.client_socket,
            entity_too_large_response(max_body_bytes, cors_config),
        )
    except MalformedRequest as error:
        WORKER_LOGGER.warning(
            "Malformed request received",
            extra={
                "event": "malformed_request",
                "client": connection.client,
                "detail": str(error),
            },
        )
        send_response(
            connection.client_socket,
            malformed_request_response(str(error), cors_config),
        )
    return None, b""


def _serve(connection: _Connection, context: WorkerContext) -> None:
    lifecycle = context.lifecycle
    max_body_bytes = context.max_body_bytes or MAX_BODY_BYTES
    buffer = b""
    while True:
        set_correlation_id(generate_correlation_id())
        request, buffer = _read_request(
            connection, buffer, max_body_bytes, context.dispatch.cors_config
        )
        if request is None:
            if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
                WORKER_LOGGER.debug(
                    "Connection finished",
                    extra={"event": "client_disconnected", "client": connection.client},
                )
            return

        if lifecycle is not None and lifecycle.is_draining():
            send_response(
                connection.client_socket,
                draining_response(request, context.dispatch.cors_config),
            )
            return

        response = dispatch_request(request, context.dispatch)
        send_response(connection.client_socket, response)
        clear_correlation_id()
        if response.close_connection:
            return


def _cleanup(connection: _Connection, lifecycle: Optional[ServerLifecycle]) -> None:
    if lifecycle is not None:
        lifecycle.cleanup_worker(connection.thread)
    try:
        connection.client_socket.shutdown(socket.SHUT_WR)
    except OSError:
        pass
    connection.client_socket.close()
    WORKER_LOGGER.debug(
        "Socket closed", extra={"event": "socket_closed", "client": connection.client}
    )
    clear_correlation_id()


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Serve requests on a client socket until the connection is closed."""
    connection = _Connection(
        client_socket,
        f"{client_address[0]}:{client_address[1]}",
        threading.current_thread(),
    )
    lifecycle = context.lifecycle
    if lifecycle is not None:
        lifecycle.register_worker(connection.thread)
    client_socket.settimeout(context.dispatch.config.socket_timeout)

    try:
        _serve(connection, context)
    except (ConnectionError, TimeoutError, OSError) as error:
        WORKER_LOGGER.error(
            "Error handling client connection",
            extra={
                "event": "connection_error",
                "client": connection.client,
                "error_type": type(error).__name__,
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": connection.client,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
    finally:
        _cleanup(connection, lifecycle)
