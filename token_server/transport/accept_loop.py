"""Main connection acceptance loop."""

import logging
import socket
import threading
from typing import Callable, Optional

from token_server.bootstrap.socket_factory import bound_address, create_server_socket
from token_server.domain.correlation_id import CorrelationLoggerAdapter
from token_server.domain.response_builders import draining_response
from token_server.lifecycle.state import ServerLifecycle
from token_server.pipeline.dispatcher import DispatchContext
from token_server.pipeline.io import send_response
from token_server.security.cors import CorsConfig
from token_server.transport.context import WorkerContext
from token_server.transport.worker import handle_client

ACCEPT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("token_server.transport.accept"), {}
)


def _reject_while_draining(
    client_socket: socket.socket, cors_config: Optional[CorsConfig]
) -> None:
    try:
        send_response(client_socket, draining_response(cors_config=cors_config))
    except OSError:
        pass
    finally:
        client_socket.close()


def serve_forever(
    server_socket: socket.socket,
    context: WorkerContext,
    lifecycle: ServerLifecycle,
) -> None:
    """Accept connections, one worker thread each, until draining starts."""
    while not lifecycle.is_draining():
        try:
            client_socket, client_address = server_socket.accept()
        except socket.timeout:
            continue
        except OSError as error:
            if lifecycle.is_draining():
                break
            ACCEPT_LOGGER.error(
                "Socket accept failed",
                extra={"event": "accept_error", "error_type": type(error).__name__},
            )
            continue

        if lifecycle.is_draining():
            _reject_while_draining(client_socket, context.dispatch.cors_config)
            break

        if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
            ACCEPT_LOGGER.debug(
                "Client connection accepted",
                extra={
                    "event": "client_accepted",
                    "client": f"{client_address[0]}:{client_address[1]}",
                },
            )
        threading.Thread(
            target=handle_client,
            args=(client_socket, client_address, context),
            daemon=False,
        ).start()


def run_server(
    dispatch: DispatchContext,
    lifecycle: ServerLifecycle,
    on_listening: Optional[Callable[[str, int], None]] = None,
) -> None:
    """Create the listening socket and serve until shutdown completes."""
    config = dispatch.config
    server_socket = create_server_socket(config)
    host, port = bound_address(server_socket)

    ACCEPT_LOGGER.info(
        "Server listening for connections",
        extra={"event": "server_listening", "host": host, "port": port},
    )
    if on_listening is not None:
        on_listening(host, port)

    context = WorkerContext(dispatch=dispatch, lifecycle=lifecycle)
    try:
        serve_forever(server_socket, context, lifecycle)
    finally:
        server_socket.close()
        ACCEPT_LOGGER.info(
            "Waiting for active connections to complete",
            extra={
                "event": "shutdown_waiting",
                "grace_seconds": config.shutdown_grace_seconds,
            },
        )
        lifecycle.wait_for_workers(config.shutdown_grace_seconds)
        ACCEPT_LOGGER.info("Server shutdown complete", extra={"event": "server_stopped"})
