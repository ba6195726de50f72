"""App Check token server entry point."""

import logging
import signal
import sys
from typing import Optional

from token_server.authority.client import AppCheckAuthority
from token_server.bootstrap.config import (
    DEFAULT_AUTHORITY_TIMEOUT,
    ServerConfig,
    build_server_config,
    parse_cli_args,
)
from token_server.bootstrap.credentials import (
    CredentialsError,
    load_default_service_account,
    resolve_project_id,
)
from token_server.bootstrap.logging_setup import configure_logging
from token_server.domain.correlation_id import CorrelationLoggerAdapter
from token_server.lifecycle.state import ServerLifecycle
from token_server.pipeline.dispatcher import DispatchContext
from token_server.security.cors import CorsConfig
from token_server.transport.accept_loop import run_server

SERVER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("token_server.server"), {})

EXIT_CONFIGURATION_ERROR = 2


def build_dispatch_context(
    config: ServerConfig, cors_config: Optional[CorsConfig] = None
) -> DispatchContext:
    """Resolve credentials (when requests can need them) into the dispatch context.

    Raises ``CredentialsError`` when the credentials cannot be loaded.
    """
    if not config.needs_credentials:
        return DispatchContext(config=config, cors_config=cors_config)

    account = load_default_service_account()
    project_id = resolve_project_id(account)
    if not project_id:
        raise CredentialsError(
            "unable to determine the Firebase project id; set project_id in the "
            "service account file or the GOOGLE_CLOUD_PROJECT environment variable"
        )
    authority = AppCheckAuthority(account, project_id, timeout=DEFAULT_AUTHORITY_TIMEOUT)
    return DispatchContext(
        config=config,
        authority=authority,
        expected_project_id=project_id,
        cors_config=cors_config,
    )


def _announce(host: str, port: int) -> None:
    print(f"Listening on http://{host}:{port}", flush=True)


def main(argv: Optional[list[str]] = None) -> None:
    """Start the token server and serve until SIGINT or SIGTERM."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(
        args.log_level, args.log_destination, use_json=args.log_format == "json"
    )
    config = build_server_config(args)

    try:
        dispatch = build_dispatch_context(
            config, CorsConfig.from_csv(args.cors_allowed_origins)
        )
    except CredentialsError as error:
        SERVER_LOGGER.critical(
            "Invalid credentials configuration",
            extra={"event": "configuration_error", "error": str(error)},
        )
        print(f"error: {error}", file=sys.stderr)
        sys.exit(EXIT_CONFIGURATION_ERROR)

    lifecycle = ServerLifecycle()

    def shutdown_handler(signum: int, _frame) -> None:
        SERVER_LOGGER.info("Received shutdown signal", extra={"signal": signum})
        lifecycle.begin_draining()

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    SERVER_LOGGER.info(
        "Starting token server",
        extra={
            "event": "server_starting",
            "host": config.host,
            "port": config.port,
            "log_destination": args.log_destination,
            "log_level": args.log_level,
            "socket_timeout": config.socket_timeout,
            "shutdown_grace_seconds": config.shutdown_grace_seconds,
            "forced": not config.needs_credentials,
        },
    )
    try:
        run_server(dispatch, lifecycle, on_listening=_announce)
    except OSError as error:
        print(f"error: unable to listen on {config.host}:{config.port}: {error}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
