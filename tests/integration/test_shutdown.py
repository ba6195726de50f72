"""Integration tests for graceful shutdown behavior."""

from __future__ import annotations

import signal
import subprocess
import sys

import pytest

from tests.conftest import SERVER_ENTRYPOINT, server_environment
from tests.utils.http import reserve_port, wait_for_port

pytestmark = pytest.mark.integration


@pytest.fixture(name="forced_token_server")
def _forced_token_server():
    port = reserve_port()
    with subprocess.Popen(
        [
            sys.executable,
            str(SERVER_ENTRYPOINT),
            "--host",
            "127.0.0.1",
            "--port",
            str(port),
            "--token",
            "ftok",
            "--shutdown-grace-seconds",
            "2",
        ],
        cwd=SERVER_ENTRYPOINT.parent,
        env=server_environment(),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    ) as process:
        wait_for_port("127.0.0.1", port)
        yield process
        if process.poll() is None:
            process.kill()


@pytest.mark.parametrize("signum", [signal.SIGTERM, signal.SIGINT])
def test_signal_stops_server_cleanly(forced_token_server, signum) -> None:
    """SIGTERM and SIGINT drain and exit with status 0."""

    forced_token_server.send_signal(signum)
    assert forced_token_server.wait(timeout=10) == 0
    stdout = forced_token_server.stdout.read()
    assert "server_stopped" in stdout
