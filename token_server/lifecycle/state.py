"""Shutdown coordination between the accept loop and worker threads."""

import logging
import threading
import time

from token_server.domain.correlation_id import CorrelationLoggerAdapter

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("token_server.lifecycle"), {}
)


class ServerLifecycle:
    """Tracks live workers and whether the server is draining."""

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._draining = threading.Event()
        self._workers: set[threading.Thread] = set()

    def is_draining(self) -> bool:
        return self._draining.is_set()

    def begin_draining(self) -> None:
        """Stop accepting work; the accept loop exits on its next poll."""
        if not self._draining.is_set():
            self._draining.set()
            LIFECYCLE_LOGGER.info(
                "Beginning graceful shutdown", extra={"event": "draining_started"}
            )

    def register_worker(self, thread: threading.Thread) -> None:
        with self._condition:
            self._workers.add(thread)

    def cleanup_worker(self, thread: threading.Thread) -> None:
        with self._condition:
            self._workers.discard(thread)
            self._condition.notify_all()

    def active_worker_count(self) -> int:
        with self._condition:
            return len(self._workers)

    def wait_for_workers(self, timeout: float) -> bool:
        """Block until every worker finished or ``timeout`` seconds passed."""
        deadline = time.monotonic() + timeout
        with self._condition:
            while True:
                self._workers = {w for w in self._workers if w.is_alive()}
                if not self._workers:
                    return True
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    LIFECYCLE_LOGGER.warning(
                        "Shutdown timeout exceeded",
                        extra={"remaining_workers": len(self._workers)},
                    )
                    return False
                self._condition.wait(timeout=min(0.1, remaining))
