"""Unit tests for correlation ID functionality."""

import logging
import threading
import uuid
from unittest.mock import MagicMock

from token_server.domain.correlation_id import (
    CorrelationLoggerAdapter,
    clear_correlation_id,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)


def mock_logger(name="token_server.transport.worker"):
    logger = MagicMock(spec=logging.Logger)
    logger.name = name
    return logger


class TestCorrelationIdContext:
    """Test correlation ID context management."""

    def test_generate_correlation_id_returns_unique_uuids(self):
        first = generate_correlation_id()
        second = generate_correlation_id()
        uuid.UUID(first)
        assert first != second

    def test_set_get_and_clear(self):
        set_correlation_id("test-correlation-id-123")
        assert get_correlation_id() == "test-correlation-id-123"
        clear_correlation_id()
        assert get_correlation_id() is None

    def test_correlation_id_isolated_between_threads(self):
        """Separate threads keep independent IDs."""

        results = {}

        def worker(worker_id: str):
            set_correlation_id(f"worker-{worker_id}")
            results[worker_id] = get_correlation_id()
            clear_correlation_id()

        threads = [threading.Thread(target=worker, args=(str(i),)) for i in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results == {str(i): f"worker-{i}" for i in range(5)}


class TestCorrelationLoggerAdapter:
    """Test CorrelationLoggerAdapter behavior."""

    def test_adapter_injects_correlation_id_and_component(self):
        logger = mock_logger()
        adapter = CorrelationLoggerAdapter(logger, {})

        set_correlation_id("test-correlation-123")
        try:
            adapter.info("Test message")
        finally:
            clear_correlation_id()

        extra = logger.log.call_args.kwargs["extra"]
        assert extra["correlation_id"] == "test-correlation-123"
        assert extra["component"] == "transport.worker"

    def test_adapter_uses_placeholder_without_correlation_id(self):
        logger = mock_logger("elsewhere")
        adapter = CorrelationLoggerAdapter(logger, {})

        clear_correlation_id()
        adapter.info("Test message")

        extra = logger.log.call_args.kwargs["extra"]
        assert extra["correlation_id"] == "-"
        assert extra["component"] == "elsewhere"

    def test_adapter_preserves_but_does_not_modify_extra(self):
        logger = mock_logger()
        adapter = CorrelationLoggerAdapter(logger, {})

        original_extra = {"field": "value"}
        adapter.info("Test message", extra=original_extra)

        assert logger.log.call_args.kwargs["extra"]["field"] == "value"
        assert original_extra == {"field": "value"}
