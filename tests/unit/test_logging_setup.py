"""
Tests for structured JSON logging configuration.

This module tests:
- JSONFormatter (JSON log output and context fields)
- setup_logging() (root handler configuration)
- log_with_context() (structured extras)

Tests follow AAA (Arrange, Act, Assert) pattern.
"""

import io
import json
import logging

import pytest

from hybridrepo.core.logging_config import (
    JSONFormatter,
    get_logger,
    log_with_context,
    setup_logging,
)


@pytest.fixture
def json_logger():
    """Isolated logger writing JSON lines to a string stream."""
    logger = logging.getLogger("hybridrepo.tests.json")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    logger.handlers = []

    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)

    yield logger, stream

    logger.handlers = []
    logger.propagate = True


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


class TestJSONFormatter:
    """Tests for the JSON log formatter."""

    def test_basic_message(self, json_logger):
        """
        Test JSONFormatter outputs valid JSON.

        Arrange: Logger with JSONFormatter
        Act: Log a message
        Assert: Output is valid JSON with required fields
        """
        # Arrange
        logger, stream = json_logger

        # Act
        logger.info("Unit of work committed")

        # Assert
        log_data = json.loads(stream.getvalue().strip())
        assert log_data["level"] == "INFO"
        assert log_data["message"] == "Unit of work committed"
        assert log_data["logger"] == "hybridrepo.tests.json"
        assert "timestamp" in log_data

    def test_context_fields_included(self, json_logger):
        logger, stream = json_logger

        logger.debug(
            "Delivered",
            extra={"unit_of_work_id": "uow-1", "entity_type": "Product", "event_type": "PriceChanged"},
        )

        log_data = json.loads(stream.getvalue().strip())
        assert log_data["unit_of_work_id"] == "uow-1"
        assert log_data["entity_type"] == "Product"
        assert log_data["event_type"] == "PriceChanged"

    def test_unknown_extras_passed_through(self, json_logger):
        logger, stream = json_logger

        logger.info("Creating engine", extra={"driver": "postgresql+asyncpg"})

        assert json.loads(stream.getvalue().strip())["driver"] == "postgresql+asyncpg"

    def test_exception_is_formatted(self, json_logger):
        logger, stream = json_logger

        try:
            raise RuntimeError("store down")
        except RuntimeError:
            logger.error("Commit failed", exc_info=True)

        log_data = json.loads(stream.getvalue().strip())
        assert "RuntimeError: store down" in log_data["exception"]

    def test_non_serializable_values_stringified(self, json_logger):
        logger, stream = json_logger

        logger.info("Object", extra={"payload": object()})

        assert "object at" in json.loads(stream.getvalue().strip())["payload"]


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_installs_single_json_handler(self, restore_root_logger):
        """
        Test setup_logging replaces root handlers with one JSON stdout handler.

        Arrange: Root logger with an extra handler
        Act: setup_logging("DEBUG")
        Assert: One handler, JSONFormatter, DEBUG level
        """
        # Arrange
        root = restore_root_logger
        root.addHandler(logging.NullHandler())

        # Act
        setup_logging(level="DEBUG", json_format=True)

        # Assert
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.level == logging.DEBUG

    def test_plain_text_format(self, restore_root_logger):
        setup_logging(level="WARNING", json_format=False)

        root = restore_root_logger
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.level == logging.WARNING

    def test_quiets_noisy_libraries(self, restore_root_logger):
        setup_logging(level="DEBUG")

        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING


class TestLogWithContext:
    """Tests for log_with_context()."""

    def test_sets_given_context_fields_only(self, json_logger):
        logger, stream = json_logger

        log_with_context(logger, "info", "Retrying", attempt=2, unit_of_work_id="uow-9")

        log_data = json.loads(stream.getvalue().strip())
        assert log_data["attempt"] == 2
        assert log_data["unit_of_work_id"] == "uow-9"
        assert "entity_type" not in log_data

    def test_get_logger_returns_named_logger(self):
        assert get_logger("hybridrepo.x").name == "hybridrepo.x"
