"""Tests for logging configuration."""

import logging

import pytest

from campus_access.app_logging import configure_logging


@pytest.fixture
def app_logger():
    logger = logging.getLogger("campus_access")
    saved_handlers, saved_propagate = list(logger.handlers), logger.propagate
    logger.handlers.clear()
    yield logger
    logger.handlers[:] = saved_handlers
    logger.propagate = saved_propagate


def test_configure_logging_idempotent(app_logger) -> None:
    configure_logging()
    first_count = len(app_logger.handlers)

    configure_logging()
    second_count = len(app_logger.handlers)

    assert first_count == 1
    assert second_count == 1
    assert app_logger.propagate is False
