"""Tests for core logging module."""

import logging
from io import StringIO

import pytest

from .lib import DEFAULT_LOGGER_NAME, get_logger, setup_logging


class TestLogging:
    """Test core logging API."""

    @pytest.mark.unit
    def test_get_logger(self) -> None:
        """Named loggers are children of the package logger."""
        logger = get_logger("render")
        assert logger.name == "kroki-embed.render"
        assert isinstance(logger, logging.Logger)

    @pytest.mark.unit
    def test_get_logger_default_name(self) -> None:
        """Verify default logger name."""
        logger = get_logger()
        assert logger.name == DEFAULT_LOGGER_NAME == "kroki-embed"

    @pytest.mark.unit
    def test_child_propagates_to_package_logger(self) -> None:
        """Module loggers share the package logger as parent."""
        assert get_logger("cache").parent is get_logger()

    @pytest.mark.unit
    def test_setup_logging(self) -> None:
        """Verify logging setup."""
        stream = StringIO()
        setup_logging(level=logging.DEBUG, stream=stream)
        logger = get_logger("test_setup")
        logger.debug("test message")

        # basicConfig is a no-op once the root logger has handlers, so only
        # the API contract is checked here.
        assert logger.level == logging.NOTSET
