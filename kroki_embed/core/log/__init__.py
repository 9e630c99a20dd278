"""Logging micro API for kroki-embed."""

from .lib import DEFAULT_LOGGER_NAME, get_logger, setup_logging

__all__ = ["DEFAULT_LOGGER_NAME", "get_logger", "setup_logging"]
