"""Shared building blocks for kroki-embed."""

from .errors import KrokiEmbedError
from .log import get_logger, setup_logging

__all__ = ["KrokiEmbedError", "get_logger", "setup_logging"]
