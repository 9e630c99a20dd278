"""Base exception for kroki-embed."""


class KrokiEmbedError(Exception):
    """Base class for every error raised by kroki-embed."""


__all__ = ["KrokiEmbedError"]
