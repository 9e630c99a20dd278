"""kroki-embed: embed Kroki-rendered diagrams in generated documents."""

from kroki_embed.cache import CacheError, DiagramCache, content_hash
from kroki_embed.config import (
    ConfigError,
    EmbedConfig,
    InsertDirective,
    LinkMode,
    OutputFormat,
)
from kroki_embed.core import KrokiEmbedError
from kroki_embed.encode import decode_diagram, encode_diagram, make_url
from kroki_embed.insert import InsertionError, insert_after_line
from kroki_embed.render import (
    Renderer,
    RenderError,
    render_all,
    render_diagram,
    render_sync,
)

__all__ = [
    # Configuration
    "EmbedConfig",
    "InsertDirective",
    "LinkMode",
    "OutputFormat",
    # Encoding
    "encode_diagram",
    "decode_diagram",
    "make_url",
    "insert_after_line",
    # Rendering
    "Renderer",
    "render_diagram",
    "render_all",
    "render_sync",
    "DiagramCache",
    "content_hash",
    # Errors
    "KrokiEmbedError",
    "ConfigError",
    "InsertionError",
    "RenderError",
    "CacheError",
]
