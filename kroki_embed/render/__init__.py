"""Render module for embedding Kroki diagrams in documents.

Builds Kroki URLs from diagram source, fetches the rendered image and
returns markup for the configured link mode.
"""

from .lib import (
    RenderError,
    Renderer,
    RenderRequest,
    format_external_link,
    format_inline,
    format_inline_base64,
    format_inline_url_encode,
    format_local_link,
    inject_class,
    prepare_request,
    render_all,
    render_diagram,
    render_sync,
)

__all__ = [
    "RenderError",
    "RenderRequest",
    "Renderer",
    "format_external_link",
    "format_inline",
    "format_inline_base64",
    "format_inline_url_encode",
    "format_local_link",
    "inject_class",
    "prepare_request",
    "render_all",
    "render_diagram",
    "render_sync",
]
