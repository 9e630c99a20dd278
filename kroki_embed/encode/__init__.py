"""Kroki URL encoding.

Turns diagram source text into the compressed, URL-safe path segment the
Kroki service decodes, and builds full request URLs from it.
"""

from .lib import decode_diagram, encode_diagram, make_url

__all__ = ["decode_diagram", "encode_diagram", "make_url"]
