"""Kroki diagram payload codec.

See: https://docs.kroki.io/kroki/setup/encode-diagram/

The payload is ``base64url(zlib(utf8(source), level=9))``. Padding is kept
on encode; Kroki accepts it with or without the trailing ``=``.
"""

import base64
import binascii
import zlib

from kroki_embed.config import OutputFormat, parse_output_format

COMPRESSION_LEVEL = 9


def encode_diagram(source: str) -> str:
    """Encode diagram source for a Kroki URL path.

    Args:
        source: Raw diagram source.

    Returns:
        URL-safe base64 string of the zlib-compressed UTF-8 bytes.
    """
    compressed = zlib.compress(source.encode("utf-8"), level=COMPRESSION_LEVEL)
    return base64.urlsafe_b64encode(compressed).decode("ascii")


def decode_diagram(payload: str) -> str:
    """Decode a Kroki URL payload back to diagram source.

    Missing ``=`` padding is restored before decoding.

    Raises:
        ValueError: If the payload is not valid base64url/zlib/UTF-8.
    """
    padded = payload + "=" * (-len(payload) % 4)
    try:
        compressed = base64.urlsafe_b64decode(padded.encode("ascii"))
        return zlib.decompress(compressed).decode("utf-8")
    except (binascii.Error, zlib.error, UnicodeError) as e:
        raise ValueError(f"Malformed diagram payload: {e}") from e


def make_url(
    base_url: str,
    diagram_type: str,
    source: str,
    output_format: OutputFormat | str,
) -> str:
    """Build the Kroki GET URL for a diagram.

    Args:
        base_url: Kroki server URL, e.g. ``https://kroki.io``.
        diagram_type: Kroki backend, e.g. ``plantuml`` or ``vegalite``.
        source: Diagram source text.
        output_format: Requested image format.

    Returns:
        ``<base_url>/<diagram_type>/<format>/<payload>``
    """
    fmt = parse_output_format(output_format)
    return "/".join([base_url, diagram_type, fmt.value, encode_diagram(source)])


__all__ = ["COMPRESSION_LEVEL", "decode_diagram", "encode_diagram", "make_url"]
