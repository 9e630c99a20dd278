"""Tests for the Kroki payload codec."""

import base64
import zlib

import pytest

from kroki_embed.config import ConfigError, OutputFormat

from .lib import decode_diagram, encode_diagram, make_url

PLANTUML = "@startuml\nA->B\n@enduml"


class TestEncodeDiagram:
    """Tests for encode_diagram."""

    @pytest.mark.unit
    def test_url_safe_alphabet(self):
        """Output only uses the URL-safe base64 alphabet."""
        encoded = encode_diagram("test diagram" * 50)
        assert all(c.isalnum() or c in "-_=" for c in encoded)
        assert "+" not in encoded and "/" not in encoded

    @pytest.mark.unit
    def test_zlib_stream_at_max_level(self):
        """Payload is a zlib stream compressed at level 9."""
        compressed = base64.urlsafe_b64decode(encode_diagram(PLANTUML))
        # zlib header: CMF 0x78, FLG 0xDA marks maximum compression
        assert compressed[:2] == b"\x78\xda"
        assert zlib.decompress(compressed) == PLANTUML.encode("utf-8")

    @pytest.mark.unit
    def test_deterministic(self):
        """Same input gives the same payload."""
        assert encode_diagram(PLANTUML) == encode_diagram(PLANTUML)

    @pytest.mark.unit
    def test_non_ascii_round_trip(self):
        """UTF-8 bytes survive the round trip unchanged."""
        source = "@startuml\nÄlice -> Bøb : こんにちは 🚀\n@enduml"
        assert decode_diagram(encode_diagram(source)) == source

    @pytest.mark.unit
    def test_empty_source(self):
        """Empty source still produces a decodable payload."""
        assert decode_diagram(encode_diagram("")) == ""


class TestDecodeDiagram:
    """Tests for decode_diagram."""

    @pytest.mark.unit
    def test_tolerates_missing_padding(self):
        """Payloads with stripped '=' still decode."""
        encoded = encode_diagram("digraph { a -> b }")
        assert decode_diagram(encoded.rstrip("=")) == "digraph { a -> b }"

    @pytest.mark.unit
    def test_malformed_payload(self):
        """Garbage input raises ValueError."""
        with pytest.raises(ValueError, match="Malformed diagram payload"):
            decode_diagram("bm90LXpsaWI")


class TestMakeUrl:
    """Tests for make_url."""

    @pytest.mark.unit
    def test_url_layout(self):
        """URL is server/type/format/payload."""
        url = make_url("https://kroki.io", "plantuml", PLANTUML, "svg")
        base, diagram_type, fmt, payload = url.rsplit("/", 3)
        assert base == "https://kroki.io"
        assert diagram_type == "plantuml"
        assert fmt == "svg"
        assert decode_diagram(payload) == PLANTUML

    @pytest.mark.unit
    def test_accepts_enum_format(self):
        """OutputFormat members and strings give the same URL."""
        assert make_url("http://k", "vegalite", "{}", OutputFormat.PNG) == make_url(
            "http://k", "vegalite", "{}", "png"
        )

    @pytest.mark.unit
    def test_format_changes_url(self):
        """Format is part of the URL."""
        svg = make_url("http://k", "plantuml", PLANTUML, "svg")
        png = make_url("http://k", "plantuml", PLANTUML, "png")
        assert svg != png
        assert svg.rsplit("/", 1)[1] == png.rsplit("/", 1)[1]

    @pytest.mark.unit
    def test_unsupported_format(self):
        """Formats outside svg/png are rejected."""
        with pytest.raises(ConfigError):
            make_url("http://k", "plantuml", PLANTUML, "pdf")
