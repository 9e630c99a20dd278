"""Tests for render module.

Unit tests are mocked with ``httpx.MockTransport`` (no network).
Integration tests require a running Kroki service.
"""

import asyncio
import base64
from urllib.parse import unquote

import httpx
import pytest

from kroki_embed.cache import CacheError, content_hash
from kroki_embed.config import ConfigError, EmbedConfig, InsertDirective, LinkMode
from kroki_embed.encode import decode_diagram, make_url
from kroki_embed.insert import InsertionError
from kroki_embed.render import (
    Renderer,
    RenderError,
    format_inline_url_encode,
    inject_class,
    prepare_request,
    render_all,
    render_diagram,
    render_sync,
)

SERVER = "http://kroki.test"


def _config(**kwargs) -> EmbedConfig:
    kwargs.setdefault("server", SERVER)
    return EmbedConfig(**kwargs)


def _render(stub, config, content, diagram_type="plantuml", **overrides):
    async def go():
        async with stub.client() as client:
            renderer = Renderer(config, client=client)
            return await renderer.render(content, diagram_type, **overrides)

    return asyncio.run(go())


# =============================================================================
# Unit Tests: request preparation
# =============================================================================


class TestPrepareRequest:
    """Tests for insertion + URL building."""

    @pytest.mark.unit
    def test_url_uses_config(self, plantuml_source):
        """URL is built from server, type, format and source."""
        request = prepare_request(plantuml_source, "plantuml", _config())
        assert request.url == make_url(SERVER, "plantuml", plantuml_source, "svg")
        assert request.source == plantuml_source

    @pytest.mark.unit
    def test_insertion_applied_before_encoding(self, plantuml_source):
        """The URL encodes the post-insertion source."""
        config = _config(insert=InsertDirective(1, "!theme sketchy-outline"))
        request = prepare_request(plantuml_source, "plantuml", config)

        assert request.source.split("\n")[1] == "!theme sketchy-outline"
        payload = request.url.rsplit("/", 1)[1]
        assert decode_diagram(payload) == request.source


# =============================================================================
# Unit Tests: markup formatting
# =============================================================================


class TestInjectClass:
    """Tests for class injection into SVG root elements."""

    @pytest.mark.unit
    def test_adds_class_to_root(self):
        """Class attribute is appended to the root tag."""
        result = inject_class('<svg width="1"><g/></svg>', "kroki")
        assert result == '<svg width="1" class="kroki"><g/></svg>'

    @pytest.mark.unit
    def test_preserves_xml_declaration(self, svg_body):
        """Content before the root element is kept."""
        result = inject_class(svg_body.decode(), "kroki")
        assert result.startswith('<?xml version="1.0" encoding="UTF-8"?><svg ')
        assert 'height="40" class="kroki">' in result

    @pytest.mark.unit
    def test_only_root_element(self):
        """Nested svg elements are untouched."""
        result = inject_class("<svg><svg x='1'></svg></svg>", "c")
        assert result == "<svg class=\"c\"><svg x='1'></svg></svg>"

    @pytest.mark.unit
    def test_merges_existing_class(self):
        """Existing class attribute is extended, not duplicated."""
        result = inject_class('<svg class="diagram" a="b"></svg>', "kroki")
        assert result == '<svg class="diagram kroki" a="b"></svg>'

    @pytest.mark.unit
    def test_self_closing_root(self):
        """Self-closing root keeps its slash."""
        assert inject_class("<svg />", "c") == '<svg class="c"/>'

    @pytest.mark.unit
    def test_class_name_escaped(self):
        """Quotes in the class name cannot break the attribute."""
        assert inject_class("<svg>", 'a"b') == '<svg class="a&quot;b">'

    @pytest.mark.unit
    def test_not_svg(self):
        """Documents without an svg element are rejected."""
        with pytest.raises(RenderError, match="not an SVG document"):
            inject_class("<html></html>", "c")


class TestUrlEncodeFormatting:
    """Tests for percent-encoded data URIs."""

    @pytest.mark.unit
    def test_matches_encode_uri_component(self):
        """Unreserved marks stay literal like encodeURIComponent."""
        markup = format_inline_url_encode(b"(a)!~*-_. b", _config())
        assert "src='data:image/svg+xml;utf8,(a)!~*-_.%20b'" in markup

    @pytest.mark.unit
    def test_single_quote_escaped(self):
        """Single quotes are escaped so the attribute stays intact."""
        markup = format_inline_url_encode(b"<svg a='1'/>", _config())
        assert markup == (
            "<img class=\"kroki\" "
            "src='data:image/svg+xml;utf8,%3Csvg%20a%3D%271%27%2F%3E'>"
        )

    @pytest.mark.unit
    def test_png_has_no_charset(self):
        """Binary formats get a plain MIME type."""
        markup = format_inline_url_encode(b"\x89PNG", _config(output_format="png"))
        assert "src='data:image/png,%89PNG'" in markup


# =============================================================================
# Unit Tests: Renderer link modes (mocked HTTP)
# =============================================================================


class TestRendererLinkModes:
    """Tests for each link mode."""

    @pytest.mark.unit
    def test_inline(self, kroki_stub, svg_body, plantuml_source):
        """inline returns the SVG with the class on its root."""
        stub = kroki_stub(content=svg_body)
        config = _config(link="inline", class_name="uml")
        result = _render(stub, config, plantuml_source)

        assert result == inject_class(svg_body.decode("utf-8"), "uml")
        assert len(stub.requests) == 1

    @pytest.mark.unit
    def test_inline_requires_svg(self, kroki_stub, plantuml_source):
        """inline with png output is a configuration error."""
        stub = kroki_stub()
        with pytest.raises(ConfigError, match="requires svg"):
            _render(stub, _config(link="inline", output_format="png"), plantuml_source)
        assert stub.requests == []

    @pytest.mark.unit
    def test_inline_invalid_utf8(self, kroki_stub, plantuml_source):
        """Undecodable SVG bodies raise RenderError."""
        stub = kroki_stub(content=b"<svg>\xff</svg>")
        with pytest.raises(RenderError, match="not valid UTF-8"):
            _render(stub, _config(link="inline"), plantuml_source)

    @pytest.mark.unit
    def test_inline_base64(self, kroki_stub, svg_body, plantuml_source):
        """inlineBase64 embeds the body as a base64 data URI."""
        stub = kroki_stub(content=svg_body)
        result = _render(stub, _config(link="inlineBase64"), plantuml_source)

        encoded = base64.b64encode(svg_body).decode("ascii")
        assert result == (
            f"<img class=\"kroki\" src='data:image/svg+xml;base64,{encoded}'>"
        )

    @pytest.mark.unit
    def test_inline_base64_png(self, kroki_stub, plantuml_source):
        """PNG bodies get the PNG MIME type."""
        png = b"\x89PNG\r\n\x1a\nfake"
        stub = kroki_stub(content=png)
        result = _render(
            stub, _config(link="inlineBase64", output_format="png"), plantuml_source
        )
        assert "data:image/png;base64," in result
        assert str(stub.requests[0].url).split("/")[-2] == "png"

    @pytest.mark.unit
    def test_inline_url_encode(self, kroki_stub, svg_body, plantuml_source):
        """inlineUrlEncode round-trips through percent decoding."""
        stub = kroki_stub(content=svg_body)
        result = _render(stub, _config(link="inlineUrlEncode"), plantuml_source)

        prefix = "<img class=\"kroki\" src='data:image/svg+xml;utf8,"
        assert result.startswith(prefix) and result.endswith("'>")
        assert unquote(result[len(prefix) : -2]) == svg_body.decode("utf-8")

    @pytest.mark.unit
    def test_external_link_without_network(self, kroki_stub, plantuml_source):
        """externalLink never touches the network."""
        stub = kroki_stub(error=AssertionError("no request expected"))
        result = _render(stub, _config(link="externalLink"), plantuml_source)

        url = make_url(SERVER, "plantuml", plantuml_source, "svg")
        assert result == f'<img class="kroki" src="{url}" />'
        assert stub.requests == []

    @pytest.mark.unit
    def test_render_external_is_synchronous(self, plantuml_source):
        """render_external needs no event loop or client."""
        renderer = Renderer(_config(link="inlineBase64"))
        result = renderer.render_external(plantuml_source, "vegalite")
        assert f'src="{SERVER}/vegalite/svg/' in result

    @pytest.mark.unit
    def test_requested_url(self, kroki_stub, plantuml_source):
        """The GET goes to the encoder's URL for the post-insertion source."""
        stub = kroki_stub()
        config = _config(insert=InsertDirective(0, "' generated"))
        _render(stub, config, plantuml_source)

        expected_source = "' generated\n" + plantuml_source
        expected = make_url(SERVER, "plantuml", expected_source, "svg")
        assert str(stub.requests[0].url) == expected
        assert stub.requests[0].method == "GET"

    @pytest.mark.unit
    def test_overrides_are_per_call(self, kroki_stub, plantuml_source):
        """Per-call overrides leave the renderer config untouched."""
        stub = kroki_stub()
        config = _config()

        async def go():
            async with stub.client() as client:
                renderer = Renderer(config, client=client)
                markup = await renderer.render(
                    plantuml_source, "plantuml", link="externalLink", class_name="x"
                )
                return renderer, markup

        renderer, markup = asyncio.run(go())
        assert markup.startswith('<img class="x" src=')
        assert renderer.config is config
        assert renderer.config.link is LinkMode.INLINE_BASE64

    @pytest.mark.unit
    def test_unknown_link_override(self, kroki_stub, plantuml_source):
        """Unknown link modes are rejected before any request."""
        stub = kroki_stub()
        with pytest.raises(ConfigError):
            _render(stub, _config(), plantuml_source, link="inlineHex")
        assert stub.requests == []

    @pytest.mark.unit
    def test_insertion_error_propagates(self, kroki_stub):
        """Out-of-range insert lines fail loudly."""
        stub = kroki_stub()
        config = _config(insert=InsertDirective(10, "!theme plain"))
        with pytest.raises(InsertionError):
            _render(stub, config, "@startuml\n@enduml")
        assert stub.requests == []


class TestRendererLocalLink:
    """Tests for localLink caching."""

    @pytest.mark.unit
    def test_writes_file_and_links_it(self, kroki_stub, svg_body, tmp_path):
        """Body is cached under public_dir; URL drops the public_dir prefix."""
        public = tmp_path / "public"
        stub = kroki_stub(content=svg_body)
        config = _config(link="localLink", public_dir=str(public), asset_path="assert")
        source = "@startuml\nA -> B\n@enduml"

        result = _render(stub, config, source)

        key = content_hash(source)
        assert result == f'<img class="kroki" src="/assert/puml/{key}.svg"/>'
        assert (public / "assert" / "puml" / f"{key}.svg").read_bytes() == svg_body

    @pytest.mark.unit
    def test_hash_uses_post_insertion_source(self, kroki_stub, tmp_path):
        """The cache key covers the inserted preamble."""
        stub = kroki_stub()
        config = _config(
            link="localLink",
            public_dir=str(tmp_path),
            insert=InsertDirective(1, "!theme plain"),
        )
        source = "@startuml\nA -> B\n@enduml"

        result = _render(stub, config, source)

        final_source = "@startuml\n!theme plain\nA -> B\n@enduml\n"
        assert f"/{content_hash(final_source)}.svg" in result
        assert f"/{content_hash(source)}.svg" not in result

    @pytest.mark.unit
    def test_same_content_same_path(self, kroki_stub, tmp_path):
        """Identical content maps to one file; different content does not."""
        stub = kroki_stub()
        config = _config(link="localLink", public_dir=str(tmp_path))

        first = _render(stub, config, "A -> B")
        second = _render(stub, config, "A -> B")
        other = _render(stub, config, "B -> A")

        assert first == second
        assert first != other

    @pytest.mark.unit
    def test_existing_file_reused(self, kroki_stub, tmp_path):
        """A cached file short-circuits the fetch."""
        stub = kroki_stub()
        config = _config(link="localLink", public_dir=str(tmp_path))

        _render(stub, config, "A -> B")
        _render(stub, config, "A -> B")

        assert len(stub.requests) == 1

    @pytest.mark.unit
    def test_reuse_disabled_refetches(self, kroki_stub, tmp_path):
        """reuse_cache=False always fetches and overwrites."""
        stub = kroki_stub(content=b"<svg>v1</svg>")
        config = _config(
            link="localLink", public_dir=str(tmp_path), reuse_cache=False
        )

        _render(stub, config, "A -> B")
        stub.content = b"<svg>v2</svg>"
        _render(stub, config, "A -> B")

        assert len(stub.requests) == 2
        path = tmp_path / "assert" / "puml" / f"{content_hash('A -> B')}.svg"
        assert path.read_bytes() == b"<svg>v2</svg>"

    @pytest.mark.unit
    def test_png_extension(self, kroki_stub, tmp_path):
        """Cache files carry the output format extension."""
        stub = kroki_stub(content=b"\x89PNG")
        config = _config(
            link="localLink", public_dir=str(tmp_path), output_format="png"
        )
        result = _render(stub, config, "A -> B")
        assert result.endswith('.png"/>')

    @pytest.mark.unit
    def test_error_status_leaves_no_file(self, kroki_stub, tmp_path):
        """Failed responses raise and are not cached."""
        stub = kroki_stub(status_code=400, content=b"Syntax Error?")
        config = _config(link="localLink", public_dir=str(tmp_path))

        with pytest.raises(RenderError) as exc_info:
            _render(stub, config, "A -> B")

        assert exc_info.value.status_code == 400
        assert exc_info.value.response_body == "Syntax Error?"
        assert list((tmp_path / "assert" / "puml").iterdir()) == []

    @pytest.mark.unit
    def test_unwritable_public_dir(self, kroki_stub, tmp_path):
        """File system errors surface as CacheError."""
        blocker = tmp_path / "public"
        blocker.write_text("file, not directory")
        stub = kroki_stub()
        config = _config(link="localLink", public_dir=str(blocker))

        with pytest.raises(CacheError):
            _render(stub, config, "A -> B")


class TestRendererErrors:
    """Tests for transport and status failures."""

    @pytest.mark.unit
    def test_error_status(self, kroki_stub, plantuml_source):
        """Non-2xx responses raise RenderError with details."""
        stub = kroki_stub(status_code=500, content=b"boom")
        with pytest.raises(RenderError) as exc_info:
            _render(stub, _config(), plantuml_source)

        error = exc_info.value
        assert error.status_code == 500
        assert error.response_body == "boom"
        assert error.url == str(stub.requests[0].url)

    @pytest.mark.unit
    def test_connection_error(self, kroki_stub, plantuml_source):
        """Transport errors are wrapped and chained."""
        stub = kroki_stub(error=httpx.ConnectError("Connection refused"))
        with pytest.raises(RenderError, match="request failed") as exc_info:
            _render(stub, _config(), plantuml_source)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.unit
    def test_timeout(self, kroki_stub, plantuml_source):
        """Timeouts are reported as such."""
        stub = kroki_stub(error=httpx.ReadTimeout("too slow"))
        with pytest.raises(RenderError, match="timed out"):
            _render(stub, _config(), plantuml_source)

    @pytest.mark.unit
    def test_local_link_connection_error(self, kroki_stub, tmp_path):
        """Transport errors in localLink mode are wrapped too."""
        stub = kroki_stub(error=httpx.ConnectError("Connection refused"))
        config = _config(link="localLink", public_dir=str(tmp_path))
        with pytest.raises(RenderError, match="request failed"):
            _render(stub, config, "A -> B")


class TestRendererLifecycle:
    """Tests for client ownership and health checks."""

    @pytest.mark.unit
    def test_injected_client_not_closed(self, kroki_stub):
        """Renderer leaves caller-owned clients open."""
        stub = kroki_stub()

        async def go():
            async with stub.client() as client:
                async with Renderer(_config(), client=client):
                    pass
                return client.is_closed

        assert asyncio.run(go()) is False

    @pytest.mark.unit
    def test_owned_client_closed(self):
        """Renderer closes the client it created."""

        async def go():
            renderer = Renderer(_config())
            client = renderer.client
            await renderer.aclose()
            return client.is_closed

        assert asyncio.run(go()) is True

    @pytest.mark.unit
    def test_is_available(self, kroki_stub):
        """Health check hits /health."""
        stub = kroki_stub(content=b"{}")

        async def go():
            async with stub.client() as client:
                return await Renderer(_config(), client=client).is_available()

        assert asyncio.run(go()) is True
        assert str(stub.requests[0].url) == f"{SERVER}/health"

    @pytest.mark.unit
    def test_is_available_failure(self, kroki_stub):
        """Connection errors mean unavailable."""
        stub = kroki_stub(error=httpx.ConnectError("Connection refused"))

        async def go():
            async with stub.client() as client:
                return await Renderer(_config(), client=client).is_available()

        assert asyncio.run(go()) is False


class TestConvenienceFunctions:
    """Tests for module-level helpers."""

    @pytest.mark.unit
    def test_render_diagram(self, kroki_stub, plantuml_source):
        """render_diagram renders with the given client."""
        stub = kroki_stub()

        async def go():
            async with stub.client() as client:
                return await render_diagram(
                    plantuml_source, "plantuml", _config(), client=client
                )

        assert asyncio.run(go()).startswith("<img class=\"kroki\" src='data:")

    @pytest.mark.unit
    def test_render_all_keeps_order(self, kroki_stub):
        """Concurrent renders return results in input order."""
        stub = kroki_stub()
        items = [("A -> B", "plantuml"), ("{}", "vegalite"), ("a -> b", "graphviz")]

        async def go():
            async with stub.client() as client:
                return await render_all(
                    items, _config(), client=client, link="externalLink"
                )

        results = asyncio.run(go())
        for (source, diagram_type), markup in zip(items, results):
            assert make_url(SERVER, diagram_type, source, "svg") in markup

    @pytest.mark.unit
    def test_render_all_raises_first_failure(self, kroki_stub):
        """A failing call surfaces after the batch finishes."""
        stub = kroki_stub(status_code=503, content=b"down")

        async def go():
            async with stub.client() as client:
                return await render_all(
                    [("A", "plantuml"), ("B", "plantuml")], _config(), client=client
                )

        with pytest.raises(RenderError):
            asyncio.run(go())
        assert len(stub.requests) == 2

    @pytest.mark.unit
    def test_render_sync_external_link(self, plantuml_source):
        """render_sync works without network for externalLink."""
        result = render_sync(plantuml_source, "plantuml", _config(link="externalLink"))
        assert result.startswith(f'<img class="kroki" src="{SERVER}/plantuml/svg/')


# =============================================================================
# Integration Tests (require running Kroki)
# =============================================================================


class TestRendererIntegration:
    """Integration tests requiring a reachable Kroki service."""

    @pytest.mark.kroki
    @pytest.mark.integration
    def test_inline_svg(self, kroki_service, plantuml_source):
        """Kroki returns an SVG that gets the class injected."""
        config = EmbedConfig(server=kroki_service, link="inline")
        result = render_sync(plantuml_source, "plantuml", config)
        assert "<svg" in result
        assert 'class="kroki"' in result

    @pytest.mark.kroki
    @pytest.mark.integration
    def test_local_link_png(self, kroki_service, plantuml_source, tmp_path):
        """PNG output is cached to disk."""
        config = EmbedConfig(
            server=kroki_service,
            link="localLink",
            output_format="png",
            public_dir=str(tmp_path),
        )
        render_sync(plantuml_source, "plantuml", config)

        cached = tmp_path / "assert" / "puml" / f"{content_hash(plantuml_source)}.png"
        assert cached.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"
