"""Kroki rendering resolver.

Fetches diagrams from a Kroki server and turns the response into markup
according to the configured link mode:

- ``inline``: raw SVG with the class injected into the root element
- ``inlineBase64``: ``<img>`` with a base64 ``data:`` URI
- ``inlineUrlEncode``: ``<img>`` with a percent-encoded ``data:`` URI
- ``localLink``: image cached under the public directory, ``<img>`` links it
- ``externalLink``: ``<img>`` pointing straight at the Kroki URL (no I/O)
"""

from __future__ import annotations

import asyncio
import base64
import html
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from kroki_embed.cache import DiagramCache
from kroki_embed.config import ConfigError, EmbedConfig, LinkMode, OutputFormat
from kroki_embed.core import KrokiEmbedError, get_logger
from kroki_embed.encode import make_url
from kroki_embed.insert import apply_directive

logger = get_logger("render")

# encodeURIComponent leaves these unescaped; "'" is dropped from the set
# because data URIs are emitted inside single-quoted attributes.
_URI_COMPONENT_SAFE = "-_.!~*()"

_SVG_START_TAG = re.compile(r"<svg\b([^>]*?)(/?)>")
_CLASS_ATTR = re.compile(r"""(\sclass\s*=\s*)(["'])(.*?)\2""", re.DOTALL)


class RenderError(KrokiEmbedError):
    """Error while fetching or decoding a rendered diagram."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        url: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.url = url


@dataclass(frozen=True)
class RenderRequest:
    """A single diagram ready to be fetched.

    Attributes:
        diagram_type: Kroki backend name.
        source: Final diagram source (after preamble insertion).
        url: Kroki GET URL for ``source``.
        config: Effective configuration for this call.
    """

    diagram_type: str
    source: str
    url: str
    config: EmbedConfig


def prepare_request(
    content: str, diagram_type: str, config: EmbedConfig
) -> RenderRequest:
    """Apply the insert directive and build the Kroki URL."""
    source = apply_directive(content, config.insert)
    url = make_url(config.server, diagram_type, source, config.output_format)
    return RenderRequest(
        diagram_type=diagram_type, source=source, url=url, config=config
    )


# =============================================================================
# Markup formatting
# =============================================================================


def _attr(value: str) -> str:
    return html.escape(value, quote=True)


def inject_class(svg: str, class_name: str) -> str:
    """Add ``class_name`` to the root ``<svg>`` element.

    An existing ``class`` attribute on the root is extended rather than
    duplicated. Nested ``<svg>`` elements are left alone.

    Raises:
        RenderError: If the document has no ``<svg>`` element.
    """
    match = _SVG_START_TAG.search(svg)
    if match is None:
        raise RenderError("Response is not an SVG document")

    attrs, slash = match.group(1).rstrip(), match.group(2)
    existing = _CLASS_ATTR.search(attrs)
    if existing:
        merged = f"{existing.group(3)} {_attr(class_name)}".strip()
        attrs = (
            attrs[: existing.start()]
            + f"{existing.group(1)}{existing.group(2)}{merged}{existing.group(2)}"
            + attrs[existing.end() :]
        )
    else:
        attrs = f'{attrs} class="{_attr(class_name)}"'

    return svg[: match.start()] + f"<svg{attrs}{slash}>" + svg[match.end() :]


def format_inline(body: bytes, config: EmbedConfig) -> str:
    """Raw SVG markup with the configured class on the root element."""
    try:
        svg = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise RenderError(f"SVG response is not valid UTF-8: {e}") from e
    return inject_class(svg, config.class_name)


def format_inline_base64(body: bytes, config: EmbedConfig) -> str:
    """``<img>`` embedding the image as a base64 data URI."""
    payload = base64.b64encode(body).decode("ascii")
    mime = config.output_format.mime_type
    return (
        f'<img class="{_attr(config.class_name)}" '
        f"src='data:{mime};base64,{payload}'>"
    )


def format_inline_url_encode(body: bytes, config: EmbedConfig) -> str:
    """``<img>`` embedding the image as a percent-encoded data URI."""
    payload = quote(body, safe=_URI_COMPONENT_SAFE)
    mime = config.output_format.mime_type
    if config.output_format is OutputFormat.SVG:
        mime += ";utf8"
    return f"<img class=\"{_attr(config.class_name)}\" src='data:{mime},{payload}'>"


def format_local_link(url: str, config: EmbedConfig) -> str:
    """``<img>`` pointing at a cached file."""
    return f'<img class="{_attr(config.class_name)}" src="{_attr(url)}"/>'


def format_external_link(url: str, config: EmbedConfig) -> str:
    """``<img>`` pointing at the Kroki URL."""
    return f'<img class="{_attr(config.class_name)}" src="{_attr(url)}" />'


_INLINE_FORMATTERS: dict[LinkMode, Callable[[bytes, EmbedConfig], str]] = {
    LinkMode.INLINE: format_inline,
    LinkMode.INLINE_BASE64: format_inline_base64,
    LinkMode.INLINE_URL_ENCODE: format_inline_url_encode,
}


# =============================================================================
# HTTP
# =============================================================================


def _status_error(response: httpx.Response, url: str) -> RenderError:
    return RenderError(
        f"Kroki returned {response.status_code}",
        status_code=response.status_code,
        response_body=response.text[:500],
        url=url,
    )


class Renderer:
    """Asynchronous Kroki renderer.

    Example:
        >>> async with Renderer(EmbedConfig(link="localLink")) as renderer:
        ...     markup = await renderer.render(source, "plantuml")

    Attributes:
        config: Base configuration; ``render`` overrides apply per call.
    """

    def __init__(
        self,
        config: EmbedConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize renderer.

        Args:
            config: Base configuration. Defaults to
                ``EmbedConfig.from_environment()``.
            client: HTTP client to use. When omitted one is created on first
                use and closed by ``aclose()``.
        """
        self.config = config or EmbedConfig.from_environment()
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> Renderer:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    @property
    def client(self) -> httpx.AsyncClient:
        """HTTP client, created lazily."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this renderer created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def is_available(self) -> bool:
        """Check if the Kroki service is reachable.

        Returns:
            True if ``/health`` answers 200, False otherwise.
        """
        try:
            response = await self.client.get(
                f"{self.config.server}/health", timeout=5.0
            )
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    def prepare(
        self, content: str, diagram_type: str, **overrides: Any
    ) -> RenderRequest:
        """Resolve the per-call config and build the request without I/O."""
        config = self.config.replace(**overrides)
        return prepare_request(content, diagram_type, config)

    def render_external(
        self, content: str, diagram_type: str, **overrides: Any
    ) -> str:
        """Markup linking straight to Kroki, computed synchronously.

        The configured link mode is ignored; no network call is made.
        """
        request = self.prepare(content, diagram_type, **overrides)
        return format_external_link(request.url, request.config)

    async def render(
        self, content: str, diagram_type: str, **overrides: Any
    ) -> str:
        """Render a diagram to markup.

        Args:
            content: Diagram source.
            diagram_type: Kroki backend, e.g. ``plantuml``.
            **overrides: ``EmbedConfig`` fields to override for this call.

        Returns:
            Markup string for the configured link mode.

        Raises:
            ConfigError: On invalid overrides or mode/format combinations.
            InsertionError: If the insert line is outside the source.
            RenderError: On transport failures, non-2xx responses or bodies
                that cannot be embedded.
            CacheError: If the localLink file cannot be written.
        """
        request = self.prepare(content, diagram_type, **overrides)
        config = request.config

        if config.link is LinkMode.EXTERNAL_LINK:
            return format_external_link(request.url, config)
        if config.link is LinkMode.LOCAL_LINK:
            return await self._render_local_link(request)

        formatter = _INLINE_FORMATTERS.get(config.link)
        if formatter is None:
            raise ConfigError(f"Unsupported link mode: {config.link!r}")
        is_svg = config.output_format is OutputFormat.SVG
        if config.link is LinkMode.INLINE and not is_svg:
            raise ConfigError("Link mode 'inline' requires svg output")

        body = await self.fetch(request.url, timeout=config.timeout)
        return formatter(body, config)

    async def fetch(self, url: str, timeout: float | None = None) -> bytes:
        """GET ``url`` and return the full response body.

        Raises:
            RenderError: On transport errors or non-2xx status.
        """
        logger.debug(f"Fetching {url}")
        try:
            response = await self.client.get(
                url, timeout=timeout or self.config.timeout
            )
        except httpx.TimeoutException as e:
            raise RenderError(f"Kroki request timed out: {e}", url=url) from e
        except httpx.RequestError as e:
            raise RenderError(f"Kroki request failed: {e}", url=url) from e

        if not response.is_success:
            raise _status_error(response, url)
        return response.content

    async def _render_local_link(self, request: RenderRequest) -> str:
        config = request.config
        cache = DiagramCache.from_config(config)
        entry = cache.entry(request.source, config.output_format)

        if config.reuse_cache and entry.exists():
            logger.debug(f"Cache hit for {entry.path}")
            return format_local_link(entry.url, config)

        cache.ensure_directory()
        logger.debug(f"Fetching {request.url} into {entry.path}")
        try:
            async with self.client.stream(
                "GET", request.url, timeout=config.timeout
            ) as response:
                if not response.is_success:
                    await response.aread()
                    raise _status_error(response, request.url)
                await cache.store(entry, response.aiter_bytes())
        except httpx.TimeoutException as e:
            raise RenderError(
                f"Kroki request timed out: {e}", url=request.url
            ) from e
        except httpx.RequestError as e:
            raise RenderError(f"Kroki request failed: {e}", url=request.url) from e

        return format_local_link(entry.url, config)


# =============================================================================
# Convenience functions
# =============================================================================


async def render_diagram(
    content: str,
    diagram_type: str,
    config: EmbedConfig | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    **overrides: Any,
) -> str:
    """Render one diagram with a short-lived ``Renderer``."""
    async with Renderer(config, client) as renderer:
        return await renderer.render(content, diagram_type, **overrides)


async def render_all(
    items: Iterable[tuple[str, str]],
    config: EmbedConfig | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    **overrides: Any,
) -> list[str]:
    """Render several ``(content, diagram_type)`` pairs concurrently.

    Requests share one HTTP client; results keep the input order. Every call
    runs to completion before the first failure, if any, is raised.
    """
    async with Renderer(config, client) as renderer:
        results = await asyncio.gather(
            *(
                renderer.render(content, diagram_type, **overrides)
                for content, diagram_type in items
            ),
            return_exceptions=True,
        )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


def render_sync(
    content: str,
    diagram_type: str,
    config: EmbedConfig | None = None,
    **overrides: Any,
) -> str:
    """Blocking wrapper around ``render_diagram`` for scripts and the CLI."""
    return asyncio.run(render_diagram(content, diagram_type, config, **overrides))


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
