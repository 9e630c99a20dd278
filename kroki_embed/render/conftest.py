"""Render module test fixtures."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

SVG_BODY = (
    b'<?xml version="1.0" encoding="UTF-8"?>'
    b'<svg xmlns="http://www.w3.org/2000/svg" width="120" height="40">'
    b"<text>A \xe2\x86\x92 B</text></svg>"
)


@pytest.fixture
def plantuml_source() -> str:
    """Minimal PlantUML sequence diagram.

    Returns:
        A valid PlantUML source string.
    """
    return "@startuml\nAlice -> Bob : hello\n@enduml"


@pytest.fixture
def svg_body() -> bytes:
    """SVG document as returned by Kroki."""
    return SVG_BODY


class KrokiStub:
    """Records requests and answers them through ``httpx.MockTransport``."""

    def __init__(
        self,
        status_code: int = 200,
        content: bytes = SVG_BODY,
        error: Exception | None = None,
    ):
        self.status_code = status_code
        self.content = content
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, content=self.content)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def kroki_stub() -> Callable[..., KrokiStub]:
    """Factory for stubbed Kroki servers.

    Returns:
        Callable accepting ``status_code``, ``content`` and ``error``.
    """
    return KrokiStub
