"""Root pytest configuration and fixtures.

This module provides:
- Environment setup (loads .env)
- Kroki availability detection and auto-skipping of service tests
"""

from __future__ import annotations

import httpx
import pytest
from dotenv import load_dotenv

from kroki_embed.config import get_kroki_url

# Load environment variables from .env file
load_dotenv()

KROKI_URL = get_kroki_url()


def _is_kroki_healthy(url: str = KROKI_URL, timeout: float = 2.0) -> bool:
    """Check if Kroki service is responding."""
    try:
        response = httpx.get(f"{url}/health", timeout=timeout)
    except httpx.HTTPError:
        return False
    return response.status_code == 200


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]):
    """Auto-skip tests marked ``kroki`` when the service is unreachable."""
    if not any("kroki" in item.keywords for item in items):
        return
    if _is_kroki_healthy():
        return

    skip_kroki = pytest.mark.skip(reason=f"Kroki service not available at {KROKI_URL}")
    for item in items:
        if "kroki" in item.keywords:
            item.add_marker(skip_kroki)


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def kroki_service() -> str:
    """Kroki URL for integration tests.

    Returns:
        Base URL of a reachable Kroki service.
    """
    if not _is_kroki_healthy():
        pytest.skip("Kroki service not available")
    return KROKI_URL
