"""
Shared pytest fixtures and configuration for relay tests.

This module provides:
- ``src/`` on ``sys.path`` so tests run without an install
- Automatic ``unit`` / ``integration`` markers by location
- An ``httpx.MockTransport`` recorder for partner API calls
- A manual clock for TTL tests

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments.

    def test_posts_once(mock_api):
        ...
"""

import sys
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

# Ensure relay package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# HTTP fixtures
# =============================================================================


class MockAPI:
    """Records requests and answers them with a configurable handler.

    ``routes`` maps ``"METHOD url"`` to a response factory; unknown requests
    get a 200 with an empty JSON body.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def route(self, method: str, url: str, status: int = 200, json=None, text: str | None = None) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if text is not None:
                return httpx.Response(status, text=text)
            return httpx.Response(status, json=json if json is not None else {})

        self.routes[f"{method.upper()} {url}"] = respond

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = f"{request.method} {str(request.url).split('?')[0]}"
        if key in self.routes:
            return self.routes[key](request)
        return httpx.Response(200, json={})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def extension(self, ctx=None) -> dict:
        """A request extension routing every call through this mock."""
        return {"transport": self.transport}


@pytest.fixture
def mock_api() -> MockAPI:
    return MockAPI()


# =============================================================================
# Time
# =============================================================================


class ManualClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()
