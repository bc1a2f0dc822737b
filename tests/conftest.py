"""
Pytest configuration and shared fixtures.

Upstream manifests are served by an ``httpx.MockTransport`` so no test touches the network.
"""

from pathlib import Path
from typing import Dict, Tuple, Union

import httpx
import pytest
from dotenv import load_dotenv

# Load .env file from project root
project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")

TEST_ORIGIN = "http://test.com"


def pytest_configure(config):
    """Configure pytest-asyncio mode."""
    config.addinivalue_line("markers", "asyncio: mark test as async")


class UpstreamServer:
    """Serves canned responses by URL and records every request made."""

    def __init__(self):
        self.responses: Dict[str, Tuple[int, str]] = {}
        self.requests: list[httpx.Request] = []

    def respond_with(self, url: str, body: Union[str, Tuple[int, str]]):
        self.responses[url] = body if isinstance(body, tuple) else (200, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status_code, body = self.responses.get(str(request.url), (404, ""))
        return httpx.Response(status_code, text=body, headers={"Content-Type": "text/plain"})

    @property
    def requested_urls(self) -> list[str]:
        return [str(request.url) for request in self.requests]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def upstream():
    """
    Fake upstream server.

    Usage:
        async def test_something(upstream):
            upstream.respond_with("http://test.com/a.m3u8", "#EXTM3U...")
            async with upstream.client() as client:
                ...
    """
    return UpstreamServer()
