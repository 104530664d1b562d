"""
Pytest configuration for http_pipeline tests.

This file contains shared fixtures and configuration
for all tests in the project.
"""

import pytest
from typing import List, Optional

from http_pipeline.http11 import HTTP11Connection
from http_pipeline.http_primitives import Request
from http_pipeline.network.mock import MockNetworkStream


def http_response(
    body: bytes,
    *extra_headers: bytes,
    status: bytes = b"200 OK",
    version: bytes = b"1.1",
) -> bytes:
    """Build the raw bytes of a response with a Content-Length body."""
    lines = [
        b"HTTP/" + version + b" " + status,
        b"Content-Length: " + str(len(body)).encode(),
    ]
    lines.extend(extra_headers)
    return b"\r\n".join(lines) + b"\r\n\r\n" + body


def request_lines(writes: List[bytes]) -> List[bytes]:
    """Request line of each write made to a stream, in order."""
    return [write.split(b"\r\n", 1)[0] for write in writes]


@pytest.fixture
def make_request():
    """Create requests against example.com."""
    def _make(method: str = "GET", path: str = "/", content: bytes = b"") -> Request:
        return Request.create(method, f"http://example.com{path}", content=content)
    return _make


@pytest.fixture
def mock_stream():
    """Create an empty mock network stream."""
    return MockNetworkStream()


@pytest.fixture
def make_connection():
    """Create a started connection whose server answers with ``responses``."""
    def _make(
        *responses: bytes,
        pipelining: Optional[bool] = None,
        read_size: Optional[int] = None,
        **kwargs,
    ) -> HTTP11Connection:
        stream = MockNetworkStream(b"".join(responses), read_size=read_size)
        return HTTP11Connection(stream, pipelining=pipelining, **kwargs)
    return _make


@pytest.fixture
def sample_headers():
    """Sample headers for testing."""
    return [
        (b"Content-Type", b"application/json"),
        (b"Authorization", b"Bearer token123"),
        (b"User-Agent", b"http_pipeline/1.0.0"),
        (b"Accept", b"*/*"),
    ]
