"""
Network components for http_pipeline.

This module provides the byte-stream abstraction a pipelining connection
runs over, an asyncio streams backend and an in-memory mock for tests.
"""

from .backend import NetworkBackend
from .stream import NetworkStream
from .mock import MockNetworkStream
from .asyncio_backend import AsyncioNetworkBackend, AsyncioNetworkStream

__all__ = [
    "NetworkBackend",
    "NetworkStream",
    "MockNetworkStream",
    "AsyncioNetworkBackend",
    "AsyncioNetworkStream",
]
