"""
http_pipeline - HTTP/1.1 request pipelining

Sends batches of requests over a single persistent HTTP/1.1 connection
without waiting for each response, then reads the responses back in
order. Built on the h11 protocol engine and asyncio.
"""

__version__ = "1.0.0"
__author__ = "Developer"
__email__ = "dev@example.com"

# Import main components for easy access
from .http_primitives import Request, Response
from .http11 import HTTP11Connection, ConnectionState
from .pipeline import (
    HTTPPipeline,
    PipelineState,
    PipeliningCapability,
    idempotent,
    keep_alive,
)
from .exceptions import (
    HTTPCoreError,
    ConnectionError,
    ProtocolError,
    PipelineError,
    NotStartedError,
    VersionError,
    PersistenceError,
    CapabilityError,
)

__all__ = [
    "Request",
    "Response",
    "HTTP11Connection",
    "ConnectionState",
    "HTTPPipeline",
    "PipelineState",
    "PipeliningCapability",
    "idempotent",
    "keep_alive",
    "HTTPCoreError",
    "ConnectionError",
    "ProtocolError",
    "PipelineError",
    "NotStartedError",
    "VersionError",
    "PersistenceError",
    "CapabilityError",
]
