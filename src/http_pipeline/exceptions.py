"""
Custom exceptions for http_pipeline.

This module defines the exception hierarchy used throughout
the library for error handling and debugging.

Pipelining errors always carry enough state for the caller to
resume or abort safely: the requests that were never written to
the connection and the responses that were read before the failure.
"""

from typing import TYPE_CHECKING, Optional, Sequence, List

if TYPE_CHECKING:
    from .http_primitives import Request, Response


class HTTPCoreError(Exception):
    """Base exception for all http_pipeline errors."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConnectionError(HTTPCoreError):
    """Raised when there's an error with network connections."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Connection error: {message}", cause)


class ProtocolError(HTTPCoreError):
    """Raised when there's an error with HTTP protocol handling."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Protocol error: {message}", cause)


class PipelineError(HTTPCoreError):
    """
    Base exception for pipelining failures.

    Attributes:
        requests: Requests that have not been written to the connection,
            in their original order
        responses: Responses retrieved from the server up to the error
        in_flight: Requests that were written but never answered
    """

    def __init__(
        self,
        message: str,
        requests: Sequence["Request"],
        responses: Sequence["Response"],
        in_flight: Optional[Sequence["Request"]] = None,
    ) -> None:
        super().__init__(message)
        self.requests: List["Request"] = list(requests)
        self.responses: List["Response"] = list(responses)
        self.in_flight: List["Request"] = list(in_flight or [])


class NotStartedError(PipelineError):
    """Raised when pipelining on a connection that was never started."""

    def __init__(
        self,
        requests: Sequence["Request"],
        responses: Sequence["Response"],
    ) -> None:
        super().__init__("connection not started", requests, responses)


class VersionError(PipelineError):
    """Raised when the connection speaks a protocol older than HTTP/1.1."""

    def __init__(
        self,
        requests: Sequence["Request"],
        responses: Sequence["Response"],
    ) -> None:
        super().__init__("HTTP/1.1 or newer required", requests, responses)


class PersistenceError(PipelineError):
    """Raised when the server does not keep the connection open."""

    def __init__(
        self,
        requests: Sequence["Request"],
        responses: Sequence["Response"],
        in_flight: Optional[Sequence["Request"]] = None,
    ) -> None:
        super().__init__(
            "persistent connections required", requests, responses, in_flight
        )


class CapabilityError(PipelineError):
    """Raised when pipelining was previously found or forced unsupported."""

    def __init__(
        self,
        requests: Sequence["Request"],
        responses: Sequence["Response"],
    ) -> None:
        super().__init__("pipelining is not supported", requests, responses)
