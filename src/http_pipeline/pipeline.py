"""
HTTP/1.1 pipelining for http_pipeline.

This module writes batches of requests to a single persistent connection
before reading any of their responses, then reads the responses back in
order. It is not compliant with RFC 2616 8.1.2.2: requests that should
not be retried after a connection failure may still be pipelined.

Servers are not assumed to support pipelining. Unless the connection has
been told otherwise, the first request is sent on its own to check that
the server speaks HTTP/1.1 and keeps the connection open.

Responses are paired with requests strictly by position. A server that
answers out of order cannot be detected here; compliant servers never do.
"""

import inspect
import logging
from collections import deque
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Deque,
    Iterable,
    List,
    Optional,
    Sequence,
    Union,
)

from .http_primitives import Request, Response
from .exceptions import (
    CapabilityError,
    ConnectionError,
    NotStartedError,
    PersistenceError,
    VersionError,
)

if TYPE_CHECKING:
    from .http11 import HTTP11Connection

logger = logging.getLogger(__name__)

# Methods that may be repeated without changing the outcome (RFC 2616 9.1.2).
IDEMPOTENT_METHODS = frozenset({
    b"DELETE",
    b"GET",
    b"HEAD",
    b"OPTIONS",
    b"PUT",
    b"TRACE",
})

# Versions are compared as strings, "1.0" < "1.1" < "2.0".
MINIMUM_HTTP_VERSION = "1.1"

ResponseCallback = Callable[[Response], Optional[Awaitable[None]]]


class PipeliningCapability(Enum):
    """Whether the server on a connection accepts pipelined requests."""
    UNKNOWN = "unknown"           # Not probed yet
    SUPPORTED = "supported"       # Probed, or declared by the caller
    UNSUPPORTED = "unsupported"   # Probe failed, or declared by the caller

    @classmethod
    def coerce(cls, value: Union["PipeliningCapability", bool, None]) -> "PipeliningCapability":
        """Map ``True``/``False``/``None`` onto a capability."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.UNKNOWN
        return cls.SUPPORTED if value else cls.UNSUPPORTED


class PipelineState(Enum):
    """States of a single pipelining run."""
    NOT_STARTED = "not_started"
    PROBING = "probing"
    SCHEDULING = "scheduling"
    CORRELATING = "correlating"
    DONE = "done"
    FAILED = "failed"


def idempotent(request: Union[Request, str, bytes]) -> bool:
    """
    Check whether a request is idempotent according to RFC 2616.

    Args:
        request: A Request, or a bare method name

    Returns:
        True for DELETE, GET, HEAD, OPTIONS, PUT and TRACE
    """
    method = request.method if isinstance(request, Request) else request
    if isinstance(method, str):
        method = method.encode()
    return method.upper() in IDEMPOTENT_METHODS


def keep_alive(response: Any) -> bool:
    """
    Check whether a response leaves the connection open.

    Uses ``has_explicit_close()`` when the response provides it and falls
    back to inspecting the Connection header otherwise.
    """
    has_explicit_close = getattr(response, "has_explicit_close", None)
    if callable(has_explicit_close):
        return not has_explicit_close()

    for name, value in getattr(response, "headers", []):
        if name.lower() == b"connection" and b"close" in value.lower():
            return False
    return True


async def end_transport(connection: "HTTP11Connection", response: Response) -> None:
    """
    Update the connection after a response has been read.

    Records the protocol version the server answered with and closes the
    connection when the server did not keep it alive.
    """
    connection.http_version = response.http_version

    if connection.is_closed:
        logger.debug("Connection socket closed on pipeline")
    elif keep_alive(response):
        logger.debug("Connection pipeline keep-alive")
    else:
        logger.debug("Connection close on pipeline")
        await connection.close()


class HTTPPipeline:
    """
    Pipelining driver for one HTTP11Connection.

    Runs a small state machine::

        NOT_STARTED -> [PROBING] -> SCHEDULING <-> CORRELATING -> DONE

    PROBING is skipped once the connection's capability is known. Any
    raised error moves the run to FAILED. Each run owns its queue of
    pending requests and the list of requests in flight; both are handed
    explicitly between the scheduling and correlating steps.
    """

    def __init__(
        self,
        connection: "HTTP11Connection",
        on_response: Optional[ResponseCallback] = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            connection: A started connection
            on_response: Called with each response as soon as it has been
                read, before the next batch is sent. May be a coroutine
                function.
        """
        self._connection = connection
        self._on_response = on_response
        self._state = PipelineState.NOT_STARTED

    @property
    def state(self) -> PipelineState:
        """Current state of the run."""
        return self._state

    async def run(self, requests: Iterable[Request]) -> List[Response]:
        """
        Pipeline ``requests`` and return all responses in request order.

        Raises:
            NotStartedError: If the connection has not been started
            VersionError: If the server is not HTTP/1.1 or newer
            PersistenceError: If the server closes the connection
            CapabilityError: If pipelining is known to be unsupported
        """
        queue: Deque[Request] = deque(requests)
        responses: List[Response] = []
        in_flight: List[Request] = []

        self._state = PipelineState.NOT_STARTED
        try:
            while self._state is not PipelineState.DONE:
                if self._state is PipelineState.NOT_STARTED:
                    self._state = self._check_connection(queue, responses)
                elif self._state is PipelineState.PROBING:
                    await self.probe(queue, responses)
                    self._state = PipelineState.SCHEDULING
                elif self._state is PipelineState.SCHEDULING:
                    in_flight = await self.schedule(queue)
                    self._state = (
                        PipelineState.CORRELATING if in_flight else PipelineState.DONE
                    )
                elif self._state is PipelineState.CORRELATING:
                    await self.correlate(in_flight, responses, queue)
                    in_flight = []
                    self._state = self._check_batch(queue, responses)
        except Exception:
            self._state = PipelineState.FAILED
            raise

        return responses

    def _check_connection(
        self, queue: Deque[Request], responses: List[Response]
    ) -> PipelineState:
        connection = self._connection

        if not connection.is_started:
            raise NotStartedError(queue, responses)

        if connection.http_version < MINIMUM_HTTP_VERSION:
            raise VersionError(queue, responses)

        if connection.pipelining is PipeliningCapability.UNSUPPORTED:
            raise CapabilityError(queue, responses)

        if not queue:
            return PipelineState.DONE

        if connection.is_closed:
            raise PersistenceError(queue, responses)

        if connection.pipelining is PipeliningCapability.UNKNOWN:
            return PipelineState.PROBING

        return PipelineState.SCHEDULING

    def _check_batch(
        self, queue: Deque[Request], responses: List[Response]
    ) -> PipelineState:
        connection = self._connection

        if not queue:
            return PipelineState.DONE

        if connection.http_version < MINIMUM_HTTP_VERSION:
            connection.pipelining = PipeliningCapability.UNSUPPORTED
            raise VersionError(queue, responses)

        if connection.is_closed:
            raise PersistenceError(queue, responses)

        return PipelineState.SCHEDULING

    async def probe(self, queue: Deque[Request], responses: List[Response]) -> None:
        """
        Send the first request on its own to check for pipelining support.

        The request is consumed from ``queue`` and its response is added to
        ``responses``. The connection is marked unsupported until the probe
        succeeds, so a failed probe is not repeated on the same connection.

        Raises:
            VersionError: If the server answered with HTTP/1.0 or older
            PersistenceError: If the server closed the connection
        """
        connection = self._connection
        connection.pipelining = PipeliningCapability.UNSUPPORTED

        request = queue.popleft()
        await self._send(request)
        try:
            response = await self._receive(request)
        except ConnectionError as e:
            await connection.close()
            raise PersistenceError(queue, responses, [request]) from e
        responses.append(response)
        await self._deliver(response)
        await end_transport(connection, response)

        connection.pipelining = PipeliningCapability.coerce(keep_alive(response))

        if connection.http_version < MINIMUM_HTTP_VERSION:
            connection.pipelining = PipeliningCapability.UNSUPPORTED
            logger.debug(f"Pipelining probe failed: HTTP/{connection.http_version}")
            raise VersionError(queue, responses)

        if connection.pipelining is PipeliningCapability.UNSUPPORTED:
            logger.debug("Pipelining probe failed: connection not persistent")
            raise PersistenceError(queue, responses)

        logger.debug("Pipelining probe succeeded")

    async def schedule(self, queue: Deque[Request]) -> List[Request]:
        """
        Send a batch of requests and remove them from ``queue``.

        Idempotent requests are sent back to back. A non-idempotent request
        is only sent at the start of a batch and ends it; one met after an
        idempotent request is left in ``queue`` for the next batch.

        Returns:
            The requests sent, in the order they were written
        """
        in_flight: List[Request] = []

        while queue:
            request = queue.popleft()
            request_idempotent = idempotent(request)

            if not request_idempotent and in_flight:
                queue.appendleft(request)
                break

            await self._send(request)
            in_flight.append(request)

            if not request_idempotent:
                break

        logger.debug(f"Pipelined {len(in_flight)} request(s), {len(queue)} pending")
        return in_flight

    async def correlate(
        self,
        in_flight: Sequence[Request],
        responses: List[Response],
        queue: Sequence[Request] = (),
    ) -> None:
        """
        Read one response per in-flight request and add it to ``responses``.

        Interim 1xx responses are skipped. ``queue`` holds the requests not
        yet sent and is only used to report them if the server closes the
        connection before the batch is fully answered.

        Raises:
            PersistenceError: If the connection closed with requests of the
                batch still unanswered
        """
        connection = self._connection

        for index, request in enumerate(in_flight):
            try:
                response = await self._receive(request)
            except ConnectionError as e:
                await connection.close()
                raise PersistenceError(queue, responses, in_flight[index:]) from e

            responses.append(response)
            await self._deliver(response)
            await end_transport(connection, response)

    async def _send(self, request: Request) -> None:
        connection = self._connection
        await connection.begin_transport(request)
        await connection.write_request(
            request, connection.http_version, connection.edit_path(request)
        )

    async def _receive(self, request: Request) -> Response:
        connection = self._connection

        response = await connection.read_response()
        while response.is_interim:
            logger.debug(f"Skipping interim response {response.status_code}")
            response = await connection.read_response()

        return await connection.finish_reading_body(
            response, request.response_body_permitted
        )

    async def _deliver(self, response: Response) -> None:
        if self._on_response is None:
            return
        result = self._on_response(response)
        if inspect.isawaitable(result):
            await result


async def pipeline(
    connection: "HTTP11Connection",
    requests: Iterable[Request],
    on_response: Optional[ResponseCallback] = None,
) -> List[Response]:
    """Pipeline ``requests`` over ``connection``.

    Same as ``connection.pipeline(requests, on_response)``.
    """
    return await connection.pipeline(requests, on_response)
