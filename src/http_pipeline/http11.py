"""
HTTP/1.1 connection implementation for http_pipeline.

This module implements the HTTP11Connection class that manages
HTTP/1.1 protocol communication over a NetworkStream and provides the
transport primitives that pipelining is built on.

h11 only allows one outstanding request per ``h11.Connection``, so every
request gets its own h11 state machine (an "exchange"). Exchanges are kept
in write order; bytes left over once a response is complete are handed to
the next exchange, which is how pipelined responses are split apart.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Deque, Dict, Iterable, List, Optional, Union
from enum import Enum

import h11

from .http_primitives import Request, Response
from .network.stream import NetworkStream
from .pipeline import HTTPPipeline, PipeliningCapability, ResponseCallback
from .exceptions import (
    ConnectionError,
    PipelineError,
    ProtocolError,
)

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {b"http": 80, b"https": 443}


class ConnectionState(Enum):
    """States of an HTTP/1.1 connection."""
    NEW = "new"           # No stream attached yet
    IDLE = "idle"         # Started, available for a pipeline run
    ACTIVE = "active"     # Pipeline run in progress
    CLOSED = "closed"     # Connection closed, cannot be reused


class HTTP11Connection:
    """
    HTTP/1.1 connection manager.

    This class manages a single HTTP/1.1 connection over a NetworkStream.
    Besides the pipelining entry point it tracks the connection state the
    pipeline depends on: the protocol version the server last answered
    with and whether the server accepts pipelined requests.
    """

    # Default configuration
    DEFAULT_READ_TIMEOUT = 30.0  # 30 seconds
    DEFAULT_WRITE_TIMEOUT = 30.0  # 30 seconds
    DEFAULT_HTTP_VERSION = "1.1"
    READ_CHUNK_SIZE = 65536  # 64KB

    def __init__(
        self,
        stream: Optional[NetworkStream] = None,
        read_timeout: Optional[float] = None,
        write_timeout: Optional[float] = None,
        http_version: Optional[str] = None,
        pipelining: Union[PipeliningCapability, bool, None] = None,
        proxy: bool = False,
    ):
        """
        Initialize HTTP/1.1 connection.

        Args:
            stream: The NetworkStream to use; the connection is started
                right away when given
            read_timeout: Timeout for read operations in seconds
            write_timeout: Timeout for write operations in seconds
            http_version: Protocol version assumed before the first response
            pipelining: Known pipelining support of the server. ``None``
                means it is probed on the first pipeline run.
            proxy: Send absolute-form request targets, for talking to a proxy
        """
        self._stream: Optional[NetworkStream] = None
        self._state = ConnectionState.NEW
        self._state_lock = asyncio.Lock()

        # Configuration
        self._read_timeout = read_timeout or self.DEFAULT_READ_TIMEOUT
        self._write_timeout = write_timeout or self.DEFAULT_WRITE_TIMEOUT
        self._initial_http_version = http_version or self.DEFAULT_HTTP_VERSION
        self._initial_pipelining = PipeliningCapability.coerce(pipelining)
        self._proxy = proxy

        # Connection state
        self.http_version = self._initial_http_version
        self._pipelining = self._initial_pipelining
        self._exchanges: Deque[h11.Connection] = deque()
        self._receive_buffer = b""

        # Metrics
        self._request_count = 0
        self._response_count = 0
        self._bytes_sent = 0
        self._bytes_received = 0
        self._errors_count = 0

        if stream is not None:
            self.start(stream)

        logger.debug("HTTP/1.1 connection initialized")

    def start(self, stream: NetworkStream) -> None:
        """
        Attach an established stream to the connection.

        Starting resets the tracked protocol version and pipelining
        capability to their configured values, since they describe the
        previous peer.
        """
        self._stream = stream
        self._state = ConnectionState.IDLE
        self.http_version = self._initial_http_version
        self._pipelining = self._initial_pipelining
        self._exchanges.clear()
        self._receive_buffer = b""

        logger.debug(f"Connection started (pipelining: {self._pipelining.value})")

    async def pipeline(
        self,
        requests: Iterable[Request],
        on_response: Optional[ResponseCallback] = None,
    ) -> List[Response]:
        """
        Pipeline ``requests`` over this connection.

        Args:
            requests: Requests to send, in order
            on_response: Called with each response as soon as it is read

        Returns:
            All responses, in request order

        Raises:
            PipelineError: If pipelining is not possible on this connection;
                carries the unsent requests and the responses read so far
            ConnectionError: If the connection is already running a pipeline
            ProtocolError: If the server sends invalid HTTP
            asyncio.TimeoutError: If a read or write times out
        """
        async with self._state_lock:
            if self._state == ConnectionState.ACTIVE:
                raise ConnectionError("Connection is busy")
            if self._state == ConnectionState.IDLE:
                self._state = ConnectionState.ACTIVE

        try:
            return await HTTPPipeline(self, on_response).run(requests)

        except PipelineError:
            raise

        except asyncio.TimeoutError:
            self._errors_count += 1
            logger.error(f"Pipeline timed out after {self._request_count} requests")
            await self.close()
            raise

        except Exception as e:
            self._errors_count += 1
            logger.error(f"Pipeline failed: {e}")
            await self.close()
            raise

        finally:
            async with self._state_lock:
                if self._state == ConnectionState.ACTIVE:
                    self._state = ConnectionState.IDLE

    async def begin_transport(self, request: Request) -> None:
        """
        Prepare the connection for sending ``request``.

        Raises:
            ConnectionError: If the connection is not open
        """
        if self._stream is None or self.is_closed:
            raise ConnectionError("Connection is closed")

        exchange = h11.Connection(h11.CLIENT)
        if not self._exchanges and self._receive_buffer:
            exchange.receive_data(self._receive_buffer)
            self._receive_buffer = b""
        self._exchanges.append(exchange)

    def edit_path(self, request: Request) -> bytes:
        """
        Get the request target to send for ``request``.

        Proxies get the absolute form, origin servers the path.
        """
        if not self._proxy:
            return request.path

        return b"%s://%s%s" % (request.scheme, self._host_header(request), request.path)

    async def write_request(
        self,
        request: Request,
        http_version: str,
        path: bytes,
    ) -> None:
        """
        Serialize ``request`` and write it to the stream.

        h11 always writes an HTTP/1.1 request line, so ``http_version`` is
        only checked against it.

        Args:
            request: The request, after ``begin_transport``
            http_version: Protocol version the server is known to speak
            path: Request target, see ``edit_path``

        Raises:
            ProtocolError: If the server does not speak HTTP/1.1
        """
        if http_version < self.DEFAULT_HTTP_VERSION:
            raise ProtocolError(f"Cannot send requests to an HTTP/{http_version} server")

        exchange = self._exchanges[-1]

        headers = list(request.headers)
        if request.get_header(b"host") is None:
            headers.insert(0, (b"Host", self._host_header(request)))

        events: List[h11.Event] = [
            h11.Request(
                method=request.method,
                target=path,
                headers=headers,
            )
        ]
        if request.content:
            events.append(h11.Data(data=request.content))
        events.append(h11.EndOfMessage())

        data = b"".join(self._serialize(exchange, event) for event in events)
        await asyncio.wait_for(self._stream.write(data), timeout=self._write_timeout)

        self._bytes_sent += len(data)
        self._request_count += 1

        logger.debug(
            f"Request {self._request_count}: {request.method.decode()} {path.decode()}"
        )

    async def read_response(self) -> Response:
        """
        Read the next response head for the oldest unanswered request.

        Interim 1xx responses are returned like any other; the caller keeps
        reading until a final response arrives.

        Raises:
            ConnectionError: If the connection is closed, or the server
                closed it before starting the response
            ProtocolError: If no request is waiting for a response, or the
                server sent something other than a response
        """
        if self._state == ConnectionState.CLOSED:
            raise ConnectionError("Connection is closed")
        if not self._exchanges:
            raise ProtocolError("No request is waiting for a response")

        event = await self._next_event(self._exchanges[0])

        if isinstance(event, (h11.InformationalResponse, h11.Response)):
            response = Response.create(
                status_code=event.status_code,
                headers=list(event.headers),
                http_version=event.http_version,
                reason=event.reason,
            )
            logger.debug(
                f"Response {self._response_count + 1}: "
                f"HTTP/{response.http_version} {response.status_code}"
            )
            return response

        raise ProtocolError(f"Unexpected {type(event).__name__} while reading response")

    async def finish_reading_body(
        self,
        response: Response,
        permitted: bool = True,
    ) -> Response:
        """
        Read the body of ``response`` and complete its exchange.

        Args:
            response: A final response returned by ``read_response``
            permitted: Whether the request allows a response body. When
                false any body data is discarded.

        Returns:
            A new Response carrying the body
        """
        exchange = self._exchanges[0]
        chunks: List[bytes] = []

        while True:
            event = await self._next_event(exchange)

            if isinstance(event, h11.Data):
                if permitted:
                    chunks.append(event.data)
                continue

            if isinstance(event, h11.EndOfMessage):
                break

            raise ProtocolError(f"Unexpected {type(event).__name__} while reading body")

        self._exchanges.popleft()
        self._response_count += 1
        self._hand_over(exchange)

        return response.with_content(b"".join(chunks))

    def _hand_over(self, exchange: h11.Connection) -> None:
        """Pass bytes read past the end of a response to the next exchange."""
        trailing, closed = exchange.trailing_data

        if self._exchanges:
            following = self._exchanges[0]
            if trailing:
                following.receive_data(trailing)
            if closed:
                following.receive_data(b"")
        elif trailing:
            self._receive_buffer += trailing

    async def _next_event(self, exchange: h11.Connection) -> Any:
        """
        Get the next h11 event, reading from the stream as needed.

        Raises:
            ConnectionError: If the server closed the connection before
                sending anything for this exchange
            ProtocolError: If the server violates HTTP/1.1 or closes the
                connection mid-response
        """
        while True:
            if (
                exchange.their_state is h11.SEND_RESPONSE
                and exchange.trailing_data == (b"", True)
            ):
                raise ConnectionError("Connection closed by server")

            try:
                event = exchange.next_event()
            except h11.RemoteProtocolError as e:
                raise ProtocolError(str(e), cause=e) from e

            if event is h11.NEED_DATA:
                if self._stream.is_closed:
                    data = b""
                else:
                    data = await asyncio.wait_for(
                        self._stream.read(self.READ_CHUNK_SIZE),
                        timeout=self._read_timeout,
                    )
                self._bytes_received += len(data)
                # An empty read tells h11 the server closed its side
                exchange.receive_data(data)
                continue

            if isinstance(event, h11.ConnectionClosed):
                raise ProtocolError("Connection closed by server")

            return event

    def _serialize(self, exchange: h11.Connection, event: h11.Event) -> bytes:
        try:
            return exchange.send(event) or b""
        except h11.LocalProtocolError as e:
            raise ProtocolError(str(e), cause=e) from e

    def _host_header(self, request: Request) -> bytes:
        if request.port == DEFAULT_PORTS.get(request.scheme):
            return request.host
        return b"%s:%d" % (request.host, request.port)

    async def close(self) -> None:
        """
        Close the connection and cleanup resources.
        """
        async with self._state_lock:
            if self._state != ConnectionState.CLOSED:
                self._state = ConnectionState.CLOSED
                self._exchanges.clear()
                self._receive_buffer = b""
                if self._stream is not None:
                    await self._stream.aclose()

        logger.debug(f"Connection closed after {self._request_count} requests")

    @property
    def pipelining(self) -> PipeliningCapability:
        """Pipelining support of the server, as known so far."""
        return self._pipelining

    @pipelining.setter
    def pipelining(self, value: Union[PipeliningCapability, bool, None]) -> None:
        self._pipelining = PipeliningCapability.coerce(value)

    @property
    def is_started(self) -> bool:
        """Check if a stream has been attached to the connection."""
        return self._stream is not None

    @property
    def is_closed(self) -> bool:
        """Check if the connection was closed, by either side."""
        if self._state == ConnectionState.CLOSED:
            return True
        return self._stream is not None and self._stream.is_closed

    @property
    def is_idle(self) -> bool:
        """Check if the connection is available for a pipeline run."""
        return self._state == ConnectionState.IDLE and not self.is_closed

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def metrics(self) -> Dict[str, Any]:
        """
        Get connection metrics.

        Returns:
            Dictionary with connection metrics
        """
        return {
            "request_count": self._request_count,
            "response_count": self._response_count,
            "bytes_sent": self._bytes_sent,
            "bytes_received": self._bytes_received,
            "errors_count": self._errors_count,
            "in_flight": len(self._exchanges),
            "state": self._state.value,
            "http_version": self.http_version,
            "pipelining": self._pipelining.value,
        }

    def reset_metrics(self) -> None:
        """Reset connection metrics."""
        self._request_count = 0
        self._response_count = 0
        self._bytes_sent = 0
        self._bytes_received = 0
        self._errors_count = 0
