"""
Integration tests for pipelining over a real socket.

A small h11 server on the loopback interface answers each request with
its method and target, and closes the connection when asked for /close.
"""

import asyncio
import pytest
import pytest_asyncio
import h11

from http_pipeline import (
    HTTP11Connection,
    PersistenceError,
    PipeliningCapability,
    Request,
)
from http_pipeline.network import AsyncioNetworkBackend


async def handle_client(reader, writer):
    server = h11.Connection(h11.SERVER)
    request = None

    while True:
        event = server.next_event()

        if event is h11.NEED_DATA:
            server.receive_data(await reader.read(65536))
            continue

        if isinstance(event, h11.Request):
            request = event
        elif isinstance(event, h11.EndOfMessage):
            body = request.method + b" " + request.target
            headers = [(b"Content-Length", str(len(body)).encode())]
            if request.target == b"/close":
                headers.append((b"Connection", b"close"))

            writer.write(server.send(h11.Response(status_code=200, headers=headers)))
            if request.method != b"HEAD":
                writer.write(server.send(h11.Data(data=body)))
            writer.write(server.send(h11.EndOfMessage()))
            await writer.drain()

            if server.our_state is h11.MUST_CLOSE:
                break
            server.start_next_cycle()
        elif isinstance(event, h11.ConnectionClosed):
            break

    writer.close()


@pytest_asyncio.fixture
async def server_port():
    server = await asyncio.start_server(handle_client, "127.0.0.1", 0)
    yield server.sockets[0].getsockname()[1]
    server.close()
    await server.wait_closed()


@pytest_asyncio.fixture
async def connection(server_port):
    stream = await AsyncioNetworkBackend().connect_tcp("127.0.0.1", server_port, timeout=5.0)
    connection = HTTP11Connection(stream, read_timeout=5.0, write_timeout=5.0)
    yield connection
    await connection.close()


def make_request(method, path, content=b""):
    return Request.create(method, f"http://127.0.0.1{path}", content=content)


class TestPipelineIntegration:
    """Pipelining against a loopback HTTP/1.1 server."""

    @pytest.mark.asyncio
    async def test_pipeline_gets(self, connection):
        """Test several GETs answered in order."""
        requests = [make_request("GET", f"/{i}") for i in range(5)]

        responses = await connection.pipeline(requests)

        assert [r.content for r in responses] == [f"GET /{i}".encode() for i in range(5)]
        assert connection.pipelining is PipeliningCapability.SUPPORTED
        assert connection.is_idle

    @pytest.mark.asyncio
    async def test_pipeline_mixed_methods(self, connection):
        """Test GET, POST, PUT and HEAD on one connection."""
        requests = [
            make_request("GET", "/a"),
            make_request("GET", "/b"),
            make_request("POST", "/c", content=b"payload"),
            make_request("PUT", "/d", content=b"payload"),
            make_request("HEAD", "/e"),
        ]

        responses = await connection.pipeline(requests)

        assert [r.content for r in responses] == [
            b"GET /a",
            b"GET /b",
            b"POST /c",
            b"PUT /d",
            b"",
        ]
        assert responses[-1].get_header(b"content-length") == b"7"

    @pytest.mark.asyncio
    async def test_pipeline_reused_across_calls(self, connection):
        """Test that a second call skips the probe and still works."""
        await connection.pipeline([make_request("GET", "/first")])
        responses = await connection.pipeline(
            [make_request("GET", "/second"), make_request("GET", "/third")]
        )

        assert [r.content for r in responses] == [b"GET /second", b"GET /third"]
        assert connection.metrics["request_count"] == 3

    @pytest.mark.asyncio
    async def test_server_closes_mid_batch(self, connection):
        """Test the server closing with a pipelined request unanswered."""
        requests = [
            make_request("GET", "/a"),
            make_request("GET", "/close"),
            make_request("GET", "/c"),
        ]

        with pytest.raises(PersistenceError) as exc_info:
            await connection.pipeline(requests)

        error = exc_info.value
        assert [r.content for r in error.responses] == [b"GET /a", b"GET /close"]
        assert error.requests == []
        assert error.in_flight == requests[2:]
        assert connection.is_closed
