"""
Tests for network interfaces and their implementations.

This module tests MockNetworkStream and the asyncio streams backend,
the latter against a loopback echo server.
"""

import asyncio
import pytest
import pytest_asyncio

from http_pipeline.network import (
    NetworkStream,
    NetworkBackend,
    MockNetworkStream,
    AsyncioNetworkBackend,
    AsyncioNetworkStream,
)


class TestMockNetworkStream:
    """Test cases for MockNetworkStream."""

    @pytest.mark.asyncio
    async def test_read_write_basic(self):
        """Test basic read and write operations."""
        stream = MockNetworkStream(b"hello world")

        await stream.write(b"ping")
        assert stream.written_data == b"ping"

        assert await stream.read(5) == b"hello"
        assert await stream.read() == b" world"
        assert await stream.read() == b""
        assert stream.read_count == 3

    @pytest.mark.asyncio
    async def test_read_size_caps_reads(self):
        """Test that read_size splits scripted data across reads."""
        stream = MockNetworkStream(b"abcdefgh", read_size=3)

        assert await stream.read(65536) == b"abc"
        assert await stream.read(2) == b"de"
        assert await stream.read() == b"fgh"

    @pytest.mark.asyncio
    async def test_writes_recorded_per_call(self):
        """Test that each write call is kept separately."""
        stream = MockNetworkStream()

        await stream.write(b"first")
        await stream.write(b"second")

        assert stream.writes == [b"first", b"second"]
        assert stream.written_data == b"firstsecond"

    @pytest.mark.asyncio
    async def test_close(self):
        """Test closing the stream, twice."""
        stream = MockNetworkStream()

        await stream.aclose()
        await stream.aclose()

        assert stream.is_closed
        assert stream.close_count == 1

    @pytest.mark.asyncio
    async def test_io_after_close(self):
        """Test that I/O on a closed stream fails."""
        stream = MockNetworkStream(b"data")
        await stream.aclose()

        with pytest.raises(RuntimeError, match="Stream is closed"):
            await stream.read()

        with pytest.raises(RuntimeError, match="Stream is closed"):
            await stream.write(b"data")

    def test_peer_close(self):
        """Test simulating the server closing the connection."""
        stream = MockNetworkStream()
        stream.peer_close()

        assert stream.is_closed
        assert stream.close_count == 0

    def test_extra_info(self):
        """Test extra info lookups."""
        stream = MockNetworkStream()
        stream.set_extra_info("peername", ("127.0.0.1", 8080))

        assert stream.get_extra_info("peername") == ("127.0.0.1", 8080)
        assert stream.get_extra_info("missing") is None

    def test_implements_network_stream(self):
        """Test that the mock satisfies the interface."""
        assert isinstance(MockNetworkStream(), NetworkStream)


class TestAsyncioNetworkBackend:
    """Test the asyncio streams backend over loopback."""

    @pytest_asyncio.fixture
    async def echo_server(self):
        async def handle(reader, writer):
            while True:
                data = await reader.read(1024)
                if not data:
                    break
                writer.write(data)
                await writer.drain()
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        yield server.sockets[0].getsockname()[1]
        server.close()
        await server.wait_closed()

    def test_implements_network_backend(self):
        """Test that the backend satisfies the interface."""
        assert isinstance(AsyncioNetworkBackend(), NetworkBackend)

    @pytest.mark.asyncio
    async def test_connect_tcp_round_trip(self, echo_server):
        """Test writing to and reading from a real socket."""
        stream = await AsyncioNetworkBackend().connect_tcp("127.0.0.1", echo_server, timeout=5.0)

        try:
            assert isinstance(stream, AsyncioNetworkStream)
            assert stream.get_extra_info("peername")[1] == echo_server
            assert stream.get_extra_info("ssl_object") is False

            await stream.write(b"hello")
            assert await stream.read(5) == b"hello"
        finally:
            await stream.aclose()

        assert stream.is_closed

        with pytest.raises(RuntimeError, match="Stream is closed"):
            await stream.write(b"again")

    @pytest.mark.asyncio
    async def test_peer_close_with_buffered_data(self):
        """Test that data sent before the server closed can still be read."""
        async def handle(reader, writer):
            writer.write(b"goodbye")
            await writer.drain()
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        stream = await AsyncioNetworkBackend().connect_tcp("127.0.0.1", port, timeout=5.0)

        try:
            await asyncio.sleep(0.1)
            assert not stream.is_closed

            assert await stream.read(7) == b"goodbye"
            assert await stream.read() == b""
            assert stream.is_closed
        finally:
            await stream.aclose()
            server.close()
            await server.wait_closed()
