"""
Mock network implementations for testing.

MockNetworkStream plays the server side of a connection from a script of
canned response bytes and records everything the client writes, so tests
can assert exactly what went on the wire and in which order.
"""

from typing import Any, Dict, List, Optional

from .stream import NetworkStream


class MockNetworkStream(NetworkStream):
    """
    In-memory network stream.

    Reads are served from the scripted data; every ``write`` call is kept
    as a separate chunk. ``read_size`` caps how many bytes a single read
    returns, which lets tests exercise responses split across reads.
    """

    def __init__(self, data: bytes = b"", read_size: Optional[int] = None):
        self._data = data
        self._position = 0
        self._closed = False
        self._read_size = read_size
        self._extra_info: Dict[str, Any] = {}
        self._write_buffer: List[bytes] = []
        self.read_count = 0
        self.close_count = 0

    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        if self._closed:
            raise RuntimeError("Stream is closed")

        self.read_count += 1

        if self._position >= len(self._data):
            return b""

        limit = max_bytes
        if self._read_size is not None:
            limit = self._read_size if limit is None else min(limit, self._read_size)

        if limit is None:
            end = len(self._data)
        else:
            end = min(self._position + limit, len(self._data))

        result = self._data[self._position:end]
        self._position = end
        return result

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("Stream is closed")

        self._write_buffer.append(data)

    async def aclose(self) -> None:
        if not self._closed:
            self.close_count += 1
        self._closed = True

    def get_extra_info(self, name: str) -> Optional[Any]:
        return self._extra_info.get(name)

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def written_data(self) -> bytes:
        """All data that was written to the stream."""
        return b"".join(self._write_buffer)

    @property
    def writes(self) -> List[bytes]:
        """Data written to the stream, one entry per write call."""
        return list(self._write_buffer)

    def set_extra_info(self, name: str, value: Any) -> None:
        self._extra_info[name] = value

    def add_data(self, data: bytes) -> None:
        """Append scripted server bytes to be read."""
        self._data += data

    def peer_close(self) -> None:
        """Simulate the server closing the connection."""
        self._closed = True
