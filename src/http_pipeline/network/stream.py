"""
Network stream interface for http_pipeline.

The pipeline never touches sockets directly: every byte goes through a
NetworkStream. Reads and writes on the stream are the only points where
a pipelining run suspends.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class NetworkStream(ABC):
    """
    Interface for a single, already-established byte stream.

    A stream is owned by exactly one HTTP11Connection and must not be
    shared between concurrently running tasks.
    """

    @abstractmethod
    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        """
        Read the next available bytes from the peer.

        Args:
            max_bytes: Upper bound on the number of bytes returned.

        Returns:
            The bytes read, or ``b""`` once the peer has closed its side.

        Raises:
            RuntimeError: If the stream is closed.
            OSError: If a network error occurs.
        """

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """
        Write all of ``data`` to the peer.

        Raises:
            RuntimeError: If the stream is closed.
            OSError: If a network error occurs.
        """

    @abstractmethod
    async def aclose(self) -> None:
        """Close the stream. Closing an already closed stream does nothing."""

    @abstractmethod
    def get_extra_info(self, name: str) -> Optional[Any]:
        """
        Get transport details such as ``"peername"`` or ``"ssl_object"``.

        Returns:
            The requested information or None if not available.
        """

    @property
    @abstractmethod
    def is_closed(self) -> bool:
        """True once either side has closed the stream."""
