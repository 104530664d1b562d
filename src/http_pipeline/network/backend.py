"""
Network backend interface for http_pipeline.

Backends establish the connections that pipelining runs over. Opening the
connection is the caller's business; the pipeline only needs the stream.
"""

from abc import ABC, abstractmethod
from typing import Optional, List
from .stream import NetworkStream


class NetworkBackend(ABC):
    """Interface for network backend implementations."""

    @abstractmethod
    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
    ) -> NetworkStream:
        """
        Connect to a TCP endpoint.

        Args:
            host: The hostname or IP address to connect to.
            port: The port number to connect to.
            timeout: Optional timeout in seconds for the connection.

        Returns:
            A NetworkStream representing the TCP connection.

        Raises:
            OSError: If the connection fails.
            asyncio.TimeoutError: If the connection times out.
        """

    @abstractmethod
    async def connect_tls(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        alpn_protocols: Optional[List[str]] = None,
    ) -> NetworkStream:
        """
        Connect to a TLS endpoint.

        Args:
            host: The hostname, also used for certificate verification.
            port: The port number to connect to.
            timeout: Optional timeout in seconds for connect and handshake.
            alpn_protocols: Optional list of ALPN protocols to negotiate.
                Pipelining needs ``['http/1.1']``.

        Returns:
            A NetworkStream representing the TLS connection.

        Raises:
            OSError: If the connection or TLS handshake fails.
            asyncio.TimeoutError: If the handshake times out.
        """
