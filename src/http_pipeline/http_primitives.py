"""
HTTP primitives for http_pipeline.

This module defines the core data structures for HTTP requests and responses.
All classes are immutable: once a response has been read from the wire it is
never changed, reading its body produces a new instance.
"""

from typing import (
    Any,
    Dict,
    List,
    Optional,
    Tuple,
    Union,
    NamedTuple,
)
from dataclasses import dataclass, field
from urllib.parse import urlparse


# Type aliases for better readability
Headers = List[Tuple[bytes, bytes]]
URL = Tuple[bytes, bytes, int, bytes]  # (scheme, host, port, path)
StatusCode = int

# Methods whose responses never carry a body.
BODYLESS_RESPONSE_METHODS = frozenset({b"HEAD"})


class URLComponents(NamedTuple):
    """Immutable representation of URL components."""
    scheme: bytes
    host: bytes
    port: int
    path: bytes

    @classmethod
    def from_url(cls, url: str) -> "URLComponents":
        """Create URLComponents from a URL string."""
        parsed = urlparse(url)
        scheme = parsed.scheme.encode() if parsed.scheme else b"http"
        host = parsed.hostname.encode() if parsed.hostname else b""
        port = parsed.port or (443 if scheme == b"https" else 80)
        path = parsed.path.encode() if parsed.path else b"/"
        if parsed.query:
            path += b"?" + parsed.query.encode()

        return cls(scheme=scheme, host=host, port=port, path=path)

    def to_tuple(self) -> URL:
        """Convert to the internal URL tuple format."""
        return (self.scheme, self.host, self.port, self.path)


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode() if isinstance(value, str) else value


def _find_header(headers: Headers, name: Union[str, bytes]) -> Optional[bytes]:
    name_lower = _to_bytes(name).lower()
    for header_name, header_value in headers:
        if header_name.lower() == name_lower:
            return header_value
    return None


@dataclass(frozen=True)
class Request:
    """
    Immutable HTTP request representation.

    A request is created by the caller and handed to the pipeline, which
    writes it to the connection at most once. The body is held in memory
    as ``content`` so that a request can be serialized in one go as part
    of a pipelined batch.
    """

    method: bytes
    url: URL
    headers: Headers = field(default_factory=list)
    content: bytes = b""

    def __post_init__(self) -> None:
        """Validate request data after initialization."""
        if not isinstance(self.method, bytes):
            raise ValueError("method must be bytes")

        if not isinstance(self.url, tuple) or len(self.url) != 4:
            raise ValueError("url must be a 4-tuple (scheme, host, port, path)")

        if not all(isinstance(component, bytes) for component in self.url[:2] + (self.url[3],)):
            raise ValueError("URL components must be bytes")

        if not isinstance(self.url[2], int):
            raise ValueError("URL port must be int")

        if not isinstance(self.headers, list):
            raise ValueError("headers must be a list")

        for name, value in self.headers:
            if not isinstance(name, bytes) or not isinstance(value, bytes):
                raise ValueError("header names and values must be bytes")

        if not isinstance(self.content, bytes):
            raise ValueError("content must be bytes")

    @classmethod
    def create(
        cls,
        method: Union[str, bytes],
        url: Union[str, URL, URLComponents],
        headers: Optional[Headers] = None,
        content: Union[str, bytes] = b"",
    ) -> "Request":
        """
        Create a Request with proper type conversion.

        A ``Content-Length`` header is added when a body is given and the
        caller did not frame it already.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: URL string, tuple, or URLComponents
            headers: Optional list of (name, value) header tuples
            content: Optional request body

        Returns:
            New Request instance
        """
        method = _to_bytes(method)

        if isinstance(url, str):
            url = URLComponents.from_url(url).to_tuple()
        elif isinstance(url, URLComponents):
            url = url.to_tuple()
        elif not isinstance(url, tuple):
            raise ValueError("url must be string, URLComponents, or URL tuple")

        headers = list(headers) if headers else []
        content = _to_bytes(content)

        if content and _find_header(headers, b"content-length") is None \
                and _find_header(headers, b"transfer-encoding") is None:
            headers.append((b"Content-Length", str(len(content)).encode()))

        return cls(method=method, url=url, headers=headers, content=content)

    def with_headers(self, headers: Headers) -> "Request":
        """Create a new request with different headers."""
        return Request(method=self.method, url=self.url, headers=headers, content=self.content)

    def add_header(self, name: Union[str, bytes], value: Union[str, bytes]) -> "Request":
        """Add a header to the request."""
        new_headers = self.headers + [(_to_bytes(name), _to_bytes(value))]
        return Request(method=self.method, url=self.url, headers=new_headers, content=self.content)

    def get_header(self, name: Union[str, bytes]) -> Optional[bytes]:
        """Get a header value by name (case-insensitive)."""
        return _find_header(self.headers, name)

    @property
    def scheme(self) -> bytes:
        """Get the URL scheme."""
        return self.url[0]

    @property
    def host(self) -> bytes:
        """Get the URL host."""
        return self.url[1]

    @property
    def port(self) -> int:
        """Get the URL port."""
        return self.url[2]

    @property
    def path(self) -> bytes:
        """Get the URL path."""
        return self.url[3]

    @property
    def response_body_permitted(self) -> bool:
        """Whether the response to this request may carry a body."""
        return self.method.upper() not in BODYLESS_RESPONSE_METHODS


@dataclass(frozen=True)
class Response:
    """
    Immutable HTTP response representation.

    Responses are produced by the transport with their status line and
    headers; the body is attached by the transport once it has been read,
    producing a new Response.
    """

    status_code: StatusCode
    headers: Headers = field(default_factory=list)
    http_version: str = "1.1"
    reason: bytes = b""
    content: bytes = b""
    extensions: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate response data after initialization."""
        if not isinstance(self.status_code, int):
            raise ValueError("status_code must be int")

        if not isinstance(self.headers, list):
            raise ValueError("headers must be a list")

        for name, value in self.headers:
            if not isinstance(name, bytes) or not isinstance(value, bytes):
                raise ValueError("header names and values must be bytes")

        if not isinstance(self.http_version, str):
            raise ValueError("http_version must be str")

        if not isinstance(self.extensions, dict):
            raise ValueError("extensions must be a dict")

    @classmethod
    def create(
        cls,
        status_code: StatusCode,
        headers: Optional[Headers] = None,
        http_version: Union[str, bytes] = "1.1",
        reason: bytes = b"",
        content: bytes = b"",
        extensions: Optional[Dict[str, Any]] = None,
    ) -> "Response":
        """
        Create a Response with proper validation.

        Args:
            status_code: HTTP status code
            headers: Optional list of (name, value) header tuples
            http_version: Protocol version reported by the server, e.g. "1.1"
            reason: Reason phrase from the status line
            content: Response body
            extensions: Optional dict for additional data

        Returns:
            New Response instance
        """
        if isinstance(http_version, bytes):
            http_version = http_version.decode("ascii")

        return cls(
            status_code=status_code,
            headers=list(headers) if headers else [],
            http_version=http_version,
            reason=reason,
            content=content,
            extensions=extensions if extensions is not None else {},
        )

    def with_content(self, content: bytes) -> "Response":
        """Create a new response carrying the given body."""
        return Response(
            status_code=self.status_code,
            headers=self.headers,
            http_version=self.http_version,
            reason=self.reason,
            content=content,
            extensions=self.extensions,
        )

    def get_header(self, name: Union[str, bytes]) -> Optional[bytes]:
        """Get a header value by name (case-insensitive)."""
        return _find_header(self.headers, name)

    def has_header(self, name: Union[str, bytes]) -> bool:
        """Check if a header exists (case-insensitive)."""
        return self.get_header(name) is not None

    @property
    def is_interim(self) -> bool:
        """
        Whether this is an informational response preceding the final one.

        101 Switching Protocols ends the HTTP exchange and is not interim.
        """
        return 100 <= self.status_code < 200 and self.status_code != 101

    def has_explicit_close(self) -> bool:
        """Check whether the server asked for the connection to be closed."""
        for name, value in self.headers:
            if name.lower() != b"connection":
                continue
            tokens = [token.strip().lower() for token in value.split(b",")]
            if b"close" in tokens:
                return True
        return False

    @property
    def text(self) -> str:
        """Response body decoded as UTF-8."""
        return self.content.decode("utf-8", errors="replace")
