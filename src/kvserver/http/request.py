"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes of one HTTP/1.x request into an HTTPRequest.

=============================================================================
WHAT THE KV ROUTES NEED FROM A REQUEST
=============================================================================

    PUT /entry/color/red HTTP/1.1\r\n
    ─┬─ ────────┬─────── ────┬───
     │          │            │
   method     path        version ──► keep-alive decision
     │          │
     │          └──► percent-decoded once, then matched by the router:
     │               /entry/:key/:value → {"key": "color", "value": "red"}
     │
     └──► selects the route (GET reads, PUT writes)

    Host: localhost:8080\r\n      ┐
    Connection: keep-alive\r\n    ├─ headers, names lower-cased
    \r\n                          ┘
    (no body for the KV routes; Content-Length is still honoured)

=============================================================================
PATH DECODING
=============================================================================

The path is decoded with urllib.parse.unquote exactly once, BEFORE
routing:

    /entry/hello%20world      → /entry/hello world     (key "hello world")
    /entry/a+b                → /entry/a+b             ("+" stays literal)
    /entry/a%2Fb/v            → /entry/a/b/v           (no route matches)

So a "/" inside a key or value cannot be expressed through the PUT path.
Nothing else is interpreted: no dot-segment collapsing, no case folding.

=============================================================================
PARSE ERRORS
=============================================================================

    ┌──────────────────────────────────────┬────────┐
    │ Problem                              │ Status │
    ├──────────────────────────────────────┼────────┤
    │ no \r\n\r\n, bad request line        │ 400    │
    │ body shorter than Content-Length     │ 400    │
    │ request bigger than max_request_size │ 413    │
    │ HTTP version other than 1.0 / 1.1    │ 505    │
    └──────────────────────────────────────┴────────┘

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import urlparse, unquote, parse_qs
import re


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Carries the HTTP status the server should answer with.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         GET, PUT, ...
        path:           Percent-decoded path without the query string
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header name (lower-case) → value
        query_params:   "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Raw body bytes (Content-Length bytes exactly)
        path_params:    Filled in by the router, e.g. {"key": "color"}
        client_address: (ip, port) of the peer
        raw:            The unparsed request bytes
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)
    raw: bytes = field(default=b"", repr=False)

    @property
    def content_length(self) -> int:
        """Content-Length as an int, 0 when missing or garbage."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the connection should stay open after the response.

        HTTP/1.1 keeps alive unless the client sends "Connection: close".
        HTTP/1.0 closes unless the client sends "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter, or default."""
        values = self.query_params.get(name, [])
        return values[0] if values else default


class RequestParser:
    """
    Parses raw request bytes into HTTPRequest objects.

        raw bytes
            │
            ├── size check                    → 413
            ├── split at \r\n\r\n             → 400 if missing
            ├── request line                  → 400 / 505
            ├── headers                       (lenient: bad lines skipped)
            └── body by Content-Length        → 400 if short
            │
            ▼
        HTTPRequest

    One parser instance is shared by every worker thread; it keeps no
    per-request state.
    """

    # METHOD SP REQUEST-URI SP HTTP-VERSION; any token is a method,
    # unknown ones are left for the router to turn away
    REQUEST_LINE_PATTERN = re.compile(r"^([!#$%&'*+.^_`|~0-9A-Za-z-]+) ([^ ]+) (HTTP/\d\.\d)$")
    # field-name ":" OWS field-value
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        """
        Args:
            max_request_size: Largest request accepted, in bytes (413 above).
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse one complete request.

        Args:
            data: Request bytes as framed by Connection.read_request().
            client_address: Peer (ip, port), kept for access logging.

        Returns:
            The parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError(
                f"Invalid Content-Length: {headers['content-length']!r}"
            )

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        # Anything past Content-Length belongs to the next pipelined request.
        body = body[:content_length]

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body,
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        """
        Split "GET /entry/color?x=1 HTTP/1.1" into its parts.

        Returns:
            (method, decoded path, query params, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, uri, version = match.groups()

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict keyed by lower-case name.

        - Lines starting with whitespace continue the previous header
          (obsolete line folding, still accepted).
        - A repeated header is joined with ", " (RFC 7230 §3.2.2).
        - Lines without a colon are skipped.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024
) -> HTTPRequest:
    """Parse a single request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
