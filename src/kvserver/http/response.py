"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds and serializes HTTP/1.1 responses. Every body this server sends is
plain text; there is no JSON surface.

=============================================================================
WIRE FORMAT
=============================================================================

    HTTP/1.1 200 OK\r\n                              ← status line
    Content-Type: text/plain; charset=utf-8\r\n
    Content-Length: 28\r\n                           ← added by to_bytes()
    Date: Mon, 19 Oct 2026 07:31:00 GMT\r\n          ← added by to_bytes()
    Server: kvserver/1.0\r\n                         ← added by to_bytes()
    \r\n
    Updated: data[color] = red                       ← body

=============================================================================
TWO WAYS TO BUILD ONE
=============================================================================

    # Fluent builder
    response = (ResponseBuilder()
        .status(HTTPStatus.OK)
        .text("Read list: ")
        .build())

    # One-liners for the common cases
    return ok("Read list: ")
    return not_found("No route matches /nope")

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Union

from .status_codes import HTTPStatus


TEXT_PLAIN = "text/plain; charset=utf-8"


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be serialized.

    Attributes:
        status:  HTTPStatus member
        headers: Header name → value (case preserved)
        body:    Body bytes
        version: Protocol version for the status line
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """E.g. "HTTP/1.1 404 Not Found"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def text(self) -> str:
        """Body decoded as UTF-8."""
        return self.body.decode("utf-8", errors="replace")

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header; returns self for chaining."""
        self.headers[name] = value
        return self

    def to_bytes(self, server_name: str = "kvserver/1.0") -> bytes:
        """
        Serialize for socket.sendall().

        Content-Length, Date and Server are filled in when the handler did
        not set them. The stored headers are not modified.
        """
        response_headers = dict(self.headers)

        response_headers.setdefault("Content-Length", str(len(self.body)))
        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        response_headers.setdefault("Server", server_name)

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

    Every method but build() and to_bytes() returns self:

        (ResponseBuilder()
            .status(HTTPStatus.OK)
            .header("X-Entries", "3")
            .text("Read list: a:1, b:2, c:3")
            .build())
    """

    def __init__(self, server_name: str = "kvserver/1.0"):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""
        self._server_name = server_name

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Raw body; strings are UTF-8 encoded. Content-Type is left alone."""
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str, content_type: str = TEXT_PLAIN) -> "ResponseBuilder":
        """Plain-text body with a text/plain Content-Type."""
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def no_cache(self) -> "ResponseBuilder":
        """
        Forbid caching.

        Store reads change whenever someone PUTs, so a cached
        "Read entry" would go stale immediately.
        """
        self._headers["Cache-Control"] = "no-store"
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )

    def to_bytes(self) -> bytes:
        """build() and serialize in one step."""
        return self.build().to_bytes(self._server_name)


def format_http_date(dt: datetime) -> str:
    """
    Format a UTC datetime as an RFC 7231 HTTP-date.

    Example: "Mon, 19 Oct 2026 07:31:00 GMT". Built by hand because
    strftime's %a/%b follow the process locale.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# All of these produce text/plain bodies. Error bodies read
# "<code> <phrase>: <message>" so they are useful from curl.
#
# =============================================================================

def ok(body: str = "") -> HTTPResponse:
    """200 OK with a plain-text body."""
    return ResponseBuilder().status(HTTPStatus.OK).text(body).build()


def error_response(status: HTTPStatus, message: str) -> HTTPResponse:
    """Text error response, e.g. "404 Not Found: No route matches /x"."""
    text = f"{int(status)} {status.phrase}"
    if message and message != status.phrase:
        text += f": {message}"
    return ResponseBuilder().status(status).text(text).build()


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    return error_response(HTTPStatus.BAD_REQUEST, message)


def not_found(message: str = "Not Found") -> HTTPResponse:
    return error_response(HTTPStatus.NOT_FOUND, message)


def method_not_allowed(allowed_methods: list[str]) -> HTTPResponse:
    """405 with the Allow header RFC 7231 requires."""
    response = error_response(
        HTTPStatus.METHOD_NOT_ALLOWED,
        f"allowed: {', '.join(allowed_methods)}",
    )
    response.headers["Allow"] = ", ".join(allowed_methods)
    return response


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)


def service_unavailable(message: str = "Service Unavailable") -> HTTPResponse:
    return error_response(HTTPStatus.SERVICE_UNAVAILABLE, message)
