"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this server actually sends, with their RFC 7231 reason
phrases.

    ┌────────┬──────────────────────────────┬───────────────────────────────┐
    │ Code   │ Phrase                       │ When kvserver sends it        │
    ├────────┼──────────────────────────────┼───────────────────────────────┤
    │ 200    │ OK                           │ every matched route           │
    │ 400    │ Bad Request                  │ malformed request line/body   │
    │ 404    │ Not Found                    │ unmatched route or method     │
    │ 405    │ Method Not Allowed           │ known path, other method      │
    │        │                              │ (opt-in)                      │
    │ 408    │ Request Timeout              │ client too slow to send       │
    │ 413    │ Payload Too Large            │ request over max size         │
    │ 500    │ Internal Server Error        │ handler raised                │
    │ 503    │ Service Unavailable          │ worker queue full             │
    │ 505    │ HTTP Version Not Supported   │ anything but HTTP/1.0 or 1.1  │
    └────────┴──────────────────────────────┴───────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 2xx
    OK = 200

    # 4xx
    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413

    # 5xx
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line, e.g. "Not Found"."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        """True for 5xx; the access log raises these to WARNING."""
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
