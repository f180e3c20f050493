"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything between raw bytes and the gateway's handler functions:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   bytes ──► RequestParser ──► HTTPRequest ──► Router ──► handler     │
    │                                                            │         │
    │   bytes ◄── HTTPResponse.to_bytes() ◄── HTTPResponse ◄─────┘         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    request.py       RequestParser, HTTPRequest, HTTPParseError
    response.py      HTTPResponse, ResponseBuilder, text response helpers
    router.py        Router with ":param" path segments
    status_codes.py  HTTPStatus with reason phrases

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,                   # 200
    error_response,       # any status, text body
    bad_request,          # 400
    not_found,            # 404
    method_not_allowed,   # 405
    internal_error,       # 500
    service_unavailable,  # 503
)
from .router import Router, Route, RouteMatch
from .status_codes import HTTPStatus

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "error_response",
    "bad_request",
    "not_found",
    "method_not_allowed",
    "internal_error",
    "service_unavailable",

    "Router",
    "Route",
    "RouteMatch",

    "HTTPStatus",
]
