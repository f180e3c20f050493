"""
=============================================================================
ACCESS LOG
=============================================================================

One log line per request on the "kvserver.access" logger, in either of
two shapes:

    text:
        127.0.0.1 - - [19/Oct/2026:10:15:02 +0000] "PUT /entry/color/red" 200 28 0.41ms

    json:
        {"request_id": "3f9c1a2b", "method": "PUT", "path": "/entry/color/red",
         "client_ip": "127.0.0.1", "status_code": 200, "content_length": 28, ...}

Successful and 4xx requests log at the configured level (INFO by
default). 5xx responses log at WARNING so they stand out. A handler that
raises is logged at ERROR and the exception continues outward to the
server, which turns it into a 500.

Every response gets an X-Request-ID header matching the id in the log
line, so a client can quote it back when reporting a problem.

Route the access log separately from the application log with:

    logging.getLogger("kvserver.access").addHandler(file_handler)

=============================================================================
"""

import time
import json
import uuid
import logging
from typing import Optional, Dict, Any
from dataclasses import dataclass, asdict
from urllib.parse import quote

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus


logger = logging.getLogger("kvserver.access")

# Printable URL characters that need no escaping in a quoted log field.
_PATH_SAFE = "/:@!$&'()*+,;="


@dataclass
class RequestLog:
    """One access-log record."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        record = asdict(self)
        record["duration_ms"] = round(self.duration_ms, 2)
        return record

    def to_text(self) -> str:
        """
        Apache-style line, path and status first after the timestamp.

        The path is re-quoted: it was percent-decoded by the parser, and a
        decoded "\n" or "\"" would otherwise split or forge log lines.
        """
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {quote(self.path, safe=_PATH_SAFE)}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request timing and access logging.

    Add it first so the timing covers everything else in the chain:

        pipeline.add(LoggingMiddleware(log_format="json"))
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        """
        Args:
            log_format: "text" or "json"
            include_request_id: Add X-Request-ID to every response
            log_level: Level for non-5xx requests
            skip_paths: Paths that are never logged
        """
        if log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {log_format!r}")

        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = uuid.uuid4().hex[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"[{request_id}] Request failed: {request.method} "
                f"{quote(request.path, safe=_PATH_SAFE)} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        if self.include_request_id:
            response.set_header("X-Request-ID", request_id)

        if request.path in self.skip_paths:
            return response

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query="&".join(
                f"{name}={value}"
                for name, values in request.query_params.items()
                for value in values
            ),
            client_ip=request.client_address[0] if request.client_address else "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        level = self.log_level
        if HTTPStatus(response.status).is_server_error:
            level = max(level, logging.WARNING)

        if self.log_format == "json":
            logger.log(level, json.dumps(entry.to_dict()))
        else:
            logger.log(level, entry.to_text())

        return response
