"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted client socket: frames complete HTTP requests out of the
byte stream, sends responses, and closes cleanly.

=============================================================================
FRAMING A REQUEST
=============================================================================

TCP hands us bytes in whatever chunks the network produced. A request is
complete when we have the full header block and Content-Length bytes of
body after it:

    recv() chunks:   "PUT /entry/co"  "lor/red HTTP/1.1\r\nHo"  "st: x\r\n\r\n"
                      └──────────────────────┬──────────────────────────────┘
                                     _buffer accumulates
                                             │
                           found \r\n\r\n ───┘
                                             │
                       Content-Length (0 for KV requests)
                                             │
                                             ▼
                        one request returned, leftovers kept in _buffer
                        for the next request on this connection

=============================================================================
KEEP-ALIVE
=============================================================================

HTTP/1.1 clients reuse the connection. The first request gets the full
`timeout`; every later one gets the shorter `keep_alive_timeout`, and
timing out while idle just ends the connection quietly.

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
              ▲                                                 │
              └─────────────────────────────────────────────────┘
    any state ──► CLOSING ──► CLOSED

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle of a connection; used in logs and by the server loop."""
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


class RequestTooLarge(ValueError):
    """The client sent more bytes than max_request_size before finishing."""


@dataclass
class Connection:
    """
    An accepted client connection.

    Attributes:
        socket:            Client socket from accept()
        address:           Peer (ip, port)
        id:                Short random id used to tag log lines
        state:             Current ConnectionState
        requests_handled:  Requests read so far on this connection
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Seconds since accept()."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read exactly one request from the socket.

        Returns:
            The request bytes, or None when the peer closed the connection
            or went idle past keep_alive_timeout.

        Raises:
            TimeoutError: The first request did not arrive within timeout.
            RequestTooLarge: The request exceeds max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                if not self._fill():
                    return None

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                if not self._fill():
                    break  # peer closed mid-body; the parser reports it

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _fill(self) -> bool:
        """Append one recv() to the buffer; False when the peer closed."""
        try:
            chunk = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            chunk = b""

        if not chunk:
            return False

        self._buffer += chunk
        self.last_activity = time.time()

        if len(self._buffer) > self.max_request_size:
            raise RequestTooLarge(f"Request too large: {len(self._buffer)} bytes")
        return True

    @staticmethod
    def _parse_content_length(headers: bytes) -> int:
        """
        Content-Length from the raw header block, 0 if absent or invalid.

        Only framing needs this; RequestParser validates it properly.
        """
        for line in headers.decode("latin-1").lower().split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(0, int(line.split(":", 1)[1].strip()))
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send a serialized response with sendall().

        Returns:
            True on success, False if the peer has gone away.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

        self.last_activity = time.time()
        return True

    def set_keep_alive(self):
        """Response sent; wait for the next request on this connection."""
        self.state = ConnectionState.KEEP_ALIVE

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Half-close, drain, then release the socket. Safe to call twice.

        Shutting down the write side first sends FIN so the client sees a
        clean end of stream instead of a reset.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Closed after {self.requests_handled} requests "
            f"({self.age:.2f}s)"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
