"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables for kvserver in one dataclass.

=============================================================================
WHERE VALUES COME FROM
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Priority (highest first)                                          │
    │                                                                      │
    │   1. Command line        python -m kvserver --addr :9000            │
    │   2. Environment         KVSERVER_ADDR=:9000 python -m kvserver     │
    │   3. Dataclass defaults  ServerConfig()                             │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LISTEN ADDRESSES
=============================================================================

The CLI takes a single "[host]:port" string, the same shape Go's
net/http uses:

    ":8080"            → ("0.0.0.0", 8080)     all interfaces
    "127.0.0.1:8080"   → ("127.0.0.1", 8080)
    "localhost:9000"   → ("localhost", 9000)
    "[::1]:8080"       → ("::1", 8080)         brackets stripped

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_ADDR = ":8080"


def parse_address(addr: str) -> tuple[str, int]:
    """
    Split a "[host]:port" listen address.

    An empty host means all IPv4 interfaces.

    Raises:
        ValueError: If there is no port or it is not a number.
    """
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ValueError(f"Invalid address {addr!r}: expected [host]:port")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]

    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"Invalid port in address {addr!r}: {port!r}")

    return host or "0.0.0.0", port_number


@dataclass
class ServerConfig:
    """
    Configuration for the key-value HTTP server.

    Groups:
        network     host, port, backlog, buffer_size, timeout
        HTTP        keep_alive, keep_alive_timeout, max_request_size,
                    method_not_allowed
        threading   min_workers, max_workers
        logging     log_level, log_format
        identity    server_name
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """Interface to bind. Default matches the ":8080" listen address."""

    port: int = 8080

    backlog: int = 128
    """Pending connections the kernel queues before refusing."""

    buffer_size: int = 8192
    """Bytes per recv() call."""

    timeout: Optional[float] = 30.0
    """Seconds to wait for a request on a fresh connection. None blocks."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True

    keep_alive_timeout: float = 5.0
    """Idle seconds before a kept-alive connection is closed."""

    max_request_size: int = 1024 * 1024
    """Largest request accepted (1 MB). KV requests carry no body."""

    method_not_allowed: bool = False
    """
    Answer 405 + Allow when the path exists under another method.
    False keeps every unmatched request at 404.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 8

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING, ERROR or CRITICAL."""

    log_format: str = "text"
    """Access log format: "text" (Apache-like) or "json"."""

    # ─────────────────────────────────────────────────────────────────────
    # IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "kvserver/1.0"
    """Value of the Server response header."""

    def __post_init__(self):
        self.validate()

    @property
    def address(self) -> str:
        """The bound address in "host:port" form, for logs and banners."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}"

    @classmethod
    def from_address(cls, addr: str, **overrides) -> "ServerConfig":
        """
        Build a config from a "[host]:port" listen address.

            ServerConfig.from_address(":8080", log_level="DEBUG")
        """
        host, port = parse_address(addr)
        return cls(host=host, port=port, **overrides)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Build a config from environment variables.

            KVSERVER_ADDR        listen address (default ":8080")
            KVSERVER_WORKERS     minimum workers; max is twice this (default 4)
            KVSERVER_TIMEOUT     request timeout in seconds (default 30)
            KVSERVER_LOG_LEVEL   logging level (default INFO)
            KVSERVER_LOG_FORMAT  "text" or "json" (default text)
        """
        workers = int(os.getenv("KVSERVER_WORKERS", "4"))
        return cls.from_address(
            os.getenv("KVSERVER_ADDR", DEFAULT_ADDR),
            min_workers=workers,
            max_workers=workers * 2,
            timeout=float(os.getenv("KVSERVER_TIMEOUT", "30")),
            log_level=os.getenv("KVSERVER_LOG_LEVEL", "INFO"),
            log_format=os.getenv("KVSERVER_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Check every value; raise ValueError on the first bad one.

        Runs from __post_init__, so an invalid config never exists.
        """
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 1-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {self.log_level}")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {self.log_format!r}")
