"""
=============================================================================
KVSERVER
=============================================================================

An in-memory string → string store behind a small HTTP/1.1 server built
directly on sockets and threads.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   client ──► SocketServer ──► ThreadPool worker                     │
    │                                    │                                 │
    │                         RequestParser → LoggingMiddleware → Router  │
    │                                    │                                 │
    │                                KVGateway                             │
    │                                    │                                 │
    │                       KeyValueStore (reader/writer lock)            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Quick start:

    from kvserver import create_app, ServerConfig

    app = create_app(ServerConfig.from_address(":8080"))
    app.run()

=============================================================================
"""

__version__ = "1.0.0"

from .store import KeyValueStore
from .gateway import KVGateway, render_entry, render_list, render_update
from .config import ServerConfig, parse_address
from .server import HTTPServer, create_app

__all__ = [
    "__version__",
    "KeyValueStore",
    "KVGateway",
    "render_entry",
    "render_list",
    "render_update",
    "ServerConfig",
    "parse_address",
    "HTTPServer",
    "create_app",
]
