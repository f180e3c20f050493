"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from kvserver import HTTPServer, KeyValueStore, ServerConfig, create_app
from kvserver.http import HTTPRequest


@pytest.fixture
def store() -> KeyValueStore:
    """A fresh, empty store."""
    return KeyValueStore()


@pytest.fixture
def make_request():
    """Build an HTTPRequest without going through the parser."""
    def _make(method: str, path: str, **kwargs) -> HTTPRequest:
        kwargs.setdefault("client_address", ("127.0.0.1", 50000))
        return HTTPRequest(method=method, path=path, **kwargs)
    return _make


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def config(free_port: int) -> ServerConfig:
    """Loopback test configuration on a free port."""
    return ServerConfig(
        host="127.0.0.1",
        port=free_port,
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        log_level="WARNING",
    )


class LiveServer:
    """Runs an HTTPServer on a background thread."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def host(self) -> str:
        return self.server.config.host

    @property
    def port(self) -> int:
        return self.server.config.port

    def start(self):
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"banner": False},
            daemon=True,
        )
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


@pytest.fixture
def live_server(config: ServerConfig, store: KeyValueStore) -> Generator[LiveServer, None, None]:
    """The KV app serving `store` on a free loopback port."""
    srv = LiveServer(create_app(config, store=store))
    srv.start()

    yield srv

    srv.stop()


@pytest.fixture
def serve() -> Generator:
    """Start any HTTPServer in the background; stopped at teardown."""
    started = []

    def _serve(server: HTTPServer) -> LiveServer:
        srv = LiveServer(server)
        srv.start()
        started.append(srv)
        return srv

    yield _serve

    for srv in started:
        srv.stop()
