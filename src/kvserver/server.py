"""
=============================================================================
KVSERVER HTTP SERVER
=============================================================================

Wires the pieces together: listener, worker pool, parser, middleware and
router, with the KV gateway mounted on the router by create_app().

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer.accept()                                             │
    │        │                                                             │
    │        ▼                                                             │
    │   _handle_connection(conn) ── pool full? ──► 503, close             │
    │        │                                                             │
    │        ▼  (worker thread)                                            │
    │   _process_connection(conn)                                         │
    │        │                                                             │
    │        ├── conn.read_request()       timeout on first request ► 408 │
    │        ├── RequestParser.parse()     HTTPParseError ► 4xx/505, close│
    │        ├── middleware → router → KVGateway → KeyValueStore          │
    │        │                              handler raised ► 500          │
    │        ├── conn.send_response()                                      │
    │        └── keep-alive? loop : close                                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
STARTUP FAILURE
=============================================================================

Failing to bind the listen address is the one fatal error. run() lets the
OSError escape after stopping the worker pool; the command-line entry
point logs it as "ListenAndServe: <cause>" and exits with status 1.

=============================================================================
"""

import logging
from typing import Optional, Callable, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, RequestTooLarge, ThreadPool
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus,
    Router, error_response, internal_error,
)
from .middleware import MiddlewarePipeline, Middleware, LoggingMiddleware
from .store import KeyValueStore
from .gateway import KVGateway


logger = logging.getLogger(__name__)


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class HTTPServer:
    """
    Multi-threaded HTTP/1.1 server.

    Usage:
        server = HTTPServer(ServerConfig.from_address(":8080"))
        server.use(LoggingMiddleware())

        @server.get("/entry/:key")
        def show(request):
            ...

        server.run()          # blocks; Ctrl+C or stop() ends it

    Most callers want create_app(), which mounts the KV routes.
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._router = Router(handle_method_not_allowed=self.config.method_not_allowed)
        self._middleware = MiddlewarePipeline()

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware; the first added runs outermost."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def middleware(self) -> MiddlewarePipeline:
        return self._middleware

    def get(self, path: str):
        return self._router.get(path)

    def put(self, path: str):
        return self._router.put(path)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """(host, port) being served."""
        return self._socket_server.address

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None, banner: bool = True):
        """
        Serve until stop() is called or SIGINT/SIGTERM arrives.

        Args:
            host: Override config.host
            port: Override config.port
            banner: Print the startup banner and route table

        Raises:
            OSError: The listen address could not be bound.
        """
        if host:
            self.config.host = host
        if port:
            self.config.port = port
        self.config.validate()

        self._setup_logging()
        self._handler = self._middleware.wrap(self._router.handle)
        self._running = True
        self._thread_pool.start()

        logger.info(f"Starting kvserver on {self.config.address}")
        if banner:
            self._print_startup_banner()

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self):
        """Stop accepting connections; run() returns once workers drain."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listener is accepting; False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    def _print_startup_banner(self):
        print()
        print("=" * 64)
        print(f"  {self.config.server_name} listening on http://{self.config.address}")
        print(f"  Workers: {self.config.min_workers}-{self.config.max_workers} threads")
        print("  Press Ctrl+C to stop")
        print("=" * 64)
        self._router.print_routes()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        logging.getLogger("kvserver").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=self.config.timeout)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Runs on the accept thread: hand conn to a worker or reject it."""
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            block=False,
        )

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """Keep-alive loop for one connection, on a worker thread."""
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break
                except RequestTooLarge as e:
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                    break
                except OSError as e:
                    logger.debug(f"[{conn.id}] Read failed: {e}")
                    break

                if raw_request is None:
                    break

                try:
                    request = self._parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    logger.info(f"[{conn.id}] Rejected request: {e} ({e.status_code})")
                    self._send_error(conn, HTTPStatus(e.status_code), str(e))
                    break

                conn.state = ConnectionState.PROCESSING
                response = self._dispatch(conn, request)

                keep_alive = request.is_keep_alive and self.config.keep_alive
                if keep_alive:
                    response.headers.setdefault("Connection", "keep-alive")
                    response.headers.setdefault(
                        "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                    )
                else:
                    response.headers["Connection"] = "close"

                if not conn.send_response(response.to_bytes(self.config.server_name)):
                    break
                if not keep_alive:
                    break

                conn.set_keep_alive()

    def _dispatch(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        try:
            return self._handler(request)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
            return internal_error()

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        """Error sent outside the router (parse errors, timeouts, overload)."""
        response = error_response(status, message)
        response.set_header("Connection", "close")
        conn.send_response(response.to_bytes(self.config.server_name))


def create_app(
    config: Optional[ServerConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> HTTPServer:
    """
    Build a server with the access log and the KV routes mounted.

    Args:
        config: Server configuration; defaults to ServerConfig().
        store: Store to serve. A fresh empty one is created when omitted.

    Example:
        app = create_app(ServerConfig.from_address(":8080"))
        app.run()
    """
    server = HTTPServer(config)
    server.use(LoggingMiddleware(log_format=server.config.log_format))

    KVGateway(store if store is not None else KeyValueStore()).register(server.router)
    return server
