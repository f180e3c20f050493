"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) pairs to handler functions, with ":name" segments
captured as path parameters.

=============================================================================
THE KV ROUTE TABLE
=============================================================================

    ┌────────┬──────────────────────┬─────────────────────────────────────┐
    │ Method │ Pattern              │ Example match                       │
    ├────────┼──────────────────────┼─────────────────────────────────────┤
    │ GET    │ /entry/:key          │ /entry/color → {key: color}         │
    │ GET    │ /list                │ /list        → {}                   │
    │ PUT    │ /entry/:key/:value   │ /entry/color/red                    │
    │        │                      │   → {key: color, value: red}        │
    └────────┴──────────────────────┴─────────────────────────────────────┘

A ":name" segment matches exactly one non-empty path segment, so
/entry/:key and /entry/:key/:value never shadow each other.

=============================================================================
PATTERN COMPILATION
=============================================================================

Each pattern becomes an anchored regex with one named group per
parameter:

    /entry/:key/:value
        │      │     │
        ▼      ▼     ▼
    ^/entry/(?P<key>[^/]+)/(?P<value>[^/]+)$

Matching walks the routes in registration order; the first hit wins.

=============================================================================
UNMATCHED REQUESTS
=============================================================================

    path unknown                       → 404 Not Found
    path known, method differs         → 404 Not Found      (default)
                                         405 + Allow header (opt-in)

The 405 behaviour is switched on with handle_method_not_allowed=True.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, List
import logging
import re

from .request import HTTPRequest
from .response import HTTPResponse, not_found, method_not_allowed


logger = logging.getLogger(__name__)


Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """
    A registered route.

    Attributes:
        path:    Pattern as registered, e.g. "/entry/:key"
        method:  Upper-case method, or None for any method
        handler: Callable taking the request and returning a response
    """

    path: str
    method: Optional[str]
    handler: Handler

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    """A route together with the parameters extracted from the path."""

    route: Route
    params: Dict[str, str]


class Router:
    """
    Method + path router with ":param" segments.

    Usage:
        router = Router()

        @router.get("/entry/:key")
        def show(request):
            return ok(request.path_params["key"])

        response = router.handle(request)
    """

    def __init__(self, handle_method_not_allowed: bool = False):
        """
        Args:
            handle_method_not_allowed: Answer 405 with an Allow header when
                the path is registered under a different method. When
                False every unmatched request gets 404.
        """
        self.handle_method_not_allowed = handle_method_not_allowed
        self._routes: List[Route] = []

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None,
    ) -> Route:
        """
        Register handler for path. method=None accepts every method.

        Returns:
            The Route that was added.
        """
        pattern, param_names = self._compile_pattern(path)

        route = Route(
            path=path,
            method=method.upper() if method else None,
            handler=handler,
            _pattern=pattern,
            _param_names=param_names,
        )
        self._routes.append(route)

        logger.debug(f"Registered route {route.method or 'ANY'} {path}")
        return route

    def _compile_pattern(self, path: str) -> tuple[re.Pattern, List[str]]:
        """
        Compile "/entry/:key" to ^/entry/(?P<key>[^/]+)$.

        Returns:
            (compiled regex, parameter names in order)

        Raises:
            ValueError: If a parameter name repeats or is not an identifier.
        """
        param_names: List[str] = []
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue

            regex_parts.append("/")

            if segment.startswith(":"):
                name = segment[1:]
                if not name.isidentifier():
                    raise ValueError(f"Invalid parameter name {name!r} in {path!r}")
                if name in param_names:
                    raise ValueError(f"Duplicate parameter {name!r} in {path!r}")
                param_names.append(name)
                regex_parts.append(f"(?P<{name}>[^/]+)")
            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")  # the root pattern "/"

        regex_parts.append("$")
        return re.compile("".join(regex_parts)), param_names

    def route(self, path: str, method: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Decorator form of add_route(); returns the handler unchanged."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method)
            return handler
        return decorator

    def get(self, path: str) -> Callable[[Handler], Handler]:
        """Register a GET route."""
        return self.route(path, "GET")

    def put(self, path: str) -> Callable[[Handler], Handler]:
        """Register a PUT route."""
        return self.route(path, "PUT")

    # =========================================================================
    # MATCHING
    # =========================================================================

    @staticmethod
    def _normalize(path: str) -> str:
        # "/list/" and "list" both become "/list"
        return "/" + path.strip("/") if path != "/" else "/"

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the first route matching method and path.

        Methods compare case-sensitively: "get" is not "GET".

        Returns:
            RouteMatch, or None when nothing matches.
        """
        path = self._normalize(path)

        for route in self._routes:
            if route.method and route.method != method:
                continue

            found = route._pattern.match(path)
            if found:
                return RouteMatch(route=route, params=found.groupdict())

        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods registered for path, sorted; used for the Allow header."""
        path = self._normalize(path)
        methods = set()

        for route in self._routes:
            if route._pattern.match(path):
                if route.method is None:
                    return ["DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"]
                methods.add(route.method)

        return sorted(methods)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch request to its handler.

        Path parameters are stored on request.path_params before the
        handler runs.
        """
        found = self.match(request.method, request.path)

        if found:
            request.path_params = found.params
            return found.route.handler(request)

        if self.handle_method_not_allowed:
            allowed = self.get_allowed_methods(request.path)
            if allowed:
                return method_not_allowed(allowed)

        return not_found(f"No route matches {request.method} {request.path}")

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def routes(self) -> List[Route]:
        """All registered routes in match order."""
        return list(self._routes)

    def print_routes(self) -> None:
        """Print the route table (shown in the startup banner)."""
        print("\nRegistered Routes:")
        print("-" * 60)
        for route in self._routes:
            print(f"  {route.method or 'ANY':8} {route.path}")
        print("-" * 60)
