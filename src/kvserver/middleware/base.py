"""
=============================================================================
MIDDLEWARE PIPELINE
=============================================================================

Middleware wraps the router with behaviour that applies to every request,
such as the access log. Each middleware receives the request and a `next`
callable, and decides what to do before and after calling it.

    pipeline.add(LoggingMiddleware())

            ┌─────────────────────────────────────────────┐
            │  LoggingMiddleware                          │
            │  ┌───────────────────────────────────────┐  │
            │  │                                       │  │
            │  │   router.handle → KVGateway handler   │  │
            │  │                                       │  │
            │  └───────────────────────────────────────┘  │
            └─────────────────────────────────────────────┘

The first middleware added is the outermost layer: it sees the request
first and the response last.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Iterator
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

    Subclasses implement __call__ and must call next(request) unless they
    answer the request themselves:

        class Timing(Middleware):
            def __call__(self, request, next):
                start = time.time()
                response = next(request)
                response.set_header("X-Elapsed", f"{time.time() - start:.3f}")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Args:
            request: The parsed request
            next: The rest of the chain

        Returns:
            The response, from next() or produced here
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered list of middleware that can wrap a final handler.

    Usage:
        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())
        handler = pipeline.wrap(router.handle)
        response = handler(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append middleware (innermost so far). Returns self for chaining."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        """Add several middleware in order."""
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around handler.

        Wrapping runs in reverse so that [A, B] gives A(B(handler)).
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._bind(middleware, current)
        return current

    @staticmethod
    def _bind(middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)
