"""
=============================================================================
KEY-VALUE HTTP GATEWAY
=============================================================================

Translates the three KV routes into store calls and renders the results
as plain text.

    ┌────────┬──────────────────────┬──────────────────────────────────────┐
    │ Method │ Path                 │ 200 body                             │
    ├────────┼──────────────────────┼──────────────────────────────────────┤
    │ GET    │ /entry/:key          │ Read entry: data[<key>] = <value>    │
    │ GET    │ /list                │ Read list: <k1>:<v1>, <k2>:<v2>      │
    │ PUT    │ /entry/:key/:value   │ Updated: data[<key>] = <value>       │
    └────────┴──────────────────────┴──────────────────────────────────────┘

Anything else never reaches this module; the router answers 404.

=============================================================================
RENDERING RULES
=============================================================================

    • A key that was never written renders with an empty value:

          GET /entry/missing   →   Read entry: data[missing] =

      This is the same text a key set to "" would produce. Clients that
      need to tell the two apart should use /list.

    • /list is sorted by key so the output is stable between calls:

          {"b": "2", "a": "1"}   →   Read list: a:1, b:2
          {}                     →   Read list:

    • Keys and values are shown exactly as they arrived in the path, after
      one round of percent-decoding by the request parser.

=============================================================================
EXAMPLE SESSION
=============================================================================

    $ curl -X PUT localhost:8080/entry/color/red
    Updated: data[color] = red
    $ curl localhost:8080/entry/color
    Read entry: data[color] = red
    $ curl localhost:8080/list
    Read list: color:red

=============================================================================
"""

import logging
from typing import Dict, Optional

from .store import KeyValueStore
from .http.request import HTTPRequest
from .http.response import HTTPResponse, ResponseBuilder
from .http.router import Router
from .http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


# =============================================================================
# TEXT RENDERING
# =============================================================================

def render_entry(key: str, value: Optional[str]) -> str:
    """'Read entry: data[key] = value'; a missing value renders as ''."""
    return f"Read entry: data[{key}] = {value or ''}"


def render_list(entries: Dict[str, str]) -> str:
    """'Read list: k1:v1, k2:v2', sorted by key."""
    rendered = ", ".join(f"{key}:{entries[key]}" for key in sorted(entries))
    return f"Read list: {rendered}"


def render_update(key: str, value: str) -> str:
    return f"Updated: data[{key}] = {value}"


def _text(body: str) -> HTTPResponse:
    # Store contents change underneath; never let an intermediary cache them.
    return ResponseBuilder().status(HTTPStatus.OK).text(body).no_cache().build()


# =============================================================================
# HANDLERS
# =============================================================================

class KVGateway:
    """
    HTTP handlers bound to one KeyValueStore.

    Usage:
        store = KeyValueStore()
        gateway = KVGateway(store)
        gateway.register(router)
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    def register(self, router: Router) -> Router:
        """Install the three KV routes on router and return it."""
        router.add_route("/entry/:key", self.show_entry, "GET")
        router.add_route("/list", self.show_list, "GET")
        router.add_route("/entry/:key/:value", self.update, "PUT")
        return router

    def show_entry(self, request: HTTPRequest) -> HTTPResponse:
        """GET /entry/:key"""
        key = request.path_params["key"]
        return _text(render_entry(key, self.store.get(key)))

    def show_list(self, request: HTTPRequest) -> HTTPResponse:
        """GET /list"""
        return _text(render_list(self.store.list()))

    def update(self, request: HTTPRequest) -> HTTPResponse:
        """PUT /entry/:key/:value"""
        key = request.path_params["key"]
        value = request.path_params["value"]

        self.store.set(key, value)
        logger.info(f"Updated entry {key!r}")

        return _text(render_update(key, value))
