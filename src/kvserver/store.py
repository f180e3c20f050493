"""
=============================================================================
IN-MEMORY KEY-VALUE STORE
=============================================================================

The only stateful component of the service: a string → string mapping
guarded by one reader/writer lock.

=============================================================================
LOCK DISCIPLINE
=============================================================================

    ┌────────────────┬──────────────┬────────────────────────────────────┐
    │ Operation      │ Lock         │ Effect                             │
    ├────────────────┼──────────────┼────────────────────────────────────┤
    │ get(key)       │ shared       │ value or None (never raises)       │
    │ list()         │ shared       │ copy of all entries                │
    │ set(key, val)  │ exclusive    │ insert or replace                  │
    └────────────────┴──────────────┴────────────────────────────────────┘

Every read that starts after a set() returns sees that write. A read
never sees half a write: the dict assignment happens entirely inside the
exclusive section.

The dict itself is never handed out. list() returns a copy built while
the read lock is held, so callers can iterate it at leisure without
racing a concurrent set().

=============================================================================
OWNERSHIP
=============================================================================

There is no module-level store. The application builds one and passes it
to the gateway:

    store = KeyValueStore()
    gateway = KVGateway(store)

Tests do the same and get a clean store per test case.

=============================================================================
"""

import logging
from typing import Dict, Optional

from .core.rwlock import ReadWriteLock


logger = logging.getLogger(__name__)


class KeyValueStore:
    """
    Thread-safe in-memory mapping from string keys to string values.

    A missing key is a normal outcome: get() returns None, which is
    distinct from a key whose value is the empty string.

    Usage:
        store = KeyValueStore()
        store.set("color", "red")
        store.get("color")      # "red"
        store.get("missing")    # None
        store.list()            # {"color": "red"}
    """

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = ReadWriteLock()

    def get(self, key: str) -> Optional[str]:
        """Return the value stored under key, or None if it was never set."""
        with self._lock.read_locked():
            return self._data.get(key)

    def list(self) -> Dict[str, str]:
        """Return a point-in-time copy of every entry."""
        with self._lock.read_locked():
            return dict(self._data)

    def set(self, key: str, value: str) -> None:
        """Insert key, or replace its value if it already exists."""
        with self._lock.write_locked():
            replaced = key in self._data
            self._data[key] = value

        logger.debug(f"{'Replaced' if replaced else 'Inserted'} entry {key!r}")

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._data)

    def __repr__(self) -> str:
        return f"<KeyValueStore entries={len(self)}>"
