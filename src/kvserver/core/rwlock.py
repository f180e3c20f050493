"""
=============================================================================
READER/WRITER LOCK
=============================================================================

A lock that lets many threads read at once but gives a writer the
whole critical section to itself.

=============================================================================
WHY NOT threading.Lock?
=============================================================================

A plain Lock serializes everything, including reads that could safely
run side by side:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    PLAIN LOCK vs READER/WRITER LOCK                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   threading.Lock:                                                    │
    │                                                                      │
    │     reader A  ████                                                   │
    │     reader B      ████                                               │
    │     reader C          ████                                           │
    │     writer W              ████                                       │
    │                                                                      │
    │   ReadWriteLock:                                                     │
    │                                                                      │
    │     reader A  ████                                                   │
    │     reader B  ████          (readers share the lock)                 │
    │     reader C  ████                                                   │
    │     writer W      ████      (writer runs alone)                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
WRITER PREFERENCE
=============================================================================

If readers could always join while other readers hold the lock, a steady
stream of GET requests would keep a PUT waiting forever (writer
starvation). So once a writer is WAITING, new readers queue behind it:

    state                         new reader    new writer
    ─────────────────────────     ──────────    ──────────
    free                          enters        enters
    readers active                enters        waits
    readers active, writer waits  waits         waits
    writer active                 waits         waits

There is no FIFO guarantee between waiting threads; whoever the
Condition wakes first wins.

=============================================================================
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class ReadWriteLock:
    """
    Shared/exclusive lock built on a single threading.Condition.

    Usage:
        lock = ReadWriteLock()

        with lock.read_locked():
            value = data.get(key)

        with lock.write_locked():
            data[key] = value
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0            # Threads currently holding a read lock
        self._writer = False         # True while a writer holds the lock
        self._writers_waiting = 0    # Writers blocked in acquire_write()

    # =========================================================================
    # SHARED (READ) SIDE
    # =========================================================================

    def acquire_read(self) -> None:
        """Block until no writer holds or is waiting for the lock."""
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        """Release a read lock; the last reader out wakes waiting writers."""
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_read() called without a read lock")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    # =========================================================================
    # EXCLUSIVE (WRITE) SIDE
    # =========================================================================

    def acquire_write(self) -> None:
        """Block until there are no readers and no other writer."""
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        """Release the write lock and wake everyone waiting."""
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write() called without the write lock")
            self._writer = False
            self._cond.notify_all()

    # =========================================================================
    # CONTEXT MANAGERS
    # =========================================================================

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        """Hold a read lock for the duration of a with-block."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        """Hold the write lock for the duration of a with-block."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    # =========================================================================
    # INTROSPECTION (tests and debugging)
    # =========================================================================

    @property
    def readers(self) -> int:
        """Number of threads currently holding a read lock."""
        with self._cond:
            return self._readers

    @property
    def write_held(self) -> bool:
        """True while a writer holds the lock."""
        with self._cond:
            return self._writer
