"""
Networking and concurrency primitives.

    socket_server.py  TCP listener and accept loop
    connection.py     Per-client request framing and keep-alive
    thread_pool.py    Workers that run connection handlers
    rwlock.py         Reader/writer lock guarding the store
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, RequestTooLarge
from .thread_pool import ThreadPool
from .rwlock import ReadWriteLock

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "RequestTooLarge",
    "ThreadPool",
    "ReadWriteLock",
]
