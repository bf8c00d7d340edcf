"""Registry of currently open client connections."""

from __future__ import annotations

import logging
import threading

from relaychat.connection import Connection

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Tracks open connections for broadcast.

    Reads return copies, so a snapshot taken by :meth:`others` is never
    changed by a later ``add``/``remove``.
    """

    def __init__(self) -> None:
        self._connections: set[Connection] = set()
        self._lock = threading.Lock()

    def add(self, connection: Connection) -> None:
        """Register a newly opened connection."""
        with self._lock:
            self._connections.add(connection)
        logger.debug("Connection %r added (%d open)", connection.name, len(self))

    def remove(self, connection: Connection) -> None:
        """Deregister a connection. Removing an unknown one is a no-op."""
        with self._lock:
            if connection not in self._connections:
                return
            self._connections.discard(connection)
        logger.debug("Connection %r removed (%d open)", connection.name, len(self))

    def others(self, excluding: Connection | None) -> tuple[Connection, ...]:
        """Snapshot of open connections other than *excluding*."""
        with self._lock:
            return tuple(
                c for c in self._connections
                if c is not excluding and c.is_open
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, connection: object) -> bool:
        with self._lock:
            return connection in self._connections
