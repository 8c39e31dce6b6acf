from __future__ import annotations

import logging
from typing import Iterator

from .connection import CLOSE_GOING_AWAY, Connection

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Live sync channels owned by one server process.

    All access happens on the event loop thread, so no lock is taken.
    """

    def __init__(self) -> None:
        self._connections: set[Connection] = set()

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection: object) -> bool:
        return connection in self._connections

    def __iter__(self) -> Iterator[Connection]:
        return iter(self.snapshot())

    def add(self, connection: Connection) -> None:
        self._connections.add(connection)

    def remove(self, connection: Connection) -> None:
        self._connections.discard(connection)

    def snapshot(self) -> frozenset[Connection]:
        """Current connections; safe to iterate while others come and go."""
        return frozenset(self._connections)

    async def close_all(self, code: int = CLOSE_GOING_AWAY) -> int:
        connections = self.snapshot()
        for connection in connections:
            self.remove(connection)
            await connection.close(code)
        if connections:
            logger.info("registry.closed", extra={"extra_data": {"connections": len(connections)}})
        return len(connections)
