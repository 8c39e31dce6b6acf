"""Fan-out of document changes to live sync channels.

``publish`` never awaits: it places one ``dataUpdate`` message on each
registered connection's queue and returns. A connection that cannot take the
message is evicted and torn down; the remaining connections still receive it.
"""

from __future__ import annotations

import logging
from typing import Any

from ..core.errors import TransportError
from ..schemas.sync import data_update
from .connection import Connection
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class ChangeBroadcaster:
    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    def publish(self, name: str, content: Any, *, exclude: Connection | None = None) -> int:
        """Queue a ``dataUpdate`` for ``name`` on every registered connection.

        Returns:
            Number of connections the update was queued for.
        """

        message = data_update(name, content)
        delivered = 0
        for connection in self.registry.snapshot():
            if connection is exclude:
                continue
            try:
                connection.enqueue(message)
            except TransportError as exc:
                self.evict(connection, exc)
                continue
            delivered += 1
        return delivered

    def evict(self, connection: Connection, exc: Exception) -> None:
        self.registry.remove(connection)
        connection.abort()
        logger.warning(
            "broadcast.evicted",
            extra={"extra_data": {"connection": connection.id, "error": str(exc)}},
        )
