"""A single live sync channel.

Each connection owns a bounded FIFO queue of outbound messages and one sender
task that drains it. Producers only ever enqueue (never await), so every
message for a connection leaves in the order it was queued.
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any
from uuid import uuid4

from starlette.websockets import WebSocketDisconnect

from ..core.errors import TransportError

logger = logging.getLogger(__name__)

CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_INTERNAL_ERROR = 1011


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    ERROR = "error"


class Connection:
    """Wraps a WebSocket with an ordered outbound queue."""

    def __init__(self, websocket: Any, *, queue_size: int = 256) -> None:
        self.id = uuid4().hex[:12]
        self.websocket = websocket
        self.state = ConnectionState.CONNECTING
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=queue_size)
        self._sender: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f"<Connection {self.id} {self.state.value}>"

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    async def open(self) -> None:
        await self.websocket.accept()
        self.state = ConnectionState.OPEN

    def enqueue(self, message: dict[str, Any]) -> None:
        """Queue ``message`` for delivery or raise ``TransportError``."""

        if not self.is_open:
            raise TransportError(f"connection {self.id} is {self.state.value}")
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull as exc:
            raise TransportError(f"connection {self.id} send queue is full") from exc

    def start_sender(self) -> asyncio.Task[None]:
        if self._sender is None:
            self._sender = asyncio.create_task(self.run_sender())
        return self._sender

    async def run_sender(self) -> None:
        while True:
            message = await self.queue.get()
            try:
                await self.websocket.send_text(json.dumps(message))
            except Exception as exc:
                self.state = ConnectionState.ERROR
                logger.warning(
                    "connection.send_failed",
                    extra={"extra_data": {"connection": self.id, "error": repr(exc)}},
                )
                return

    def mark_closed(self, *, error: bool = False) -> None:
        if self.state in (ConnectionState.CLOSED, ConnectionState.ERROR):
            return
        self.state = ConnectionState.ERROR if error else ConnectionState.CLOSED

    def abort(self) -> None:
        """Tear the connection down after a failed hand-off."""

        self.mark_closed(error=True)
        if self._sender is not None and not self._sender.done():
            self._sender.cancel()

    async def close(self, code: int | None = None) -> None:
        previous = self.state
        self.mark_closed()
        if self._sender is not None and not self._sender.done():
            self._sender.cancel()
            await asyncio.wait({self._sender})
        if previous is ConnectionState.OPEN:
            code = code or CLOSE_NORMAL
        elif previous is ConnectionState.ERROR:
            code = code or CLOSE_INTERNAL_ERROR
        else:
            return
        try:
            await self.websocket.close(code=code)
        except (RuntimeError, OSError, WebSocketDisconnect) as exc:
            # Peer already gone; nothing left to close.
            logger.debug("connection %s close ignored: %r", self.id, exc)


__all__ = [
    "CLOSE_GOING_AWAY",
    "CLOSE_INTERNAL_ERROR",
    "CLOSE_NORMAL",
    "Connection",
    "ConnectionState",
]
