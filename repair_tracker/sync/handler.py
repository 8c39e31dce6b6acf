"""Sync protocol: full-document writes and the persistent read channel.

Writes arrive as plain HTTP requests. Once the body has been read, persisting
and publishing happen without yielding to the event loop, so each write is
fully stored and queued for every subscriber before the next one starts.
There is no lock and no version check: two requests whose bodies are still
being read race, and the one persisted last wins.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from pydantic import ValidationError as MessageValidationError
from starlette.websockets import WebSocketDisconnect

from ..core.errors import InvalidDocumentName, StorageError, TransportError
from ..middlewares import connection_id_ctx_var
from ..schemas.sync import RequestDataMessage, initial_data
from ..storage.documents import DocumentStore
from .broadcaster import ChangeBroadcaster
from .connection import CLOSE_GOING_AWAY, Connection, ConnectionState
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class SyncProtocolHandler:
    def __init__(
        self,
        store: DocumentStore,
        registry: ConnectionRegistry,
        broadcaster: ChangeBroadcaster | None = None,
        *,
        queue_size: int = 256,
    ) -> None:
        self.store = store
        self.registry = registry
        self.broadcaster = broadcaster or ChangeBroadcaster(registry)
        self.queue_size = queue_size

    # ---- request/response write path

    def handle_write(self, name: str, body: bytes | str) -> Any:
        """Persist ``body`` as document ``name`` and publish it.

        Raises ``ValidationError`` (nothing stored, nothing sent) or
        ``StorageError``. Publish failures never surface here.
        """

        content = self.store.write(name, body)
        delivered = self.broadcaster.publish(name, content)
        logger.info(
            "document.published",
            extra={"extra_data": {"document": name, "connections": delivered}},
        )
        return content

    # ---- persistent channel

    async def serve(self, websocket: Any) -> Connection:
        """Run one channel from accept until it closes."""

        connection = Connection(websocket, queue_size=self.queue_size)
        token = connection_id_ctx_var.set(connection.id)
        try:
            await connection.open()
            self.registry.add(connection)
            logger.info(
                "connection.opened",
                extra={"extra_data": {"connections": len(self.registry)}},
            )
            sender = connection.start_sender()
            receiver = asyncio.create_task(self._receive_loop(connection))
            try:
                await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                # Leave the registry before the first await so a cancelled
                # serve never leaves a dead connection behind.
                self.registry.remove(connection)
                receiver.cancel()
                await asyncio.wait({receiver})
                if not receiver.cancelled() and receiver.exception() is not None:
                    logger.error(
                        "connection.receive_crashed",
                        exc_info=receiver.exception(),
                    )
                    connection.mark_closed(error=True)
                await connection.close()
                logger.info(
                    "connection.closed",
                    extra={
                        "extra_data": {
                            "state": connection.state.value,
                            "connections": len(self.registry),
                        }
                    },
                )
        finally:
            connection_id_ctx_var.reset(token)
        return connection

    async def _receive_loop(self, connection: Connection) -> None:
        websocket = connection.websocket
        while True:
            try:
                message = await websocket.receive()
            except WebSocketDisconnect:
                connection.mark_closed()
                return
            except (RuntimeError, OSError) as exc:
                logger.warning("connection.receive_failed", extra={"extra_data": {"error": repr(exc)}})
                connection.mark_closed(error=True)
                return

            if message.get("type") == "websocket.disconnect":
                connection.mark_closed()
                return
            raw = message.get("text")
            if raw is None and message.get("bytes") is not None:
                raw = message["bytes"].decode("utf-8", errors="replace")
            if raw is not None:
                self.dispatch(connection, raw)

    def dispatch(self, connection: Connection, raw: str) -> None:
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.warning("message.invalid_json", extra={"extra_data": {"size": len(raw)}})
            return
        try:
            request = RequestDataMessage.model_validate(payload)
        except MessageValidationError:
            message_type = payload.get("type") if isinstance(payload, dict) else None
            logger.warning("message.ignored", extra={"extra_data": {"type": message_type}})
            return
        self.send_initial_data(connection, request.file)

    def send_initial_data(self, connection: Connection, name: str) -> None:
        """Read ``name`` fresh from the store and queue it as ``initialData``."""

        try:
            data = self.store.read_json(name)
        except InvalidDocumentName:
            logger.warning("message.invalid_document", extra={"extra_data": {"document": name}})
            return
        except StorageError as exc:
            logger.error(
                "document.read_failed",
                extra={"extra_data": {"document": name, "error": str(exc)}},
            )
            data = []
        try:
            connection.enqueue(initial_data(name, data))
        except TransportError as exc:
            self.broadcaster.evict(connection, exc)

    async def close_all(self) -> int:
        return await self.registry.close_all(CLOSE_GOING_AWAY)

    @property
    def open_connections(self) -> int:
        return sum(1 for connection in self.registry.snapshot() if connection.state is ConnectionState.OPEN)


__all__ = ["SyncProtocolHandler"]
