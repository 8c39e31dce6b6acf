"""Client-side reconciliation agent.

The agent keeps a local mirror of one repairs document and stays subscribed to
the server's sync channel:

* on every channel open it asks for the current document (``requestData``);
* every ``initialData``/``dataUpdate`` for its file replaces the whole mirror,
  last message wins, and the derived views are recomputed;
* local edits are applied to the mirror first and then written back as a full
  document through ``POST /data/<file>``, without waiting for the broadcast;
* when the channel drops it reconnects after a fixed delay, forever, until
  ``stop()`` cancels the loop.

There is no merge step. If two clients edit at the same time the server keeps
whichever write it persisted last, and its broadcast overwrites the other
client's optimistic change.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Mapping, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx
import websockets
from pydantic import ValidationError as MessageValidationError
from websockets.exceptions import WebSocketException

from ..crud import tickets as tickets_crud
from ..schemas.sync import MESSAGE_DATA_UPDATE, DocumentMessage, request_data
from .views import RepairViews, TicketFilters, derive_views

logger = logging.getLogger(__name__)

EVENT_CONNECT = "connect"
EVENT_DISCONNECT = "disconnect"
EVENT_UPDATE = "update"
EVENT_SAVE_ERROR = "save-error"

Notifier = Callable[[str, str, str], None]
ChangeListener = Callable[[RepairViews], None]


def websocket_url(base_url: str, path: str = "/ws") -> str:
    parts = urlsplit(base_url)
    scheme = "wss" if parts.scheme == "https" else "ws"
    return urlunsplit((scheme, parts.netloc, path, "", ""))


class ReconciliationAgent:
    """Mirror of one server document kept current over the sync channel."""

    def __init__(
        self,
        base_url: str,
        data_file: str = "repairs.json",
        *,
        reconnect_delay: float = 3.0,
        request_retry_delay: float = 1.0,
        ws_path: str = "/ws",
        http_client: httpx.AsyncClient | None = None,
        connect: Callable[[str], Any] = websockets.connect,
        on_change: Optional[ChangeListener] = None,
        on_notify: Optional[Notifier] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.data_file = data_file
        self.ws_url = websocket_url(self.base_url, ws_path)
        self.reconnect_delay = reconnect_delay
        self.request_retry_delay = request_retry_delay
        self.on_change = on_change
        self.on_notify = on_notify

        self.repairs: list[dict[str, Any]] = []
        self.filters = TicketFilters()
        self.views = derive_views(self.repairs, self.filters)

        self._http = http_client
        self._owns_http = http_client is None
        self._connect = connect
        self._channel: Any = None
        self._opened = asyncio.Event()
        self._synced = asyncio.Event()
        self._stopped = False
        self._run_task: asyncio.Task[None] | None = None
        self._request_task: asyncio.Task[None] | None = None
        self._pending_saves: set[asyncio.Task[bool]] = set()

    # ---- lifecycle

    @property
    def connected(self) -> bool:
        return self._opened.is_set()

    async def start(self) -> None:
        if self._run_task is not None and not self._run_task.done():
            return
        self._stopped = False
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(10.0))
        self._run_task = asyncio.create_task(self._run())
        self._schedule_initial_request()

    async def stop(self) -> None:
        """Cancel reconnects and pending requests, then drain queued saves."""

        self._stopped = True
        for task in (self._request_task, self._run_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._request_task = None
        self._run_task = None
        await self.flush()
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    async def wait_until_synced(self, timeout: float | None = None) -> None:
        """Block until the first ``initialData`` has been applied."""
        await asyncio.wait_for(self._synced.wait(), timeout=timeout)

    async def _run(self) -> None:
        while not self._stopped:
            try:
                async with self._connect(self.ws_url) as channel:
                    self._channel = channel
                    self._opened.set()
                    self._notify(EVENT_CONNECT, "Connected to server", "success")
                    self._schedule_initial_request()
                    async for raw in channel:
                        try:
                            self.handle_message(raw)
                        except Exception:
                            # One bad message must not end the subscription.
                            logger.exception("channel.message_failed")
                logger.info("channel.closed", extra={"extra_data": {"url": self.ws_url}})
            except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
                logger.warning(
                    "channel.error",
                    extra={"extra_data": {"url": self.ws_url, "error": repr(exc)}},
                )
            except Exception:
                logger.exception("channel.failed", extra={"extra_data": {"url": self.ws_url}})
            finally:
                self._channel = None
                self._opened.clear()
            if self._stopped:
                break
            self._notify(EVENT_DISCONNECT, "Connection lost. Attempting to reconnect...", "error")
            await asyncio.sleep(self.reconnect_delay)

    def _schedule_initial_request(self) -> None:
        if self._request_task is not None and not self._request_task.done():
            return
        self._request_task = asyncio.create_task(self._request_initial_data())

    async def _request_initial_data(self) -> None:
        while not self._opened.is_set():
            try:
                await asyncio.wait_for(self._opened.wait(), timeout=self.request_retry_delay)
            except asyncio.TimeoutError:
                logger.debug("Channel not open yet; retrying data request for %s", self.data_file)
        await self._send(request_data(self.data_file))

    async def _send(self, message: Mapping[str, Any]) -> bool:
        channel = self._channel
        if channel is None:
            logger.debug("Dropping %s; channel is closed", message.get("type"))
            return False
        try:
            await channel.send(json.dumps(message))
        except (OSError, WebSocketException) as exc:
            logger.warning("channel.send_failed", extra={"extra_data": {"error": repr(exc)}})
            return False
        return True

    # ---- inbound

    def handle_message(self, raw: str | bytes) -> None:
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.error("Error parsing sync message")
            return
        try:
            message = DocumentMessage.model_validate(payload)
        except MessageValidationError:
            logger.debug("Ignoring sync message %r", payload.get("type") if isinstance(payload, dict) else payload)
            return
        if message.file != self.data_file:
            return
        self.replace_mirror(message.data)
        self._synced.set()
        if message.type == MESSAGE_DATA_UPDATE:
            self._notify(EVENT_UPDATE, "Data updated from another device", "info")

    def replace_mirror(self, data: Any) -> None:
        if not isinstance(data, list):
            data = []
        # Entries that are not ticket objects are dropped from the mirror.
        self.repairs = [item for item in data if isinstance(item, dict)]
        self._refresh_views()

    def set_filters(self, search: str | None = None, status: str | None = None, brand: str | None = None) -> RepairViews:
        self.filters = TicketFilters(
            search=self.filters.search if search is None else search,
            status=self.filters.status if status is None else status,
            brand=self.filters.brand if brand is None else brand,
        )
        self._refresh_views()
        return self.views

    def _refresh_views(self) -> None:
        self.views = derive_views(self.repairs, self.filters)
        if self.on_change is not None:
            self._call_listener(self.on_change, self.views)

    # ---- local mutations

    def create_ticket(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        ticket = tickets_crud.create_ticket(self.repairs, payload)
        self._after_local_change()
        return ticket

    def update_ticket(self, ticket_id: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        ticket = tickets_crud.update_ticket(self.repairs, ticket_id, payload)
        self._after_local_change()
        return ticket

    def delete_ticket(self, ticket_id: str) -> dict[str, Any]:
        ticket = tickets_crud.delete_ticket(self.repairs, ticket_id)
        self._after_local_change()
        return ticket

    def _after_local_change(self) -> None:
        self._refresh_views()
        body = json.dumps(self.repairs)
        task = asyncio.create_task(self.save(body))
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    async def save(self, body: str | None = None) -> bool:
        """POST the full document; failures become a ``save-error`` notice."""

        if body is None:
            body = json.dumps(self.repairs)
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(10.0))
            self._owns_http = True
        try:
            response = await self._http.post(
                f"{self.base_url}/data/{self.data_file}",
                content=body,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(
                "document.save_failed",
                extra={"extra_data": {"document": self.data_file, "error": repr(exc)}},
            )
            self._notify(EVENT_SAVE_ERROR, "Error saving data to server", "error")
            return False
        return True

    async def flush(self) -> None:
        if self._pending_saves:
            await asyncio.gather(*list(self._pending_saves), return_exceptions=True)

    def _notify(self, event: str, message: str, level: str) -> None:
        logger.info("client.%s", event, extra={"extra_data": {"message": message, "level": level}})
        if self.on_notify is not None:
            self._call_listener(self.on_notify, event, message, level)

    @staticmethod
    def _call_listener(listener: Callable[..., None], *args: Any) -> None:
        try:
            listener(*args)
        except Exception:
            logger.exception("client.listener_failed")


__all__ = [
    "EVENT_CONNECT",
    "EVENT_DISCONNECT",
    "EVENT_SAVE_ERROR",
    "EVENT_UPDATE",
    "ReconciliationAgent",
    "websocket_url",
]
