"""Tests for connection queues, the registry and broadcast fan-out."""

import asyncio
import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from repair_tracker.core.errors import TransportError
from repair_tracker.storage.documents import DocumentStore
from repair_tracker.sync import (
    ChangeBroadcaster,
    Connection,
    ConnectionRegistry,
    ConnectionState,
    SyncProtocolHandler,
)


class FakeWebSocket:
    def __init__(self, fail_sends: bool = False):
        self.fail_sends = fail_sends
        self.accepted = False
        self.sent = []
        self.closed_with = None

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail_sends:
            raise RuntimeError("socket is gone")
        self.sent.append(json.loads(text))

    async def close(self, code=1000):
        self.closed_with = code


def open_connection(queue_size=16, fail_sends=False):
    connection = Connection(FakeWebSocket(fail_sends=fail_sends), queue_size=queue_size)
    connection.state = ConnectionState.OPEN
    return connection


def drain(connection):
    messages = []
    while not connection.queue.empty():
        messages.append(connection.queue.get_nowait())
    return messages


def test_registry_add_and_remove_are_idempotent():
    registry = ConnectionRegistry()
    connection = open_connection()

    registry.add(connection)
    registry.add(connection)
    assert len(registry) == 1
    assert connection in registry

    registry.remove(connection)
    registry.remove(connection)
    assert len(registry) == 0
    assert connection not in registry


def test_publish_queues_update_for_every_connection_in_order():
    registry = ConnectionRegistry()
    first, second = open_connection(), open_connection()
    registry.add(first)
    registry.add(second)
    broadcaster = ChangeBroadcaster(registry)

    assert broadcaster.publish("repairs.json", [1]) == 2
    assert broadcaster.publish("repairs.json", [1, 2]) == 2

    expected = [
        {"type": "dataUpdate", "file": "repairs.json", "data": [1]},
        {"type": "dataUpdate", "file": "repairs.json", "data": [1, 2]},
    ]
    assert drain(first) == expected
    assert drain(second) == expected


def test_publish_skips_excluded_connection():
    registry = ConnectionRegistry()
    writer, reader = open_connection(), open_connection()
    registry.add(writer)
    registry.add(reader)

    assert ChangeBroadcaster(registry).publish("repairs.json", [], exclude=writer) == 1
    assert drain(writer) == []
    assert len(drain(reader)) == 1


def test_full_queue_evicts_only_that_connection():
    registry = ConnectionRegistry()
    stuck = open_connection(queue_size=1)
    stuck.enqueue({"type": "dataUpdate", "file": "repairs.json", "data": []})
    healthy = open_connection()
    registry.add(stuck)
    registry.add(healthy)

    delivered = ChangeBroadcaster(registry).publish("repairs.json", ["new"])

    assert delivered == 1
    assert stuck not in registry
    assert stuck.state is ConnectionState.ERROR
    assert healthy in registry
    assert drain(healthy) == [{"type": "dataUpdate", "file": "repairs.json", "data": ["new"]}]


def test_closed_connection_is_evicted_on_publish():
    registry = ConnectionRegistry()
    gone = open_connection()
    gone.mark_closed()
    registry.add(gone)

    assert ChangeBroadcaster(registry).publish("repairs.json", []) == 0
    assert len(registry) == 0


def test_enqueue_on_closed_connection_raises_transport_error():
    connection = open_connection()
    connection.mark_closed()

    with pytest.raises(TransportError):
        connection.enqueue({"type": "dataUpdate"})


@pytest.mark.asyncio
async def test_sender_delivers_queued_messages_in_order():
    connection = Connection(FakeWebSocket())
    await connection.open()
    assert connection.websocket.accepted
    assert connection.state is ConnectionState.OPEN

    for index in range(3):
        connection.enqueue({"type": "dataUpdate", "file": "repairs.json", "data": [index]})
    connection.start_sender()
    for _ in range(50):
        if len(connection.websocket.sent) == 3:
            break
        await asyncio.sleep(0.01)

    assert [message["data"] for message in connection.websocket.sent] == [[0], [1], [2]]
    await connection.close()
    assert connection.state is ConnectionState.CLOSED
    assert connection.websocket.closed_with == 1000


@pytest.mark.asyncio
async def test_sender_failure_marks_connection_errored():
    connection = Connection(FakeWebSocket(fail_sends=True))
    await connection.open()
    connection.enqueue({"type": "dataUpdate", "file": "repairs.json", "data": []})

    await asyncio.wait_for(connection.run_sender(), timeout=1)

    assert connection.state is ConnectionState.ERROR
    await connection.close()
    assert connection.websocket.closed_with == 1011


@pytest.mark.asyncio
async def test_registry_close_all_uses_going_away_code():
    registry = ConnectionRegistry()
    connections = [open_connection(), open_connection()]
    for connection in connections:
        registry.add(connection)

    assert await registry.close_all() == 2

    assert len(registry) == 0
    assert all(connection.websocket.closed_with == 1001 for connection in connections)
    assert all(connection.state is ConnectionState.CLOSED for connection in connections)


class ScriptedWebSocket(FakeWebSocket):
    """Receive side either blocks forever or fails with ``receive_error``."""

    def __init__(self, fail_sends=False, receive_error=None):
        super().__init__(fail_sends=fail_sends)
        self.receive_error = receive_error
        self.receive_task = None

    async def receive(self):
        self.receive_task = asyncio.current_task()
        if self.receive_error is not None:
            raise self.receive_error
        await asyncio.Event().wait()


def make_handler(tmp_path):
    store = DocumentStore(tmp_path)
    store.write("repairs.json", b'[{"id": "t1"}]')
    return SyncProtocolHandler(store, ConnectionRegistry())


@pytest.mark.asyncio
async def test_serve_finishes_receiver_when_sender_fails(tmp_path):
    handler = make_handler(tmp_path)
    websocket = ScriptedWebSocket(fail_sends=True)
    serving = asyncio.create_task(handler.serve(websocket))
    await asyncio.sleep(0.05)

    handler.handle_write("repairs.json", b"[]")
    connection = await asyncio.wait_for(serving, timeout=1)

    assert websocket.receive_task is not None
    assert websocket.receive_task.done()
    assert connection.state is ConnectionState.ERROR
    assert websocket.closed_with == 1011
    assert len(handler.registry) == 0


@pytest.mark.asyncio
async def test_serve_reports_receiver_crash(tmp_path, caplog):
    handler = make_handler(tmp_path)
    websocket = ScriptedWebSocket(receive_error=ValueError("bad frame"))

    with caplog.at_level("ERROR"):
        connection = await asyncio.wait_for(handler.serve(websocket), timeout=1)

    assert "connection.receive_crashed" in caplog.text
    assert connection.state is ConnectionState.ERROR
    assert websocket.closed_with == 1011
    assert len(handler.registry) == 0
