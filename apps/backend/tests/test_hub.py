"""
Tests for the realtime hub and viewer connections
"""
import asyncio
import json

import pytest
import pytest_asyncio
from starlette.websockets import WebSocketState

from app.realtime.connection import ConnectionState, ViewerConnection
from app.realtime.hub import Hub


def _event(project_id, event_id="e1", **extra):
    event = {
        "id": event_id,
        "project_id": project_id,
        "session_id": "s1",
        "event_type": "click",
        "event_name": "Click: Buy",
        "properties": {"button": "buy"},
        "created_at": "2026-01-29T12:00:00+00:00",
    }
    event.update(extra)
    return event


def _frames(conn):
    out = []
    while not conn.outbox.empty():
        item = conn.outbox.get_nowait()
        out.append(item if item is None else json.loads(item))
    return out


async def _eventually(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


class FakeWebSocket:
    """Just enough of starlette's WebSocket for ViewerConnection.serve."""

    def __init__(self):
        self.incoming = asyncio.Queue()
        self.sent = []
        self.closed_with = []
        self.client_state = WebSocketState.CONNECTING
        self.application_state = WebSocketState.CONNECTING

    async def accept(self):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def receive(self):
        message = await self.incoming.get()
        if message["type"] == "websocket.disconnect":
            self.client_state = WebSocketState.DISCONNECTED
        return message

    async def send_text(self, data):
        self.sent.append(data)

    async def close(self, code=1000):
        self.closed_with.append(code)
        self.application_state = WebSocketState.DISCONNECTED


@pytest_asyncio.fixture
async def hub():
    h = Hub(buffer_size=8)
    h.start()
    yield h
    await h.stop()


@pytest.mark.asyncio
async def test_delivers_only_to_matching_project(hub):
    viewer_a = ViewerConnection(None, "project-a")
    viewer_b = ViewerConnection(None, "project-b")
    hub.register(viewer_a)
    hub.register(viewer_b)

    hub.deliver(_event("project-a"))
    await hub.flush()

    frames = _frames(viewer_a)
    assert len(frames) == 1
    assert frames[0]["type"] == "new_event"
    assert frames[0]["project_id"] == "project-a"
    assert frames[0]["event"]["id"] == "e1"
    assert frames[0]["timestamp"] == "2026-01-29T12:00:00+00:00"
    assert _frames(viewer_b) == []


@pytest.mark.asyncio
async def test_event_without_project_is_dropped(hub):
    viewer = ViewerConnection(None, "project-a")
    hub.register(viewer)

    hub.deliver(_event(None))
    await hub.flush()

    assert _frames(viewer) == []
    assert hub.is_registered(viewer)


@pytest.mark.asyncio
async def test_no_replay_for_late_viewers(hub):
    early = ViewerConnection(None, "project-a")
    hub.register(early)
    hub.deliver(_event("project-a", "before"))

    late = ViewerConnection(None, "project-a")
    hub.register(late)
    hub.deliver(_event("project-a", "after"))
    await hub.flush()

    assert [f["event"]["id"] for f in _frames(early)] == ["before", "after"]
    assert [f["event"]["id"] for f in _frames(late)] == ["after"]


@pytest.mark.asyncio
async def test_delivery_order_is_preserved(hub):
    viewer = ViewerConnection(None, "project-a")
    hub.register(viewer)
    for i in range(5):
        hub.deliver(_event("project-a", f"e{i}"))
    await hub.flush()

    assert [f["event"]["id"] for f in _frames(viewer)] == [f"e{i}" for i in range(5)]


@pytest.mark.asyncio
async def test_register_is_idempotent(hub):
    viewer = ViewerConnection(None, "project-a")
    hub.register(viewer)
    hub.register(viewer)
    hub.deliver(_event("project-a"))
    await hub.flush()

    assert hub.subscriber_count("project-a") == 1
    assert len(_frames(viewer)) == 1


@pytest.mark.asyncio
async def test_unregister_twice_is_safe(hub):
    viewer = ViewerConnection(None, "project-a")
    hub.register(viewer)
    hub.unregister(viewer)
    hub.unregister(viewer)
    await hub.flush()

    assert not hub.is_registered(viewer)
    assert viewer.buffer_closed
    # buffer closed exactly once: a single stop sentinel
    assert _frames(viewer) == [None]


@pytest.mark.asyncio
async def test_slow_viewer_is_disconnected_without_error(hub):
    slow = ViewerConnection(None, "project-a", buffer_size=1)
    fast = ViewerConnection(None, "project-a", buffer_size=8)
    hub.register(slow)
    hub.register(fast)

    hub.deliver(_event("project-a", "e1"))
    hub.deliver(_event("project-a", "e2"))
    await hub.flush()

    assert not hub.is_registered(slow)
    assert slow.buffer_closed
    assert _frames(slow) == [None]

    assert hub.is_registered(fast)
    assert [f["event"]["id"] for f in _frames(fast)] == ["e1", "e2"]


@pytest.mark.asyncio
async def test_deliver_from_worker_thread(hub):
    viewer = ViewerConnection(None, "project-a")
    hub.register(viewer)

    await asyncio.to_thread(hub.deliver, _event("project-a", "threaded"))
    await hub.flush()

    assert [f["event"]["id"] for f in _frames(viewer)] == ["threaded"]


@pytest.mark.asyncio
async def test_stop_closes_live_buffers():
    h = Hub()
    h.start()
    viewer = ViewerConnection(None, "project-a")
    h.register(viewer)
    await h.flush()

    await h.stop()

    assert not h.running
    assert viewer.buffer_closed
    # commands after stop are dropped, not raised
    h.deliver(_event("project-a"))


def test_offer_refuses_after_close():
    viewer = ViewerConnection(None, "project-a", buffer_size=2)
    assert viewer.offer("one")
    viewer.close_buffer()
    viewer.close_buffer()

    assert not viewer.offer("two")
    assert viewer.outbox.qsize() == 1
    assert viewer.outbox.get_nowait() is None


@pytest.mark.asyncio
async def test_viewer_writes_frames_and_closes_when_hub_drops_it(hub):
    ws = FakeWebSocket()
    viewer = ViewerConnection(ws, "project-a")
    task = asyncio.create_task(viewer.serve(hub))

    assert await _eventually(lambda: hub.is_registered(viewer))
    assert viewer.state == ConnectionState.OPEN

    hub.deliver(_event("project-a"))
    assert await _eventually(lambda: len(ws.sent) == 1)
    assert json.loads(ws.sent[0])["event"]["id"] == "e1"

    hub.unregister(viewer)
    await asyncio.wait_for(task, timeout=2)

    assert ws.closed_with == [1000]
    assert viewer.state == ConnectionState.CLOSED
    assert not hub.is_registered(viewer)


@pytest.mark.asyncio
async def test_remote_disconnect_unregisters_without_second_close(hub):
    ws = FakeWebSocket()
    viewer = ViewerConnection(ws, "project-a")
    task = asyncio.create_task(viewer.serve(hub))
    assert await _eventually(lambda: hub.is_registered(viewer))

    await ws.incoming.put({"type": "websocket.disconnect", "code": 1001})
    await asyncio.wait_for(task, timeout=2)
    await hub.flush()

    assert ws.closed_with == []
    assert not hub.is_registered(viewer)
    assert viewer.state == ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_oversized_inbound_frame_closes_connection(hub):
    ws = FakeWebSocket()
    viewer = ViewerConnection(ws, "project-a", read_limit=16)
    task = asyncio.create_task(viewer.serve(hub))
    assert await _eventually(lambda: hub.is_registered(viewer))

    await ws.incoming.put({"type": "websocket.receive", "text": "ping"})
    await ws.incoming.put({"type": "websocket.receive", "text": "x" * 64})
    await asyncio.wait_for(task, timeout=2)
    await hub.flush()

    assert ws.closed_with == [1009]
    assert not hub.is_registered(viewer)
