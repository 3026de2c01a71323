"""One live dashboard viewer attached to a project over a WebSocket."""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import TYPE_CHECKING, Awaitable, Callable

import anyio
from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

if TYPE_CHECKING:
    from app.realtime.hub import Hub

logger = logging.getLogger(__name__)

CLOSE_NORMAL = 1000
CLOSE_TOO_BIG = 1009


class ConnectionState(str, enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class ViewerConnection:
    """
    Viewer lifecycle: Connecting -> Open -> Closing -> Closed.

    While open, a read loop keeps the socket alive (and enforces the inbound
    size limit) and a write loop drains the outbound buffer. Whichever loop
    ends first tears the connection down; the transport is closed once.
    """

    def __init__(
        self,
        websocket: WebSocket | None,
        project_id: str,
        buffer_size: int = 256,
        read_limit: int = 512,
    ) -> None:
        self.websocket = websocket
        self.project_id = project_id
        self.read_limit = read_limit
        self.outbox: asyncio.Queue[str | None] = asyncio.Queue(maxsize=buffer_size)
        self.state = ConnectionState.CONNECTING
        self.close_code = CLOSE_NORMAL
        self._buffer_closed = False

    def __repr__(self) -> str:
        return f"<ViewerConnection project={self.project_id} state={self.state.value}>"

    # ------------------------------------------------------------------
    # Buffer side, used by the hub
    # ------------------------------------------------------------------
    @property
    def buffer_closed(self) -> bool:
        return self._buffer_closed

    def offer(self, frame: str) -> bool:
        """Enqueue without blocking. False means the viewer is dead or too slow."""
        if self._buffer_closed:
            return False
        try:
            self.outbox.put_nowait(frame)
        except asyncio.QueueFull:
            return False
        return True

    def close_buffer(self) -> None:
        if self._buffer_closed:
            return
        self._buffer_closed = True
        # pending frames are dropped; the sentinel tells the writer to stop
        while not self.outbox.empty():
            self.outbox.get_nowait()
        self.outbox.put_nowait(None)

    # ------------------------------------------------------------------
    # Transport side
    # ------------------------------------------------------------------
    async def serve(self, hub: Hub) -> None:
        await self.websocket.accept()
        self.state = ConnectionState.OPEN
        hub.register(self)

        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._until_done, self._read_loop, tg.cancel_scope)
                tg.start_soon(self._until_done, self._write_loop, tg.cancel_scope)
        finally:
            self.state = ConnectionState.CLOSING
            # teardown must finish even when the server is cancelling us
            with anyio.CancelScope(shield=True):
                hub.unregister(self)
                await self._close_transport()

    @staticmethod
    async def _until_done(loop: Callable[[], Awaitable[None]], scope: anyio.CancelScope) -> None:
        try:
            await loop()
        finally:
            scope.cancel()

    async def _read_loop(self) -> None:
        while True:
            try:
                message = await self.websocket.receive()
            except (WebSocketDisconnect, RuntimeError):
                return
            if message["type"] == "websocket.disconnect":
                return

            payload = message.get("text") or message.get("bytes") or ""
            if len(payload) > self.read_limit:
                logger.info("Viewer for project %s sent an oversized frame", self.project_id)
                self.close_code = CLOSE_TOO_BIG
                return

    async def _write_loop(self) -> None:
        while True:
            frame = await self.outbox.get()
            if frame is None:
                return
            try:
                await self.websocket.send_text(frame)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.warning("Write to viewer for project %s failed: %r", self.project_id, exc)
                return

    async def _close_transport(self) -> None:
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED

        ws = self.websocket
        if (
            ws.client_state == WebSocketState.DISCONNECTED
            or ws.application_state == WebSocketState.DISCONNECTED
        ):
            return
        try:
            await ws.close(code=self.close_code)
        except (RuntimeError, OSError) as exc:
            logger.debug("Close for viewer of project %s failed: %r", self.project_id, exc)
