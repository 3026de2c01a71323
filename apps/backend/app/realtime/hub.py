"""Realtime hub for project viewers.

An in-memory fan-out for a single process deployment. One coordination task
owns the membership table; ``register``, ``unregister`` and ``deliver`` only
post commands to its inbox, so they never block and may be called from any
thread (ingestion runs in the threadpool).

Delivery is best-effort: a viewer whose outbound buffer is full is dropped
instead of slowing down everyone else, and nothing is replayed to viewers
that connect later.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from app.realtime.connection import ViewerConnection

logger = logging.getLogger(__name__)

NEW_EVENT = "new_event"


def encode_frame(event: dict[str, Any]) -> str:
    return json.dumps(
        {
            "type": NEW_EVENT,
            "project_id": event["project_id"],
            "event": event,
            "timestamp": event.get("created_at"),
        }
    )


class Hub:
    """Routes newly tracked events to the viewers of their project."""

    def __init__(self, buffer_size: int = 256) -> None:
        self.buffer_size = buffer_size
        self._members: dict[ViewerConnection, str] = {}
        self._inbox: asyncio.Queue | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the coordination task on the running loop."""
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._inbox = asyncio.Queue()
        self._task = self._loop.create_task(self._run(), name="realtime-hub")
        logger.info("Realtime hub started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

        for conn in list(self._members):
            conn.close_buffer()
        self._members.clear()
        logger.info("Realtime hub stopped")

    # ------------------------------------------------------------------
    # Commands (non-blocking, any thread)
    # ------------------------------------------------------------------
    def register(self, conn: ViewerConnection) -> None:
        self._post("register", conn)

    def unregister(self, conn: ViewerConnection) -> None:
        self._post("unregister", conn)

    def deliver(self, event: dict[str, Any]) -> None:
        self._post("deliver", event)

    async def flush(self) -> None:
        """Wait until every command posted so far has been handled."""
        if self._inbox is None:
            return
        # let call_soon_threadsafe callbacks land in the inbox first
        await asyncio.sleep(0)
        await self._inbox.join()

    def is_registered(self, conn: ViewerConnection) -> bool:
        return conn in self._members

    def subscriber_count(self, project_id: str) -> int:
        return sum(1 for pid in list(self._members.values()) if pid == project_id)

    def _post(self, op: str, arg: Any) -> None:
        if not self.running:
            logger.debug("Realtime hub not running, dropping %s", op)
            return

        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None

        if current is self._loop:
            self._inbox.put_nowait((op, arg))
            return

        try:
            self._loop.call_soon_threadsafe(self._inbox.put_nowait, (op, arg))
        except RuntimeError:
            # loop closed during shutdown
            logger.debug("Realtime hub loop closed, dropping %s", op)

    # ------------------------------------------------------------------
    # Coordination task
    # ------------------------------------------------------------------
    async def _run(self) -> None:
        while True:
            op, arg = await self._inbox.get()
            try:
                if op == "register":
                    self._register(arg)
                elif op == "unregister":
                    self._unregister(arg)
                elif op == "deliver":
                    self._deliver(arg)
            except Exception:
                logger.exception("Realtime hub failed to handle %s", op)
            finally:
                self._inbox.task_done()

    def _register(self, conn: ViewerConnection) -> None:
        if conn in self._members:
            return
        self._members[conn] = conn.project_id
        logger.info(
            "Viewer connected for project %s (%d live)",
            conn.project_id,
            self.subscriber_count(conn.project_id),
        )

    def _unregister(self, conn: ViewerConnection) -> None:
        project_id = self._members.pop(conn, None)
        if project_id is None:
            return
        conn.close_buffer()
        logger.info("Viewer disconnected for project %s", project_id)

    def _deliver(self, event: dict[str, Any]) -> None:
        project_id = event.get("project_id")
        if not project_id:
            return

        targets = [conn for conn, pid in self._members.items() if pid == project_id]
        if not targets:
            return

        frame = encode_frame(event)
        for conn in targets:
            if not conn.offer(frame):
                logger.warning("Dropping slow viewer for project %s", project_id)
                self._unregister(conn)
