"""
Event ingestion.

Persists one event, then hands the follow-up work off without waiting for it:
the session/user counters are updated on a worker thread and the event is
posted to the realtime hub. Neither can fail the ingesting request.
"""
from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import StoreError, ValidationError
from app.db import SessionLocal
from app.models.event import Event
from app.models.visitor import TrackedSession, TrackedUser
from app.realtime.hub import Hub
from app.schemas.events import EventIn
from app.tracking_utils import encode_properties, serialize_event

logger = logging.getLogger(__name__)


class EventIngestor:
    def __init__(
        self,
        hub: Hub,
        session_factory: Callable[[], Session] = SessionLocal,
        workers: int = 1,
    ) -> None:
        self.hub = hub
        self.session_factory = session_factory
        # one worker keeps counter updates for a session in arrival order
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="counters")

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)

    def ingest(self, db: Session, payload: EventIn, project_id: str, peer_ip: str = "") -> dict[str, Any]:
        """
        Store one event for ``project_id`` and return its serialized form.

        Raises ValidationError before touching the store, StoreError if the
        insert fails.
        """
        ip_address = (payload.ip_address or "").strip() or peer_ip
        if not ip_address:
            raise ValidationError("ip_address is required")

        now = datetime.now(timezone.utc)
        event = Event(
            id=str(uuid.uuid4()),
            project_id=project_id,
            session_id=payload.session_id,
            user_id=payload.user_id,
            event_type=payload.event_type,
            event_name=payload.event_name,
            properties=encode_properties(payload.properties),
            page_url=payload.page_url,
            page_title=payload.page_title,
            referrer=payload.referrer,
            user_agent=payload.user_agent,
            ip_address=ip_address,
            country=payload.country,
            city=payload.city,
            screen_width=payload.screen_width,
            screen_height=payload.screen_height,
            language=payload.language,
            platform=payload.platform,
            created_at=now,
            updated_at=now,
        )
        # snapshot before commit expires the instance
        snapshot = serialize_event(event)

        try:
            db.add(event)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError("Failed to track event") from exc

        self.executor.submit(self._update_counters, snapshot)
        self.hub.deliver(snapshot)
        return snapshot

    # ------------------------------------------------------------------
    # Background counters (best-effort)
    # ------------------------------------------------------------------
    def _update_counters(self, event: dict[str, Any]) -> None:
        db = self.session_factory()
        try:
            new_session = self._touch_session(db, event)
            if event.get("user_id"):
                self._touch_user(db, event, new_session)
            db.commit()
        except Exception as exc:
            # detached job: log, never raise
            db.rollback()
            logger.warning("Counter update for session %s dropped: %r", event.get("session_id"), exc)
        finally:
            db.close()

    def _touch_session(self, db: Session, event: dict[str, Any]) -> bool:
        now = datetime.now(timezone.utc)
        row = db.get(TrackedSession, event["session_id"])
        if row is None:
            db.add(
                TrackedSession(
                    id=event["session_id"],
                    user_id=event.get("user_id"),
                    start_time=now,
                    event_count=1,
                    landing_page=event.get("page_url"),
                    referrer=event.get("referrer"),
                    user_agent=event.get("user_agent"),
                    ip_address=event.get("ip_address") or "",
                    country=event.get("country"),
                    city=event.get("city"),
                    created_at=now,
                    updated_at=now,
                )
            )
            db.flush()
            return True

        db.query(TrackedSession).filter(TrackedSession.id == row.id).update(
            {"event_count": TrackedSession.event_count + 1, "updated_at": now},
            synchronize_session=False,
        )
        return False

    def _touch_user(self, db: Session, event: dict[str, Any], new_session: bool) -> None:
        now = datetime.now(timezone.utc)
        row = db.get(TrackedUser, event["user_id"])
        if row is None:
            db.add(
                TrackedUser(
                    id=event["user_id"],
                    first_seen=now,
                    last_seen=now,
                    session_count=1,
                    event_count=1,
                    country=event.get("country"),
                    city=event.get("city"),
                    created_at=now,
                    updated_at=now,
                )
            )
            return

        updates: dict[str, Any] = {
            "last_seen": now,
            "event_count": TrackedUser.event_count + 1,
            "updated_at": now,
        }
        if new_session:
            updates["session_count"] = TrackedUser.session_count + 1
        if event.get("country"):
            updates["country"] = event["country"]
        if event.get("city"):
            updates["city"] = event["city"]

        db.query(TrackedUser).filter(TrackedUser.id == row.id).update(updates, synchronize_session=False)
