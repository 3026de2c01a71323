"""Per-project views for the realtime dashboard."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.event import Event
from app.services.analytics import start_of_today
from app.tracking_utils import isoformat, serialize_event

ACTIVE_WINDOW = timedelta(minutes=5)


def _distinct(q, column) -> int:
    return q.with_entities(func.count(func.distinct(column))).scalar() or 0


def project_stats(db: Session, project_id: str) -> dict[str, Any]:
    events = db.query(Event).filter(Event.project_id == project_id)
    with_user = events.filter(Event.user_id.isnot(None))
    today = events.filter(Event.created_at >= start_of_today())
    recent = events.filter(Event.created_at > datetime.now(timezone.utc) - ACTIVE_WINDOW)

    last = events.with_entities(func.max(Event.created_at)).scalar()
    return {
        "total_events": events.count(),
        "total_sessions": _distinct(events, Event.session_id),
        "total_users": _distinct(with_user, Event.user_id),
        "events_today": today.count(),
        "sessions_today": _distinct(today, Event.session_id),
        "users_today": _distinct(today.filter(Event.user_id.isnot(None)), Event.user_id),
        "active_sessions": _distinct(recent, Event.session_id),
        "current_visitors": _distinct(recent.filter(Event.user_id.isnot(None)), Event.user_id),
        "last_event_time": isoformat(last),
    }


def recent_events(db: Session, project_id: str, limit: int) -> list[dict[str, Any]]:
    rows = (
        db.query(Event)
        .filter(Event.project_id == project_id)
        .order_by(Event.created_at.desc())
        .limit(limit)
        .all()
    )
    return [serialize_event(e) for e in rows]


def event_type_stats(db: Session, project_id: str, limit: int) -> list[dict[str, Any]]:
    rows = (
        db.query(Event.event_type, func.count(Event.id).label("count"))
        .filter(Event.project_id == project_id)
        .group_by(Event.event_type)
        .order_by(func.count(Event.id).desc())
        .limit(limit)
        .all()
    )
    return [{"event_type": r.event_type, "count": int(r.count)} for r in rows]


def country_stats(db: Session, project_id: str, limit: int) -> list[dict[str, Any]]:
    rows = (
        db.query(Event.country, func.count(Event.id).label("count"))
        .filter(Event.project_id == project_id, Event.country.isnot(None))
        .group_by(Event.country)
        .order_by(func.count(Event.id).desc())
        .limit(limit)
        .all()
    )
    return [{"country": r.country, "count": int(r.count)} for r in rows]


def page_stats(db: Session, project_id: str, limit: int) -> list[dict[str, Any]]:
    rows = (
        db.query(Event.page_url, Event.page_title, func.count(Event.id).label("count"))
        .filter(Event.project_id == project_id, Event.page_url.isnot(None))
        .group_by(Event.page_url, Event.page_title)
        .order_by(func.count(Event.id).desc())
        .limit(limit)
        .all()
    )
    return [
        {"page_url": r.page_url, "page_title": r.page_title or "", "count": int(r.count)}
        for r in rows
    ]
