"""Dashboard aggregates across all projects, computed from event rows."""
from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.event import Event
from app.models.project import Project


def start_of_today() -> datetime:
    now = datetime.now(timezone.utc)
    return datetime.combine(now.date(), time.min, tzinfo=timezone.utc)


def _distinct(q, column) -> int:
    return q.with_entities(func.count(func.distinct(column))).scalar() or 0


def dashboard_stats(db: Session) -> dict[str, Any]:
    events = db.query(Event)
    today = events.filter(Event.created_at >= start_of_today())

    users_today = _distinct(today.filter(Event.user_id.isnot(None)), Event.user_id)
    return {
        "total_events": events.count(),
        "total_sessions": _distinct(events, Event.session_id),
        "total_users": _distinct(events.filter(Event.user_id.isnot(None)), Event.user_id),
        "total_projects": db.query(func.count(Project.id)).scalar() or 0,
        "events_today": today.count(),
        "sessions_today": _distinct(today, Event.session_id),
        "unique_users_today": users_today,
        "unique_visitors_today": _distinct(today, Event.ip_address),
    }


def events_by_day(db: Session, days: int) -> list[dict[str, Any]]:
    since = datetime.now(timezone.utc) - timedelta(days=days)
    day = func.date(Event.created_at)
    rows = (
        db.query(day.label("date"), func.count(Event.id).label("count"))
        .filter(Event.created_at >= since)
        .group_by(day)
        .order_by(day.desc())
        .all()
    )
    return [{"date": str(r.date), "count": int(r.count)} for r in rows]


def top_pages(db: Session, limit: int) -> list[dict[str, Any]]:
    rows = (
        db.query(Event.page_url, func.count(Event.id).label("count"))
        .filter(Event.page_url.isnot(None), Event.page_url != "")
        .group_by(Event.page_url)
        .order_by(func.count(Event.id).desc())
        .limit(limit)
        .all()
    )
    return [{"page_url": r.page_url, "count": int(r.count)} for r in rows]


def top_countries(db: Session, limit: int) -> list[dict[str, Any]]:
    rows = (
        db.query(Event.country, func.count(Event.id).label("count"))
        .filter(Event.country.isnot(None), Event.country != "")
        .group_by(Event.country)
        .order_by(func.count(Event.id).desc())
        .limit(limit)
        .all()
    )
    return [{"country": r.country, "count": int(r.count)} for r in rows]


def top_event_types(db: Session, limit: int) -> list[dict[str, Any]]:
    rows = (
        db.query(Event.event_type, func.count(Event.id).label("count"))
        .group_by(Event.event_type)
        .order_by(func.count(Event.id).desc())
        .limit(limit)
        .all()
    )
    return [{"event_type": r.event_type, "count": int(r.count)} for r in rows]


def list_events(db: Session, limit: int, offset: int, session_id: str | None = None) -> list[Event]:
    q = db.query(Event)
    if session_id:
        q = q.filter(Event.session_id == session_id)
    return q.order_by(Event.created_at.desc()).limit(limit).offset(offset).all()
