# apps/backend/app/routes/analytics.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db import get_db
from app.routes.common import limit_or_default, ok
from app.services import analytics

router = APIRouter()

@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db)):
  return ok(analytics.dashboard_stats(db))

@router.get("/analytics/events-by-day")
def events_by_day(days: int = 7, db: Session = Depends(get_db)):
  days = limit_or_default(days, 7, 365)
  return ok(analytics.events_by_day(db, days), days=days)

@router.get("/analytics/top-pages")
def top_pages(limit: int = 10, db: Session = Depends(get_db)):
  limit = limit_or_default(limit, 10, 100)
  return ok(analytics.top_pages(db, limit), limit=limit)

@router.get("/analytics/top-countries")
def top_countries(limit: int = 10, db: Session = Depends(get_db)):
  limit = limit_or_default(limit, 10, 100)
  return ok(analytics.top_countries(db, limit), limit=limit)

@router.get("/analytics/top-event-types")
def top_event_types(limit: int = 10, db: Session = Depends(get_db)):
  limit = limit_or_default(limit, 10, 100)
  return ok(analytics.top_event_types(db, limit), limit=limit)
