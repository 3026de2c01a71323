# apps/backend/app/routes/events.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.db import get_db
from app.models.project import Project
from app.routes.common import get_ingestor, limit_or_default, ok
from app.schemas.events import EventIn
from app.services.analytics import list_events
from app.services.auth import require_project
from app.services.ingest import EventIngestor
from app.tracking_utils import get_real_ip, serialize_event

router = APIRouter()

@router.post("/track")
def track_event(
  evt: EventIn,
  request: Request,
  project: Project = Depends(require_project),
  db: Session = Depends(get_db),
  ingestor: EventIngestor = Depends(get_ingestor),
):
  # client-sent project_id is never trusted; the api key decides
  event = ingestor.ingest(db, evt, project_id=project.id, peer_ip=get_real_ip(request))
  return ok({"event_id": event["id"], "project": project.name})

@router.get("/events")
def get_events(
  limit: int = 50,
  offset: int = 0,
  session_id: str | None = None,
  db: Session = Depends(get_db),
):
  limit = limit_or_default(limit, 50, 1000)
  offset = max(0, offset)
  events = [serialize_event(e) for e in list_events(db, limit, offset, session_id)]
  return ok(events, limit=limit, offset=offset)
