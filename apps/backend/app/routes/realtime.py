"""Per-project realtime views and the viewer WebSocket."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, WebSocket
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.db import SessionLocal, get_db
from app.realtime.connection import ViewerConnection
from app.routes.common import limit_or_default, ok
from app.services import realtime
from app.services.projects import get_project, parse_project_id, project_exists

logger = logging.getLogger(__name__)

router = APIRouter()

CLOSE_BAD_PROJECT_ID = 4400
CLOSE_PROJECT_NOT_FOUND = 4404


@router.get("/admin/projects/{project_id}/realtime/stats")
def project_stats(project_id: str, db: Session = Depends(get_db)):
    project = get_project(db, project_id)
    return ok(realtime.project_stats(db, project.id))


@router.get("/admin/projects/{project_id}/realtime/events")
def recent_events(project_id: str, limit: int = 50, db: Session = Depends(get_db)):
    project = get_project(db, project_id)
    limit = limit_or_default(limit, 50, 200)
    return ok(realtime.recent_events(db, project.id, limit), limit=limit)


@router.get("/admin/projects/{project_id}/realtime/event-types")
def event_type_stats(project_id: str, limit: int = 10, db: Session = Depends(get_db)):
    project = get_project(db, project_id)
    limit = limit_or_default(limit, 10, 50)
    return ok(realtime.event_type_stats(db, project.id, limit), limit=limit)


@router.get("/admin/projects/{project_id}/realtime/countries")
def country_stats(project_id: str, limit: int = 10, db: Session = Depends(get_db)):
    project = get_project(db, project_id)
    limit = limit_or_default(limit, 10, 50)
    return ok(realtime.country_stats(db, project.id, limit), limit=limit)


@router.get("/admin/projects/{project_id}/realtime/pages")
def page_stats(project_id: str, limit: int = 10, db: Session = Depends(get_db)):
    project = get_project(db, project_id)
    limit = limit_or_default(limit, 10, 50)
    return ok(realtime.page_stats(db, project.id, limit), limit=limit)


def _known_project(project_id: str) -> bool:
    db = SessionLocal()
    try:
        return project_exists(db, project_id)
    finally:
        db.close()


@router.websocket("/admin/projects/{project_id}/ws")
async def project_stream(websocket: WebSocket, project_id: str):
    try:
        project_id = parse_project_id(project_id)
    except ValidationError:
        await websocket.close(code=CLOSE_BAD_PROJECT_ID)
        return

    if not await run_in_threadpool(_known_project, project_id):
        logger.info("Viewer refused, project %s not found", project_id)
        await websocket.close(code=CLOSE_PROJECT_NOT_FOUND)
        return

    app_state = websocket.app.state
    conn = ViewerConnection(
        websocket,
        project_id,
        buffer_size=app_state.settings.hub_buffer_size,
        read_limit=app_state.settings.ws_read_limit,
    )
    await conn.serve(app_state.hub)
