"""Project administration and tracking-script endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response
from sqlalchemy.orm import Session

from app.db import get_db
from app.routes.common import limit_or_default, ok
from app.schemas.projects import ProjectCreate, ProjectUpdate
from app.services import projects as svc
from app.services.tracking_script import render_tracking_script

router = APIRouter()

JS_MEDIA_TYPE = "application/javascript"


def _base_url(request: Request) -> str:
    return request.app.state.settings.public_base_url


@router.post("/admin/projects")
def create_project(payload: ProjectCreate, db: Session = Depends(get_db)):
    project = svc.create_project(db, payload)
    return ok({"project": svc.project_to_dict(project)})


@router.get("/admin/projects")
def list_projects(limit: int = 50, offset: int = 0, db: Session = Depends(get_db)):
    limit = limit_or_default(limit, 50, 100)
    offset = max(0, offset)
    projects, total = svc.list_projects(db, limit, offset)
    data = [svc.project_to_dict(p, svc.live_counts(db, p.id)) for p in projects]
    return ok(data, total=total, limit=limit, offset=offset)


@router.get("/admin/projects/{project_id}")
def get_project(project_id: str, db: Session = Depends(get_db)):
    project = svc.get_project(db, project_id)
    return ok({"project": svc.project_to_dict(project, svc.live_counts(db, project.id))})


@router.put("/admin/projects/{project_id}")
def update_project(project_id: str, payload: ProjectUpdate, db: Session = Depends(get_db)):
    project = svc.update_project(db, project_id, payload)
    return ok({"project": svc.project_to_dict(project)})


@router.delete("/admin/projects/{project_id}")
def delete_project(project_id: str, db: Session = Depends(get_db)):
    svc.deactivate_project(db, project_id)
    return ok({"message": "Project deleted successfully"})


@router.post("/admin/projects/{project_id}/regenerate-key")
def regenerate_key(project_id: str, db: Session = Depends(get_db)):
    project = svc.regenerate_api_key(db, project_id)
    return ok({"project": svc.project_to_dict(project), "message": "API key regenerated successfully"})


@router.get("/admin/projects/{project_id}/script", response_class=PlainTextResponse)
def get_tracking_script(project_id: str, request: Request, db: Session = Depends(get_db)):
    project = svc.get_project(db, project_id)
    # plain text so the dashboard can offer it for copying
    return PlainTextResponse(render_tracking_script(project, _base_url(request)))


@router.get("/admin/projects/{project_id}/script/download")
def download_tracking_script(project_id: str, request: Request, db: Session = Depends(get_db)):
    project = svc.get_project(db, project_id)
    return Response(
        content=render_tracking_script(project, _base_url(request)),
        media_type=JS_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="analytics-tracking.js"'},
    )


@router.get("/script/{api_key}")
def get_tracking_script_by_key(api_key: str, request: Request, db: Session = Depends(get_db)):
    project = svc.get_project_by_api_key(db, api_key)
    return Response(content=render_tracking_script(project, _base_url(request)), media_type=JS_MEDIA_TYPE)
