"""Project administration: CRUD, key rotation and live counts."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import NotFound, StoreError, ValidationError
from app.models.event import Event
from app.models.project import Project
from app.schemas.projects import ProjectCreate, ProjectUpdate
from app.tracking_utils import generate_api_key, isoformat


def parse_project_id(raw: str) -> str:
    try:
        return str(uuid.UUID(raw))
    except (ValueError, AttributeError):
        raise ValidationError("Invalid project ID")


def _commit(db: Session, message: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError(message) from exc


def get_project(db: Session, project_id: str) -> Project:
    project = db.get(Project, parse_project_id(project_id))
    if project is None:
        raise NotFound("Project not found")
    return project


def get_project_by_api_key(db: Session, api_key: str) -> Project:
    project = (
        db.query(Project)
        .filter(Project.api_key == api_key, Project.is_active.is_(True))
        .first()
    )
    if project is None:
        raise NotFound("Invalid API key")
    return project


def project_exists(db: Session, project_id: str) -> bool:
    return db.get(Project, project_id) is not None


def create_project(db: Session, data: ProjectCreate) -> Project:
    now = datetime.now(timezone.utc)
    project = Project(
        id=str(uuid.uuid4()),
        name=data.name,
        domain=data.domain,
        api_key=generate_api_key(),
        description=data.description,
        owner_name=data.owner_name,
        owner_email=data.owner_email,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(project)
    _commit(db, "Failed to create project")
    db.refresh(project)
    return project


def list_projects(db: Session, limit: int, offset: int) -> tuple[list[Project], int]:
    total = db.query(func.count(Project.id)).scalar() or 0
    projects = (
        db.query(Project)
        .order_by(Project.created_at.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return projects, total


def update_project(db: Session, project_id: str, data: ProjectUpdate) -> Project:
    project = get_project(db, project_id)
    # null means "leave unchanged", same as an omitted field
    for field, value in data.model_dump(exclude_none=True).items():
        setattr(project, field, value)
    project.updated_at = datetime.now(timezone.utc)
    _commit(db, "Failed to update project")
    db.refresh(project)
    return project


def deactivate_project(db: Session, project_id: str) -> Project:
    # projects are never hard-deleted; their events keep pointing at them
    project = get_project(db, project_id)
    project.is_active = False
    project.updated_at = datetime.now(timezone.utc)
    _commit(db, "Failed to delete project")
    return project


def regenerate_api_key(db: Session, project_id: str) -> Project:
    project = get_project(db, project_id)
    project.api_key = generate_api_key()
    project.updated_at = datetime.now(timezone.utc)
    _commit(db, "Failed to regenerate API key")
    db.refresh(project)
    return project


def live_counts(db: Session, project_id: str) -> dict[str, Any]:
    base = db.query(Event).filter(Event.project_id == project_id)
    last = base.with_entities(func.max(Event.created_at)).scalar()
    return {
        "total_events": base.count(),
        "total_sessions": base.with_entities(func.count(func.distinct(Event.session_id))).scalar() or 0,
        "total_users": base.filter(Event.user_id.isnot(None))
        .with_entities(func.count(func.distinct(Event.user_id)))
        .scalar()
        or 0,
        "last_event_time": isoformat(last),
    }


def project_to_dict(project: Project, counts: dict[str, Any] | None = None) -> dict[str, Any]:
    out = {
        "id": project.id,
        "name": project.name,
        "domain": project.domain,
        "api_key": project.api_key,
        "description": project.description,
        "owner_name": project.owner_name,
        "owner_email": project.owner_email,
        "is_active": bool(project.is_active),
        "total_events": project.total_events or 0,
        "total_sessions": project.total_sessions or 0,
        "total_users": project.total_users or 0,
        "last_event_time": isoformat(project.last_event_time),
        "created_at": isoformat(project.created_at),
        "updated_at": isoformat(project.updated_at),
    }
    if counts:
        out.update(counts)
    return out
