"""Credential gate for the tracking endpoint."""
from __future__ import annotations

from fastapi import Depends, Header, Query
from sqlalchemy.orm import Session

from app.core.errors import InvalidCredential, Unauthenticated
from app.db import get_db
from app.models.project import Project
from app.tracking_utils import API_KEY_HEADER, API_KEY_QUERY


def authenticate(db: Session, token: str | None) -> Project:
    """Return the active project owning ``token``."""
    token = (token or "").strip()
    if not token:
        raise Unauthenticated("API key is required")

    project = (
        db.query(Project)
        .filter(Project.api_key == token, Project.is_active.is_(True))
        .first()
    )
    if project is None:
        raise InvalidCredential("Invalid API key")
    return project


def require_project(
    db: Session = Depends(get_db),
    header_key: str | None = Header(default=None, alias=API_KEY_HEADER),
    query_key: str | None = Query(default=None, alias=API_KEY_QUERY),
) -> Project:
    # header wins; the query parameter is for clients that cannot set headers
    return authenticate(db, header_key or query_key)
