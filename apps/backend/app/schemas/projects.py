from __future__ import annotations

from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    domain: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    owner_name: str = Field(..., min_length=1, max_length=255)
    owner_email: str = Field(..., pattern=EMAIL_PATTERN)


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    domain: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    owner_name: str | None = Field(default=None, min_length=1, max_length=255)
    owner_email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    is_active: bool | None = None
