from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.course.module_schema import ModuleOut


class CourseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    slug: str
    title: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CourseDetail(CourseOut):
    """Cours avec ses modules (et leurs leçons) dans l'ordre d'affichage."""

    modules: List[ModuleOut] = Field(default_factory=list)


class CourseCreate(BaseModel):
    title: str = ""
    slug: Optional[str] = None
    description: Optional[str] = None


class CourseUpdate(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
