from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.course.lesson_schema import LessonOut


class ModuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    title: str
    description: Optional[str] = None
    ordinal: Optional[int] = None
    created_at: Optional[datetime] = None
    # Leçons rattachées, dans l'ordre renvoyé par la base (ordinal puis created_at)
    lessons: List[LessonOut] = Field(default_factory=list)


class ModuleCreate(BaseModel):
    course_id: int
    title: str = ""
    description: Optional[str] = None
    ordinal: Optional[int] = None


class ModuleUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    ordinal: Optional[int] = None


class ModuleTestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    module_id: int
    title: str
    description: Optional[str] = None


class ModuleTestCreate(BaseModel):
    title: str = ""
    description: Optional[str] = None
