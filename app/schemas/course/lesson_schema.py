from __future__ import annotations

import math
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, computed_field


class LessonOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    module_id: int
    title: str
    slug: Optional[str] = None
    ordinal: Optional[int] = None
    content: Optional[str] = None
    video_url: Optional[str] = None
    duration_seconds: Optional[int] = None
    created_at: Optional[datetime] = None

    # Champs dérivés : jamais stockés, recalculés à chaque sérialisation.
    @computed_field  # type: ignore[prop-decorator]
    @property
    def type(self) -> Literal["video", "text"]:
        return "video" if self.video_url else "text"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration_minutes(self) -> Optional[int]:
        if self.duration_seconds is None:
            return None
        return max(1, math.ceil(self.duration_seconds / 60))


class LessonCreate(BaseModel):
    module_id: int
    title: str = ""
    slug: Optional[str] = None
    ordinal: Optional[int] = None
    content: Optional[str] = None
    video_url: Optional[str] = None
    duration_seconds: Optional[int] = None


class LessonUpdate(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    ordinal: Optional[int] = None
    content: Optional[str] = None
    video_url: Optional[str] = None
    duration_seconds: Optional[int] = None


ResourceType = Literal["website", "youtube"]


class LessonResourceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    lesson_id: int
    title: str
    url: Optional[str] = None
    resource_type: Optional[str] = None
    created_at: Optional[datetime] = None


class LessonResourceCreate(BaseModel):
    title: str = ""
    url: Optional[str] = None
    resource_type: Optional[ResourceType] = "website"


class LessonResourceUpdate(BaseModel):
    title: Optional[str] = None
    url: Optional[str] = None
    resource_type: Optional[ResourceType] = None
