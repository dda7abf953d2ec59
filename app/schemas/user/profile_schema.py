from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, computed_field


def display_name_for(
    display_name: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
) -> str:
    if display_name and display_name.strip():
        return display_name.strip()
    full = " ".join(part.strip() for part in (first_name, last_name) if part and part.strip())
    return full or "(No name)"


class StudentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def name(self) -> str:
        return display_name_for(self.display_name, self.first_name, self.last_name)


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None
