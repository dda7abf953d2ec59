# Fichier: backend/app/models/progress/user_course_progress_model.py

from sqlalchemy import Boolean, Integer, String, DateTime, ForeignKey, false
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base_class import Base
from typing import Optional
from datetime import datetime


class UserCourseProgress(Base):
    __tablename__ = "user_course_progress"

    # Une seule ligne par couple (utilisateur, cours) : les écritures sont des upserts.
    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id"), primary_key=True)

    completed: Mapped[Optional[bool]] = mapped_column(Boolean, default=False, server_default=false())
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<UserCourseProgress(user_id={self.user_id}, course_id={self.course_id})>"
