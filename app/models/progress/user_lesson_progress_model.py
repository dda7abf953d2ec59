from sqlalchemy import Boolean, Integer, String, DateTime, ForeignKey, false
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base_class import Base
from typing import Optional
from datetime import datetime


class UserLessonProgress(Base):
    __tablename__ = "user_lesson_progress"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    lesson_id: Mapped[int] = mapped_column(Integer, ForeignKey("lessons.id"), primary_key=True)

    completed: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True, nullable=True)

    def __repr__(self):
        return f"<UserLessonProgress(user_id={self.user_id}, lesson_id={self.lesson_id})>"
