# Fichier: backend/app/models/course/lesson_model.py
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base_class import Base
from typing import List, Optional, TYPE_CHECKING
from datetime import datetime

if TYPE_CHECKING:
    from .module_model import Module


class Lesson(Base):
    __tablename__ = "lessons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    module_id: Mapped[int] = mapped_column(Integer, ForeignKey("modules.id"), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    ordinal: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # HTML produit par l'éditeur riche du back-office
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    video_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    module: Mapped["Module"] = relationship(back_populates="lessons")
    resources: Mapped[List["LessonResource"]] = relationship(back_populates="lesson")

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Lesson(id={self.id}, module_id={self.module_id})>"

    def __str__(self) -> str:
        return self.title


class LessonResource(Base):
    __tablename__ = "lesson_resources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    lesson_id: Mapped[int] = mapped_column(Integer, ForeignKey("lessons.id"), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    resource_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # "website" | "youtube"
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    lesson: Mapped[Lesson] = relationship(back_populates="resources")

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<LessonResource(id={self.id}, lesson_id={self.lesson_id})>"
