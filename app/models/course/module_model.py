# Fichier: backend/app/models/course/module_model.py
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base_class import Base
from typing import List, Optional, TYPE_CHECKING
from datetime import datetime

if TYPE_CHECKING:
    from .course_model import Course
    from .lesson_model import Lesson


class Module(Base):
    __tablename__ = "modules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id"), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Ordre d'affichage dans le cours (pas forcément contigu ni unique)
    ordinal: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    course: Mapped["Course"] = relationship(back_populates="modules")
    lessons: Mapped[List["Lesson"]] = relationship(
        back_populates="module",
        order_by="Lesson.ordinal",
    )
    tests: Mapped[List["ModuleTest"]] = relationship(back_populates="module")

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Module(id={self.id}, course_id={self.course_id})>"

    def __str__(self) -> str:
        return self.title


class ModuleTest(Base):
    """Marqueur de quiz de fin de module (pas de banque de questions)."""

    __tablename__ = "module_tests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    module_id: Mapped[int] = mapped_column(Integer, ForeignKey("modules.id"), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    module: Mapped[Module] = relationship(back_populates="tests")

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<ModuleTest(id={self.id}, module_id={self.module_id})>"
