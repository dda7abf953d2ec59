"""Agrégation de la progression d'un étudiant par cours.

``aggregate_course_progress`` est une fonction pure : elle ne lit que ses
entrées et renvoie toujours le même résultat pour les mêmes entrées. Elle est
recalculée intégralement à chaque rapport ; rien n'est mis en cache ni écrit
en base.

``ProgressService`` rassemble les entrées (cartes de progression et hiérarchie
cours → modules → leçons) puis appelle l'agrégateur.
"""

from __future__ import annotations

import asyncio
import locale
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from app.core.config import settings
from app.core.exceptions import BackendError
from app.core.identifiers import EntityKey, RawId, to_key
from app.crud.course_crud import CourseRepository
from app.crud.module_crud import ModuleRepository
from app.crud.progress_crud import ProgressRepository
from app.schemas.course.module_schema import ModuleOut
from app.schemas.progress.progress_schema import (
    CourseProgressDetail,
    LessonItem,
    StudentProgressReport,
)

logger = logging.getLogger(__name__)

COMPLETED = "completed"
IN_PROGRESS = "in-progress"


@dataclass(frozen=True)
class LessonRef:
    id: EntityKey
    title: Optional[str] = None


@dataclass
class CourseHierarchy:
    """Cours → modules → leçons, tous indexés par ``EntityKey``."""

    course_titles: Dict[EntityKey, str] = field(default_factory=dict)
    modules_by_course: Dict[EntityKey, List[EntityKey]] = field(default_factory=dict)
    lessons_by_module: Dict[EntityKey, List[LessonRef]] = field(default_factory=dict)

    @classmethod
    def from_modules(cls, course_titles: Mapping[EntityKey, str], modules: Sequence[ModuleOut]) -> "CourseHierarchy":
        hierarchy = cls(course_titles=dict(course_titles))
        for module in modules:
            module_key = to_key(module.id)
            hierarchy.modules_by_course.setdefault(to_key(module.course_id), []).append(module_key)
            hierarchy.lessons_by_module[module_key] = [
                LessonRef(to_key(lesson.id), lesson.title) for lesson in module.lessons
            ]
        return hierarchy


def completion_percent(completed: int, total: int) -> int:
    """100 × completed / total arrondi au demi supérieur ; 0 si total == 0."""
    if total <= 0:
        return 0
    completed = min(max(completed, 0), total)
    return (200 * completed + total) // (2 * total)


def _title_sort_key(title: str) -> str:
    try:
        return locale.strxfrm(title)
    except (ValueError, OSError):  # pragma: no cover - invalid locale data
        return title


def aggregate_course_progress(
    course_progress: Mapping[EntityKey, Optional[str]],
    lesson_progress: Mapping[EntityKey, bool],
    hierarchy: CourseHierarchy,
    default_status: str = IN_PROGRESS,
) -> List[CourseProgressDetail]:
    details: List[CourseProgressDetail] = []

    for raw_course_key in dict.fromkeys(course_progress):
        course_key = to_key(raw_course_key)
        title = hierarchy.course_titles.get(course_key) or f"Course {course_key}"

        lessons: Dict[EntityKey, LessonRef] = {}
        for module_key in hierarchy.modules_by_course.get(course_key, []):
            for lesson in hierarchy.lessons_by_module.get(module_key, []):
                lessons.setdefault(lesson.id, lesson)

        completed_items: List[LessonItem] = []
        in_progress_items: List[LessonItem] = []
        for lesson_key, lesson in lessons.items():
            item = LessonItem(id=lesson_key, title=lesson.title or f"Lesson {lesson_key}")
            if lesson_progress.get(lesson_key) is True:
                completed_items.append(item)
            else:
                in_progress_items.append(item)

        total = len(lessons)
        completed = len(completed_items)
        status = course_progress.get(raw_course_key) or default_status

        details.append(
            CourseProgressDetail(
                course_id=course_key,
                title=title,
                status=status,
                total_lessons=total,
                completed_lessons=completed,
                in_progress_lessons=max(0, total - completed),
                percent=completion_percent(completed, total),
                completed_items=completed_items,
                in_progress_items=in_progress_items,
            )
        )

    details.sort(key=lambda detail: (detail.status != COMPLETED, _title_sort_key(detail.title)))
    return details


class ProgressService:
    """Construit le rapport de progression d'un étudiant."""

    def __init__(
        self,
        courses: CourseRepository,
        modules: ModuleRepository,
        progress: ProgressRepository,
        default_status: Optional[str] = None,
    ):
        self.courses = courses
        self.modules = modules
        self.progress = progress
        self.default_status = default_status or settings.PROGRESS_DEFAULT_STATUS

    async def load_hierarchy(self, course_keys: Sequence[EntityKey]) -> CourseHierarchy:
        titles, modules = await asyncio.gather(
            self.courses.fetch_titles(list(course_keys)),
            self.modules.fetch_for_courses(list(course_keys)),
        )
        return CourseHierarchy.from_modules(titles, modules)

    async def build_report(self, student_id: RawId) -> StudentProgressReport:
        student_key = to_key(student_id)
        try:
            course_progress, lesson_progress = await asyncio.gather(
                self.progress.fetch_course_progress(student_key),
                self.progress.fetch_lesson_progress(student_key),
            )
            if not course_progress:
                return StudentProgressReport(student_id=student_key, status="succeeded", courses=[])
            hierarchy = await self.load_hierarchy(list(course_progress))
        except BackendError as exc:
            logger.warning("Rapport de progression impossible pour %s: %s", student_key, exc.message)
            return StudentProgressReport(student_id=student_key, status="failed", error=exc.message, courses=None)

        courses = aggregate_course_progress(course_progress, lesson_progress, hierarchy, self.default_status)
        return StudentProgressReport(student_id=student_key, status="succeeded", courses=courses)
