from __future__ import annotations

import logging
from typing import Dict, List, Optional

from app.core.collection import EntityCollection
from app.core.exceptions import BackendError, NotAuthenticated
from app.core.identifiers import EntityKey, RawId, to_key, to_row_id
from app.crud.base_crud import utcnow
from app.db.row_store import RowStore, eq, in_
from app.schemas.user.auth_schema import AuthUser

logger = logging.getLogger(__name__)

CourseProgressMap = Dict[EntityKey, str]
LessonProgressMap = Dict[EntityKey, bool]


class StudentProgress:
    """Cartes de progression chargées pour un étudiant."""

    def __init__(self, student_id: str):
        self.id = student_id
        self.courses: CourseProgressMap = {}
        self.lessons: LessonProgressMap = {}


class ProgressRepository:
    """Lignes ``user_course_progress`` / ``user_lesson_progress``.

    Les lectures renvoient des cartes ``{clé: statut}`` et alimentent un cache
    par étudiant ; les écritures sont des upserts sur le couple
    (utilisateur, entité) et exigent un utilisateur connecté.
    """

    def __init__(self, store: RowStore):
        self.store = store
        self.collection: EntityCollection[StudentProgress] = EntityCollection()

    def _entry(self, student_id: str) -> StudentProgress:
        entry = self.collection.get(student_id)
        if entry is None:
            entry = StudentProgress(str(to_key(student_id)))
        return entry

    async def fetch_course_progress(
        self,
        student_id: RawId,
        course_ids: Optional[List[RawId]] = None,
    ) -> CourseProgressMap:
        key = to_key(student_id)
        filters = [eq("user_id", str(key))]
        if course_ids:
            filters.append(in_("course_id", [to_row_id(to_key(value)) for value in course_ids]))
        try:
            rows = await self.store.select(
                "user_course_progress",
                columns=["course_id", "completed"],
                filters=filters,
            )
        except BackendError as exc:
            self.collection.fail(exc.message)
            logger.warning("Progression cours indisponible pour %s: %s", key, exc.message)
            raise

        progress: CourseProgressMap = {
            to_key(row["course_id"]): "completed" if row["completed"] else "in-progress" for row in rows
        }
        entry = self._entry(key)
        entry.courses.update(progress)
        self.collection.merge([entry])
        return progress

    async def fetch_lesson_progress(
        self,
        student_id: RawId,
        lesson_ids: Optional[List[RawId]] = None,
    ) -> LessonProgressMap:
        key = to_key(student_id)
        filters = [eq("user_id", str(key))]
        if lesson_ids:
            filters.append(in_("lesson_id", [to_row_id(to_key(value)) for value in lesson_ids]))
        try:
            rows = await self.store.select(
                "user_lesson_progress",
                columns=["lesson_id", "completed"],
                filters=filters,
            )
        except BackendError as exc:
            self.collection.fail(exc.message)
            logger.warning("Progression leçons indisponible pour %s: %s", key, exc.message)
            raise

        progress: LessonProgressMap = {to_key(row["lesson_id"]): bool(row["completed"]) for row in rows}
        entry = self._entry(key)
        entry.lessons.update(progress)
        self.collection.merge([entry])
        return progress

    # ------------------------------------------------------------------
    # Écritures
    # ------------------------------------------------------------------
    async def start_course(self, user: Optional[AuthUser], course_id: RawId) -> EntityKey:
        """Crée la ligne de progression si elle n'existe pas (sans écraser ``started_at``)."""
        user_id = self._require_user(user)
        course_key = to_key(course_id)
        await self._ensure_course_row(user_id, course_key)
        entry = self._entry(user_id)
        entry.courses.setdefault(course_key, "in-progress")
        self.collection.merge([entry])
        return course_key

    async def set_course_completed(self, user: Optional[AuthUser], course_id: RawId, completed: bool) -> str:
        user_id = self._require_user(user)
        course_key = to_key(course_id)
        # Première interaction : la ligne naît avec son ``started_at``.
        await self._ensure_course_row(user_id, course_key)
        await self.store.upsert(
            "user_course_progress",
            {"user_id": user_id, "course_id": to_row_id(course_key), "completed": completed},
            conflict_columns=["user_id", "course_id"],
        )
        status = "completed" if completed else "in-progress"
        entry = self._entry(user_id)
        entry.courses[course_key] = status
        self.collection.merge([entry])
        return status

    async def mark_lesson_progress(self, user: Optional[AuthUser], lesson_id: RawId, completed: bool) -> dict:
        user_id = self._require_user(user)
        lesson_key = to_key(lesson_id)
        completed_at = utcnow() if completed else None
        await self.store.upsert(
            "user_lesson_progress",
            {
                "user_id": user_id,
                "lesson_id": to_row_id(lesson_key),
                "completed": completed,
                "completed_at": completed_at,
            },
            conflict_columns=["user_id", "lesson_id"],
        )
        entry = self._entry(user_id)
        entry.lessons[lesson_key] = completed
        self.collection.merge([entry])
        return {"lesson_id": lesson_key, "completed": completed, "completed_at": completed_at}

    async def _ensure_course_row(self, user_id: str, course_key: EntityKey) -> None:
        await self.store.upsert(
            "user_course_progress",
            {"user_id": user_id, "course_id": to_row_id(course_key), "started_at": utcnow(), "completed": False},
            conflict_columns=["user_id", "course_id"],
            ignore_duplicates=True,
        )

    @staticmethod
    def _require_user(user: Optional[AuthUser]) -> str:
        if user is None or not user.id:
            raise NotAuthenticated()
        return user.id
