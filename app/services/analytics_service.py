"""Indicateurs du tableau de bord d'administration."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from app.core.config import settings
from app.core.identifiers import EntityKey, to_key
from app.db.row_store import RowStore, eq, gte
from app.schemas.progress.progress_schema import DailyCompletion, DashboardAnalytics, TopCourse

logger = logging.getLogger(__name__)


def window_start(today: date, days: int) -> datetime:
    """Minuit UTC du premier jour de la fenêtre (aujourd'hui inclus)."""
    first_day = today - timedelta(days=max(days, 1) - 1)
    return datetime.combine(first_day, time.min, tzinfo=timezone.utc)


def _event_day(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(timezone.utc).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return _event_day(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def daily_histogram(events: Iterable, today: date, days: int = 7) -> List[DailyCompletion]:
    """``days`` jours consécutifs se terminant aujourd'hui, du plus ancien au plus récent."""
    buckets: Dict[date, int] = {
        today - timedelta(days=offset): 0 for offset in range(max(days, 1) - 1, -1, -1)
    }
    for value in events:
        day = _event_day(value)
        if day in buckets:
            buckets[day] += 1
    return [DailyCompletion(day=day, count=count) for day, count in buckets.items()]


def top_courses_by_lessons(
    courses: Sequence[Mapping],
    modules: Sequence[Mapping],
    lessons: Sequence[Mapping],
    limit: int = 5,
) -> List[TopCourse]:
    """Classement des cours par nombre total de leçons (décroissant)."""
    modules_by_course: Dict[EntityKey, List[EntityKey]] = {}
    for module in modules:
        modules_by_course.setdefault(to_key(module["course_id"]), []).append(to_key(module["id"]))

    lessons_per_module: Dict[EntityKey, int] = {}
    for lesson in lessons:
        module_key = to_key(lesson["module_id"])
        lessons_per_module[module_key] = lessons_per_module.get(module_key, 0) + 1

    ranking = []
    for course in courses:
        course_key = to_key(course["id"])
        total = sum(lessons_per_module.get(module_key, 0) for module_key in modules_by_course.get(course_key, []))
        ranking.append(TopCourse(course_id=course_key, title=course.get("title") or "", lesson_count=total))

    ranking.sort(key=lambda item: (-item.lesson_count, item.title, item.course_id))
    return ranking[: max(limit, 0)]


class AnalyticsService:
    def __init__(
        self,
        store: RowStore,
        top_n: Optional[int] = None,
        window_days: Optional[int] = None,
    ):
        self.store = store
        self.top_n = top_n if top_n is not None else settings.DASHBOARD_TOP_COURSES
        self.window_days = window_days if window_days is not None else settings.DASHBOARD_WINDOW_DAYS

    async def dashboard(self, today: Optional[date] = None) -> DashboardAnalytics:
        today = today or datetime.now(timezone.utc).date()
        since = window_start(today, self.window_days)
        completion_filters = [eq("completed", True), gte("completed_at", since)]

        (
            students,
            courses_count,
            lessons_count,
            completions,
            courses,
            modules,
            lessons,
            events,
        ) = await asyncio.gather(
            self.store.count("profiles"),
            self.store.count("courses"),
            self.store.count("lessons"),
            self.store.count("user_lesson_progress", filters=completion_filters),
            self.store.select("courses", columns=["id", "title"]),
            self.store.select("modules", columns=["id", "course_id"]),
            self.store.select("lessons", columns=["id", "module_id"]),
            self.store.select("user_lesson_progress", columns=["completed_at"], filters=completion_filters),
        )

        logger.info(
            "Tableau de bord: %s étudiants, %s cours, %s leçons, %s complétions",
            students,
            courses_count,
            lessons_count,
            completions,
        )
        return DashboardAnalytics(
            students=students,
            courses=courses_count,
            lessons=lessons_count,
            completions_last_7_days=completions,
            top_courses_by_lessons=top_courses_by_lessons(courses, modules, lessons, self.top_n),
            daily_completions=daily_histogram((row["completed_at"] for row in events), today, self.window_days),
        )
