"""Schémas Pydantic pour la progression des étudiants."""
from datetime import date
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

CourseStatus = Literal["in-progress", "completed"]


class LessonProgressIn(BaseModel):
    completed: bool = True


class CourseCompletionIn(BaseModel):
    completed: bool = True


class CourseProgressMap(BaseModel):
    """Statut par cours pour l'utilisateur courant (clé = identifiant du cours)."""

    courses: Dict[str, CourseStatus] = Field(default_factory=dict)


class LessonItem(BaseModel):
    id: str
    title: str


class CourseProgressDetail(BaseModel):
    course_id: str
    title: str
    status: CourseStatus
    total_lessons: int
    completed_lessons: int
    in_progress_lessons: int
    percent: int
    completed_items: List[LessonItem] = Field(default_factory=list)
    in_progress_items: List[LessonItem] = Field(default_factory=list)


class StudentProgressReport(BaseModel):
    """Rapport de progression d'un étudiant.

    ``status == "failed"`` signale que la hiérarchie n'a pas pu être chargée :
    ``courses`` vaut alors ``None`` et ``error`` porte le message du backend.
    Un étudiant sans progression a ``status == "succeeded"`` et ``courses == []``.
    """

    student_id: str
    status: Literal["succeeded", "failed"]
    error: Optional[str] = None
    courses: Optional[List[CourseProgressDetail]] = None


class DailyCompletion(BaseModel):
    day: date
    count: int


class TopCourse(BaseModel):
    course_id: str
    title: str
    lesson_count: int


class DashboardAnalytics(BaseModel):
    students: int
    courses: int
    lessons: int
    completions_last_7_days: int
    top_courses_by_lessons: List[TopCourse] = Field(default_factory=list)
    daily_completions: List[DailyCompletion] = Field(default_factory=list)
