"""Déclare l'ensemble des modèles SQLAlchemy pour ``Base.metadata``."""

from app.db.base_class import Base

# Contenu pédagogique
from app.models.course.course_model import Course
from app.models.course.module_model import Module, ModuleTest
from app.models.course.lesson_model import Lesson, LessonResource

# Étudiants
from app.models.user.profile_model import Profile

# Progression
from app.models.progress.user_course_progress_model import UserCourseProgress
from app.models.progress.user_lesson_progress_model import UserLessonProgress

__all__ = (
    "Base",
    "Course",
    "Module",
    "ModuleTest",
    "Lesson",
    "LessonResource",
    "Profile",
    "UserCourseProgress",
    "UserLessonProgress",
)
