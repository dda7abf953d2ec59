# Fichier: backend/app/api/v2/api.py
from fastapi import APIRouter
from .endpoints import (
    analytics_router,
    auth_router,
    course_router,
    lesson_router,
    module_router,
    student_router,
    user_router,
)

api_router = APIRouter()

api_router.include_router(auth_router.router, prefix="/auth", tags=["Auth"])
api_router.include_router(course_router.router, prefix="/courses", tags=["Courses"])
api_router.include_router(module_router.router, prefix="/modules", tags=["Modules"])
api_router.include_router(lesson_router.router, prefix="/lessons", tags=["Lessons"])
api_router.include_router(student_router.router, prefix="/students", tags=["Students"])
api_router.include_router(user_router.router, prefix="/users", tags=["Users"])
api_router.include_router(analytics_router.router, prefix="/analytics", tags=["Analytics"])
