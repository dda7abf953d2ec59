from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.v2.dependencies import (
    get_current_user,
    get_lesson_repository,
    get_progress_repository,
    http_error,
    require_admin,
)
from app.core.exceptions import BackendError
from app.crud.lesson_crud import LessonRepository
from app.crud.progress_crud import ProgressRepository
from app.schemas.course.lesson_schema import (
    LessonCreate,
    LessonOut,
    LessonResourceCreate,
    LessonResourceOut,
    LessonResourceUpdate,
    LessonUpdate,
)
from app.schemas.progress.progress_schema import LessonProgressIn
from app.schemas.user.auth_schema import AuthUser

router = APIRouter()


@router.get("", response_model=List[LessonOut])
async def list_lessons(
    ids: Optional[List[str]] = Query(default=None),
    module_id: Optional[int] = None,
    lessons: LessonRepository = Depends(get_lesson_repository),
):
    try:
        if ids:
            # ``?ids=1,2`` et ``?ids=1&ids=2`` sont acceptés
            flat = [part for value in ids for part in value.split(",") if part.strip()]
            return await lessons.fetch_by_ids(flat)
        return await lessons.fetch_all(module_id=module_id)
    except BackendError as exc:
        raise http_error(exc) from exc


@router.post("", response_model=LessonOut, status_code=status.HTTP_201_CREATED)
async def create_lesson(
    payload: LessonCreate,
    lessons: LessonRepository = Depends(get_lesson_repository),
    _admin: AuthUser = Depends(require_admin),
):
    try:
        return await lessons.create(payload)
    except BackendError as exc:
        raise http_error(exc) from exc


@router.patch("/resources/{resource_id}", response_model=LessonResourceOut)
async def update_lesson_resource(
    resource_id: int,
    payload: LessonResourceUpdate,
    lessons: LessonRepository = Depends(get_lesson_repository),
    _admin: AuthUser = Depends(require_admin),
):
    try:
        return await lessons.update_resource(resource_id, payload)
    except BackendError as exc:
        raise http_error(exc) from exc


@router.get("/{lesson_id}", response_model=LessonOut)
async def read_lesson(lesson_id: int, lessons: LessonRepository = Depends(get_lesson_repository)):
    try:
        lesson = await lessons.fetch_by_id(lesson_id)
    except BackendError as exc:
        raise http_error(exc) from exc
    if lesson is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")
    return lesson


@router.patch("/{lesson_id}", response_model=LessonOut)
async def update_lesson(
    lesson_id: int,
    payload: LessonUpdate,
    lessons: LessonRepository = Depends(get_lesson_repository),
    _admin: AuthUser = Depends(require_admin),
):
    try:
        return await lessons.update(lesson_id, payload)
    except BackendError as exc:
        raise http_error(exc) from exc


@router.post("/{lesson_id}/progress")
async def mark_lesson_progress(
    lesson_id: int,
    payload: LessonProgressIn,
    progress: ProgressRepository = Depends(get_progress_repository),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        return await progress.mark_lesson_progress(current_user, lesson_id, payload.completed)
    except BackendError as exc:
        raise http_error(exc) from exc


@router.get("/{lesson_id}/resources", response_model=List[LessonResourceOut])
async def list_lesson_resources(
    lesson_id: int,
    refresh: bool = Query(default=False),
    lessons: LessonRepository = Depends(get_lesson_repository),
):
    try:
        return await lessons.fetch_resources(lesson_id, refresh=refresh)
    except BackendError as exc:
        raise http_error(exc) from exc


@router.post("/{lesson_id}/resources", response_model=LessonResourceOut, status_code=status.HTTP_201_CREATED)
async def create_lesson_resource(
    lesson_id: int,
    payload: LessonResourceCreate,
    lessons: LessonRepository = Depends(get_lesson_repository),
    _admin: AuthUser = Depends(require_admin),
):
    try:
        return await lessons.create_resource(lesson_id, payload)
    except BackendError as exc:
        raise http_error(exc) from exc
