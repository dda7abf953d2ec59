from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.v2.dependencies import (
    get_course_repository,
    get_current_user,
    get_progress_repository,
    http_error,
    require_admin,
)
from app.core.exceptions import BackendError
from app.crud.course_crud import CourseRepository
from app.crud.progress_crud import ProgressRepository
from app.schemas.course.course_schema import CourseCreate, CourseDetail, CourseOut, CourseUpdate
from app.schemas.progress.progress_schema import CourseCompletionIn, CourseProgressMap
from app.schemas.user.auth_schema import AuthUser

router = APIRouter()


@router.get("", response_model=List[CourseOut])
async def list_courses(courses: CourseRepository = Depends(get_course_repository)):
    try:
        return await courses.fetch_all()
    except BackendError as exc:
        raise http_error(exc) from exc


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    payload: CourseCreate,
    courses: CourseRepository = Depends(get_course_repository),
    _admin: AuthUser = Depends(require_admin),
):
    try:
        return await courses.create(payload)
    except BackendError as exc:
        raise http_error(exc) from exc


@router.get("/mine", response_model=List[CourseOut])
async def list_my_courses(
    courses: CourseRepository = Depends(get_course_repository),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        return await courses.fetch_for_student(current_user.id)
    except BackendError as exc:
        raise http_error(exc) from exc


@router.get("/progress", response_model=CourseProgressMap)
async def read_my_course_progress(
    ids: Optional[List[str]] = Query(default=None),
    progress: ProgressRepository = Depends(get_progress_repository),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        course_map = await progress.fetch_course_progress(current_user.id, ids or None)
    except BackendError as exc:
        raise http_error(exc) from exc
    return CourseProgressMap(courses=dict(course_map))


@router.get("/{course_id}", response_model=CourseDetail)
async def read_course(course_id: int, courses: CourseRepository = Depends(get_course_repository)):
    try:
        course = await courses.fetch_by_id(course_id)
    except BackendError as exc:
        raise http_error(exc) from exc
    if course is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
    return course


@router.patch("/{course_id}", response_model=CourseOut)
async def update_course(
    course_id: int,
    payload: CourseUpdate,
    courses: CourseRepository = Depends(get_course_repository),
    _admin: AuthUser = Depends(require_admin),
):
    try:
        return await courses.update(course_id, payload)
    except BackendError as exc:
        raise http_error(exc) from exc


@router.post("/{course_id}/start", response_model=CourseProgressMap)
async def start_course(
    course_id: int,
    progress: ProgressRepository = Depends(get_progress_repository),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        key = await progress.start_course(current_user, course_id)
        course_map = await progress.fetch_course_progress(current_user.id, [key])
    except BackendError as exc:
        raise http_error(exc) from exc
    return CourseProgressMap(courses=dict(course_map))


@router.post("/{course_id}/complete", response_model=CourseProgressMap)
async def complete_course(
    course_id: int,
    payload: Optional[CourseCompletionIn] = None,
    progress: ProgressRepository = Depends(get_progress_repository),
    current_user: AuthUser = Depends(get_current_user),
):
    completed = payload.completed if payload is not None else True
    try:
        status_value = await progress.set_course_completed(current_user, course_id, completed)
    except BackendError as exc:
        raise http_error(exc) from exc
    return CourseProgressMap(courses={str(course_id): status_value})
