from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.v2.dependencies import get_progress_service, get_student_repository, http_error, require_admin
from app.core.exceptions import BackendError
from app.crud.student_crud import StudentRepository
from app.schemas.progress.progress_schema import StudentProgressReport
from app.schemas.user.auth_schema import AuthUser
from app.schemas.user.profile_schema import StudentOut
from app.services.progress_service import ProgressService

router = APIRouter()


@router.get("", response_model=List[StudentOut])
async def list_students(
    students: StudentRepository = Depends(get_student_repository),
    _admin: AuthUser = Depends(require_admin),
):
    try:
        return await students.fetch_all()
    except BackendError as exc:
        raise http_error(exc) from exc


@router.get("/{student_id}", response_model=StudentOut)
async def read_student(
    student_id: str,
    students: StudentRepository = Depends(get_student_repository),
    _admin: AuthUser = Depends(require_admin),
):
    try:
        student = await students.fetch_by_id(student_id)
    except BackendError as exc:
        raise http_error(exc) from exc
    if student is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return student


@router.get("/{student_id}/progress", response_model=StudentProgressReport)
async def read_student_progress(
    student_id: str,
    service: ProgressService = Depends(get_progress_service),
    _admin: AuthUser = Depends(require_admin),
):
    # Un échec de chargement est renvoyé dans le rapport (status="failed"),
    # jamais sous forme de progression nulle.
    return await service.build_report(student_id)
