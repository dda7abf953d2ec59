# Fichier: backend/app/api/v2/endpoints/user_router.py

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.v2.dependencies import get_current_user, get_student_repository, http_error
from app.core.exceptions import BackendError
from app.crud.student_crud import StudentRepository
from app.schemas.user.auth_schema import AuthUser
from app.schemas.user.profile_schema import ProfileUpdate, StudentOut

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/me", response_model=StudentOut)
async def read_my_profile(
    students: StudentRepository = Depends(get_student_repository),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        profile = await students.fetch_by_id(current_user.id)
    except BackendError as exc:
        raise http_error(exc) from exc
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


@router.patch("/me", response_model=StudentOut)
async def update_my_profile(
    payload: ProfileUpdate,
    students: StudentRepository = Depends(get_student_repository),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        profile = await students.update(current_user.id, payload)
    except BackendError as exc:
        raise http_error(exc) from exc
    logger.info("Profil %s mis à jour", current_user.id)
    return profile
