from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.v2.dependencies import get_module_repository, http_error, require_admin
from app.core.exceptions import BackendError
from app.crud.module_crud import ModuleRepository
from app.schemas.course.module_schema import (
    ModuleCreate,
    ModuleOut,
    ModuleTestCreate,
    ModuleTestOut,
    ModuleUpdate,
)
from app.schemas.user.auth_schema import AuthUser

router = APIRouter()


@router.get("", response_model=List[ModuleOut])
async def list_modules(
    course_id: Optional[int] = None,
    modules: ModuleRepository = Depends(get_module_repository),
):
    try:
        return await modules.fetch_all(course_id=course_id)
    except BackendError as exc:
        raise http_error(exc) from exc


@router.post("", response_model=ModuleOut, status_code=status.HTTP_201_CREATED)
async def create_module(
    payload: ModuleCreate,
    modules: ModuleRepository = Depends(get_module_repository),
    _admin: AuthUser = Depends(require_admin),
):
    try:
        return await modules.create(payload)
    except BackendError as exc:
        raise http_error(exc) from exc


@router.get("/{module_id}", response_model=ModuleOut)
async def read_module(module_id: int, modules: ModuleRepository = Depends(get_module_repository)):
    try:
        module = await modules.fetch_by_id(module_id)
    except BackendError as exc:
        raise http_error(exc) from exc
    if module is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Module not found")
    return module


@router.patch("/{module_id}", response_model=ModuleOut)
async def update_module(
    module_id: int,
    payload: ModuleUpdate,
    modules: ModuleRepository = Depends(get_module_repository),
    _admin: AuthUser = Depends(require_admin),
):
    try:
        return await modules.update(module_id, payload)
    except BackendError as exc:
        raise http_error(exc) from exc


@router.get("/{module_id}/tests", response_model=List[ModuleTestOut])
async def list_module_tests(
    module_id: int,
    refresh: bool = Query(default=False),
    modules: ModuleRepository = Depends(get_module_repository),
):
    try:
        return await modules.fetch_tests(module_id, refresh=refresh)
    except BackendError as exc:
        raise http_error(exc) from exc


@router.post("/{module_id}/tests", response_model=ModuleTestOut, status_code=status.HTTP_201_CREATED)
async def create_module_test(
    module_id: int,
    payload: ModuleTestCreate,
    modules: ModuleRepository = Depends(get_module_repository),
    _admin: AuthUser = Depends(require_admin),
):
    try:
        return await modules.create_test(module_id, payload)
    except BackendError as exc:
        raise http_error(exc) from exc
