"""
Department endpoints
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from academia.core.config import settings
from academia.core.database import get_db
from academia.models.user import UserRole
from academia.modules.auth.dependencies import get_current_actor
from academia.schemas.department import (
    AssignHODRequest,
    DepartmentCreate,
    DepartmentDetail,
    DepartmentResponse,
    DepartmentStatistics,
    DepartmentUpdate,
)
from academia.schemas.user import UserResponse
from academia.services.access_policy import Actor
from academia.services.department_service import DepartmentService
from academia.utils.pagination import PaginatedResponse

router = APIRouter()


@router.get("", response_model=PaginatedResponse[DepartmentResponse])
async def list_departments(
    include_inactive: bool = False,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await DepartmentService(db).list_departments(
        actor, include_inactive=include_inactive, search=search, page=page, page_size=page_size,
    )


@router.post("", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
async def create_department(
    body: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Admin only; the optional HOD is linked both ways"""
    return await DepartmentService(db).create_department(actor, body)


@router.get("/{department_id}", response_model=DepartmentDetail)
async def get_department(
    department_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    service = DepartmentService(db)
    department = await service.get_department(actor, department_id)
    detail = DepartmentDetail.model_validate(department)
    detail.user_counts = await service.user_counts(department.id)
    return detail


@router.put("/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: str,
    body: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await DepartmentService(db).update_department(actor, department_id, body)


@router.delete("/{department_id}", response_model=DepartmentResponse)
async def deactivate_department(
    department_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Soft delete; refused while active users remain"""
    return await DepartmentService(db).deactivate_department(actor, department_id)


@router.put("/{department_id}/hod", response_model=DepartmentResponse)
async def assign_hod(
    department_id: str,
    body: AssignHODRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await DepartmentService(db).assign_hod(actor, department_id, body.hod_id)


@router.get("/{department_id}/users", response_model=PaginatedResponse[UserResponse])
async def department_users(
    department_id: str,
    role: Optional[UserRole] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await DepartmentService(db).department_users(
        actor, department_id, role=role, page=page, page_size=page_size,
    )


@router.get("/{department_id}/statistics", response_model=DepartmentStatistics)
async def department_statistics(
    department_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await DepartmentService(db).statistics(actor, department_id)
