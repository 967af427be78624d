"""
User management endpoints
"""
from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional

from academia.core.config import settings
from academia.core.database import get_db
from academia.models.user import AcademicYear, UserRole
from academia.modules.auth.dependencies import get_current_actor
from academia.schemas.common import BulkResult
from academia.schemas.user import UserCreate, UserResponse, UserSummary, UserUpdate
from academia.services.access_policy import Actor
from academia.services.user_service import UserService
from academia.utils.pagination import PaginatedResponse

router = APIRouter()


@router.get("", response_model=PaginatedResponse[UserResponse])
async def list_users(
    role: Optional[UserRole] = None,
    department_id: Optional[str] = None,
    academic_year: Optional[AcademicYear] = None,
    semester: Optional[int] = Query(None, ge=1, le=8),
    is_active: Optional[bool] = True,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Admin sees everyone; an HOD sees their own department"""
    return await UserService(db).list_users(
        actor, role=role, department_id=department_id, academic_year=academic_year,
        semester=semester, is_active=is_active, search=search, page=page, page_size=page_size,
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await UserService(db).create_user(actor, body)


@router.post("/bulk", response_model=BulkResult)
async def bulk_create_users(
    rows: List[Dict[str, Any]] = Body(...),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Best effort: each row succeeds or fails on its own"""
    return await UserService(db).bulk_create(actor, rows)


@router.get("/department/{department_id}/students", response_model=List[UserSummary])
async def students_by_department(
    department_id: str,
    academic_year: Optional[AcademicYear] = None,
    semester: Optional[int] = Query(None, ge=1, le=8),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await UserService(db).users_by_department(
        actor, department_id, UserRole.STUDENT, academic_year=academic_year, semester=semester,
    )


@router.get("/department/{department_id}/teachers", response_model=List[UserSummary])
async def teachers_by_department(
    department_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await UserService(db).users_by_department(actor, department_id, UserRole.TEACHER)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await UserService(db).get_user(actor, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Admins may change any field; other users only their own profile fields"""
    return await UserService(db).update_user(actor, user_id, body)


@router.delete("/{user_id}", response_model=UserResponse)
async def deactivate_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Soft delete"""
    return await UserService(db).deactivate_user(actor, user_id)
