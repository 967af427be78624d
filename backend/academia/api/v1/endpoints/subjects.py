"""
Subject endpoints
"""
from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional

from academia.core.config import settings
from academia.core.database import get_db
from academia.models.subject import SubjectType
from academia.models.user import AcademicYear
from academia.modules.auth.dependencies import get_current_actor
from academia.schemas.common import BulkResult
from academia.schemas.subject import (
    AssignTeacherRequest,
    SubjectCreate,
    SubjectResponse,
    SubjectUpdate,
)
from academia.services.access_policy import Actor
from academia.services.subject_service import SubjectService
from academia.utils.pagination import PaginatedResponse

router = APIRouter()


@router.get("", response_model=PaginatedResponse[SubjectResponse])
async def list_subjects(
    department_id: Optional[str] = None,
    semester: Optional[int] = Query(None, ge=1, le=8),
    academic_year: Optional[AcademicYear] = None,
    subject_type: Optional[SubjectType] = None,
    teacher_id: Optional[str] = None,
    search: Optional[str] = None,
    include_inactive: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Scoped to what the caller may read"""
    return await SubjectService(db).list_subjects(
        actor, department_id=department_id, semester=semester, academic_year=academic_year,
        subject_type=subject_type, teacher_id=teacher_id, search=search,
        include_inactive=include_inactive, page=page, page_size=page_size,
    )


@router.post("", response_model=SubjectResponse, status_code=status.HTTP_201_CREATED)
async def create_subject(
    body: SubjectCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await SubjectService(db).create_subject(actor, body)


@router.post("/bulk", response_model=BulkResult)
async def bulk_create_subjects(
    rows: List[Dict[str, Any]] = Body(...),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await SubjectService(db).bulk_create(actor, rows)


@router.get("/department/{department_id}", response_model=List[SubjectResponse])
async def subjects_by_department(
    department_id: str,
    semester: Optional[int] = Query(None, ge=1, le=8),
    academic_year: Optional[AcademicYear] = None,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await SubjectService(db).subjects_by_department(
        actor, department_id, semester=semester, academic_year=academic_year,
    )


@router.get("/teacher/{teacher_id}", response_model=List[SubjectResponse])
async def subjects_by_teacher(
    teacher_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await SubjectService(db).subjects_by_teacher(actor, teacher_id)


@router.get("/{subject_id}", response_model=SubjectResponse)
async def get_subject(
    subject_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await SubjectService(db).get_subject(actor, subject_id)


@router.put("/{subject_id}", response_model=SubjectResponse)
async def update_subject(
    subject_id: str,
    body: SubjectUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await SubjectService(db).update_subject(actor, subject_id, body)


@router.put("/{subject_id}/teacher", response_model=SubjectResponse)
async def assign_teacher(
    subject_id: str,
    body: AssignTeacherRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await SubjectService(db).assign_teacher(actor, subject_id, body.teacher_id)


@router.delete("/{subject_id}", response_model=SubjectResponse)
async def delete_subject(
    subject_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Soft delete; refused once grades exist"""
    return await SubjectService(db).delete_subject(actor, subject_id)
