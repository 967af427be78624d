"""
Grade endpoints

Grade entry, publication and CGPA. Derived fields (total, letter, grade
points) are always computed server side from the submitted marks.
"""
from dataclasses import asdict

from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional

from academia.core.config import settings
from academia.core.database import get_db
from academia.models.grade import ExamType
from academia.models.user import AcademicYear
from academia.modules.auth.dependencies import get_current_actor
from academia.schemas.analytics import CGPAResponse, SubjectPerformanceResponse
from academia.schemas.common import BulkResult
from academia.schemas.grade import (
    GradeResponse,
    GradeUpdate,
    GradeUpsert,
    GradeUpsertResponse,
    PublishRequest,
    PublishResponse,
)
from academia.services.access_policy import Actor
from academia.services.analytics_service import AnalyticsService
from academia.services.grade_service import GradeService
from academia.utils.pagination import PaginatedResponse

router = APIRouter()


@router.get("", response_model=PaginatedResponse[GradeResponse])
async def list_grades(
    student_id: Optional[str] = None,
    subject_id: Optional[str] = None,
    department_id: Optional[str] = None,
    semester: Optional[int] = Query(None, ge=1, le=8),
    academic_year: Optional[AcademicYear] = None,
    exam_type: Optional[ExamType] = None,
    is_published: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Students only ever see their own published grades"""
    return await GradeService(db).list_grades(
        actor, student_id=student_id, subject_id=subject_id, department_id=department_id,
        semester=semester, academic_year=academic_year, exam_type=exam_type,
        is_published=is_published, page=page, page_size=page_size,
    )


@router.post("", response_model=GradeUpsertResponse)
async def upsert_grade(
    body: GradeUpsert,
    response: Response,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """
    Create or update the grade for (student, subject, exam type).

    201 when a new grade was recorded, 200 when an existing one was
    overwritten. Overwriting unpublishes the grade.
    """
    grade, created = await GradeService(db).upsert_grade(actor, body)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return GradeUpsertResponse(created=created, grade=GradeResponse.model_validate(grade))


@router.post("/bulk", response_model=BulkResult)
async def bulk_upsert_grades(
    rows: List[Dict[str, Any]] = Body(...),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Per-row results; a denied row fails the whole request"""
    return await GradeService(db).bulk_upsert(actor, rows)


@router.post("/publish-bulk", response_model=PublishResponse)
async def publish_bulk(
    body: PublishRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """All listed grades are published with one timestamp, or none are"""
    count, published_at = await GradeService(db).publish_bulk(actor, body.grade_ids)
    return PublishResponse(published=count, published_at=published_at)


@router.get("/cgpa/{student_id}", response_model=CGPAResponse)
async def student_cgpa(
    student_id: str,
    semester: Optional[int] = Query(None, ge=1, le=8),
    academic_year: Optional[AcademicYear] = None,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    result = await GradeService(db).compute_cgpa(
        actor, student_id, semester=semester, academic_year=academic_year,
    )
    return CGPAResponse(student_id=student_id, **asdict(result))


@router.get("/statistics/{subject_id}", response_model=SubjectPerformanceResponse)
async def subject_statistics(
    subject_id: str,
    academic_year: Optional[AcademicYear] = None,
    exam_type: Optional[ExamType] = None,
    semester: Optional[int] = Query(None, ge=1, le=8),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await AnalyticsService(db).subject_performance(
        actor, subject_id, academic_year=academic_year, exam_type=exam_type, semester=semester,
    )


@router.get("/{grade_id}", response_model=GradeResponse)
async def get_grade(
    grade_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await GradeService(db).get_grade(actor, grade_id)


@router.put("/{grade_id}", response_model=GradeResponse)
async def update_grade(
    grade_id: str,
    body: GradeUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await GradeService(db).update_grade(actor, grade_id, body)


@router.delete("/{grade_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_grade(
    grade_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    await GradeService(db).delete_grade(actor, grade_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
