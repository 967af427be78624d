"""
Analytics endpoints

Read-only dashboards and performance reports over published grades.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, Optional

from academia.core.database import get_db
from academia.models.grade import ExamType
from academia.models.user import AcademicYear
from academia.modules.auth.dependencies import get_current_actor
from academia.schemas.analytics import DepartmentPerformanceResponse, SubjectPerformanceResponse
from academia.services.access_policy import Actor
from academia.services.analytics_service import AnalyticsService

router = APIRouter()


@router.get("/dashboard", response_model=Dict[str, Any])
async def dashboard(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Role-specific dashboard for the caller"""
    return await AnalyticsService(db).dashboard(actor)


@router.get("/department/{department_id}/performance", response_model=DepartmentPerformanceResponse)
async def department_performance(
    department_id: str,
    academic_year: Optional[AcademicYear] = None,
    semester: Optional[int] = Query(None, ge=1, le=8),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    return await AnalyticsService(db).department_performance(
        actor, department_id, academic_year=academic_year, semester=semester,
    )


@router.get("/subject/{subject_id}/detailed", response_model=SubjectPerformanceResponse)
async def subject_performance(
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


@router.get("/trends", response_model=Dict[str, Any])
async def trends(
    period: str = Query("6months", description="1month, 3months, 6months or 1year"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Admin only"""
    return await AnalyticsService(db).trends(actor, period)
