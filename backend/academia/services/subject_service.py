"""
Subject Service Layer
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academia.core.exceptions import AcademiaError, ConflictError, NotFoundError, ValidationError
from academia.core.logging_config import logger
from academia.models import AcademicYear, Department, Grade, Subject, SubjectType, User, UserRole
from academia.schemas.common import BulkResult, BulkRowResult, ensure_bulk_limit
from academia.schemas.subject import SubjectCreate, SubjectUpdate
from academia.services.access_policy import (
    Action,
    Actor,
    describe_department,
    describe_new_subject,
    describe_subject,
    describe_user,
    require,
    require_role,
)
from academia.services.scoping import subject_scope
from academia.utils.pagination import paginate


class SubjectService:
    """Service for subjects, their teacher and prerequisites"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_or_404(self, subject_id: str) -> Subject:
        result = await self.db.execute(select(Subject).where(Subject.id == subject_id))
        subject = result.scalar_one_or_none()
        if not subject:
            raise NotFoundError("Subject", subject_id)
        return subject

    async def get_subject(self, actor: Actor, subject_id: str) -> Subject:
        subject = await self.get_or_404(subject_id)
        require(actor, Action.READ, describe_subject(subject))
        return subject

    async def list_subjects(
        self,
        actor: Actor,
        department_id: Optional[str] = None,
        semester: Optional[int] = None,
        academic_year: Optional[AcademicYear] = None,
        subject_type: Optional[SubjectType] = None,
        teacher_id: Optional[str] = None,
        search: Optional[str] = None,
        include_inactive: bool = False,
        page: int = 1,
        page_size: int = 10,
    ) -> dict:
        query = select(Subject).where(*subject_scope(actor))
        if department_id:
            query = query.where(Subject.department_id == department_id)
        if semester:
            query = query.where(Subject.semester == semester)
        if academic_year:
            query = query.where(Subject.academic_year == academic_year)
        if subject_type:
            query = query.where(Subject.subject_type == subject_type)
        if teacher_id:
            query = query.where(Subject.teacher_id == teacher_id)
        if not include_inactive:
            query = query.where(Subject.is_active.is_(True))
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Subject.name.ilike(pattern), Subject.code.ilike(pattern)))

        query = query.order_by(Subject.semester, Subject.code)
        return await paginate(self.db, query, page, page_size)

    async def subjects_by_department(self, actor: Actor, department_id: str,
                                     semester: Optional[int] = None,
                                     academic_year: Optional[AcademicYear] = None) -> List[Subject]:
        result = await self.db.execute(select(Department).where(Department.id == department_id))
        department = result.scalar_one_or_none()
        if not department:
            raise NotFoundError("Department", department_id)
        require(actor, Action.READ, describe_department(department))

        query = select(Subject).where(
            Subject.department_id == department_id,
            Subject.is_active.is_(True),
            *subject_scope(actor),
        )
        if semester:
            query = query.where(Subject.semester == semester)
        if academic_year:
            query = query.where(Subject.academic_year == academic_year)
        result = await self.db.execute(query.order_by(Subject.semester, Subject.code))
        return list(result.scalars().all())

    async def subjects_by_teacher(self, actor: Actor, teacher_id: str) -> List[Subject]:
        teacher = await self._get_user(teacher_id)
        require(actor, Action.READ, describe_user(teacher))

        result = await self.db.execute(
            select(Subject)
            .where(Subject.teacher_id == teacher.id, Subject.is_active.is_(True), *subject_scope(actor))
            .order_by(Subject.semester, Subject.code)
        )
        return list(result.scalars().all())

    # =====================================================
    # VALIDATION
    # =====================================================

    async def _get_user(self, user_id: str) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            raise NotFoundError("User", user_id)
        return user

    async def _validate_teacher(self, teacher_id: str, department_id: str) -> User:
        teacher = await self._get_user(teacher_id)
        if not teacher.is_active or teacher.role not in (UserRole.TEACHER, UserRole.HOD):
            raise ValidationError("Assigned teacher must be an active teacher or HOD", field="teacher_id")
        if teacher.department_id != department_id:
            raise ValidationError("Teacher must belong to the subject's department", field="teacher_id")
        return teacher

    async def _load_prerequisites(self, prerequisite_ids: List[str], department_id: str,
                                  exclude_id: Optional[str] = None) -> List[Subject]:
        ids = list(dict.fromkeys(prerequisite_ids))
        if not ids:
            return []
        if exclude_id and exclude_id in ids:
            raise ValidationError("A subject cannot be its own prerequisite", field="prerequisite_ids")

        result = await self.db.execute(select(Subject).where(Subject.id.in_(ids)))
        found = list(result.scalars().all())
        missing = set(ids) - {s.id for s in found}
        if missing:
            raise ValidationError(
                f"Unknown prerequisite subject(s): {', '.join(sorted(missing))}",
                field="prerequisite_ids",
            )
        if any(s.department_id != department_id for s in found):
            raise ValidationError("Prerequisites must belong to the same department",
                                  field="prerequisite_ids")
        return found

    async def _ensure_code_free(self, code: str, department_id: str, semester: int,
                                academic_year: AcademicYear, exclude_id: Optional[str] = None) -> None:
        query = select(Subject.id).where(
            Subject.code == code,
            Subject.department_id == department_id,
            Subject.semester == semester,
            Subject.academic_year == academic_year,
        )
        if exclude_id:
            query = query.where(Subject.id != exclude_id)
        if (await self.db.execute(query)).first():
            raise ConflictError(
                "Subject code already exists for this department, semester and academic year",
                details={"field": "code", "value": code},
            )

    # =====================================================
    # CREATE / UPDATE / DELETE
    # =====================================================

    async def create_subject(self, actor: Actor, data: SubjectCreate) -> Subject:
        require_role(actor, UserRole.ADMIN, UserRole.HOD)

        # HODs always create in their own department
        department_id = actor.department_id if actor.role == UserRole.HOD else data.department_id
        if not department_id:
            raise ValidationError("Department is required", field="department_id")
        require(actor, Action.CREATE, describe_new_subject(department_id))

        result = await self.db.execute(select(Department).where(Department.id == department_id))
        department = result.scalar_one_or_none()
        if not department or not department.is_active:
            raise NotFoundError("Department", department_id)

        await self._ensure_code_free(data.code, department_id, data.semester, data.academic_year)
        if data.teacher_id:
            await self._validate_teacher(data.teacher_id, department_id)
        prerequisites = await self._load_prerequisites(data.prerequisite_ids, department_id)

        subject = Subject(
            name=data.name.strip(),
            code=data.code,
            credits=data.credits,
            department_id=department_id,
            semester=data.semester,
            academic_year=data.academic_year,
            subject_type=data.subject_type,
            description=data.description,
            teacher_id=data.teacher_id,
            max_marks=data.max_marks,
            passing_marks=data.passing_marks,
        )
        subject.prerequisites = prerequisites
        self.db.add(subject)
        await self._commit()

        logger.info(
            f"[Subjects] Created {subject.code} in {department.code}",
            extra={"event_type": "subject_created", "created_by": actor.id}
        )
        return subject

    async def update_subject(self, actor: Actor, subject_id: str, data: SubjectUpdate) -> Subject:
        subject = await self.get_or_404(subject_id)
        require(actor, Action.UPDATE, describe_subject(subject))

        changes: Dict[str, Any] = data.model_dump(exclude_unset=True)

        if {"code", "semester", "academic_year"} & set(changes):
            await self._ensure_code_free(
                changes.get("code", subject.code),
                subject.department_id,
                changes.get("semester", subject.semester),
                changes.get("academic_year", subject.academic_year),
                exclude_id=subject.id,
            )
        if changes.get("teacher_id"):
            await self._validate_teacher(changes["teacher_id"], subject.department_id)
        if "prerequisite_ids" in changes:
            subject.prerequisites = await self._load_prerequisites(
                changes.pop("prerequisite_ids") or [], subject.department_id, exclude_id=subject.id,
            )

        max_marks = changes.get("max_marks", subject.max_marks)
        passing_marks = changes.get("passing_marks", subject.passing_marks)
        if passing_marks > max_marks:
            raise ValidationError("passing_marks cannot exceed max_marks", field="passing_marks")

        if changes.get("is_active") is False and subject.is_active:
            await self._ensure_no_grades(subject, "deactivate")

        for key, value in changes.items():
            setattr(subject, key, value)

        await self._commit()
        return subject

    async def assign_teacher(self, actor: Actor, subject_id: str, teacher_id: str) -> Subject:
        subject = await self.get_or_404(subject_id)
        require(actor, Action.UPDATE, describe_subject(subject))

        await self._validate_teacher(teacher_id, subject.department_id)
        subject.teacher_id = teacher_id
        await self._commit()

        logger.info(
            f"[Subjects] Teacher of {subject.code} set to {teacher_id}",
            extra={"event_type": "teacher_assigned", "assigned_by": actor.id}
        )
        return subject

    async def delete_subject(self, actor: Actor, subject_id: str) -> Subject:
        """Soft delete; refused once any grade references the subject"""
        subject = await self.get_or_404(subject_id)
        require(actor, Action.DELETE, describe_subject(subject))

        await self._ensure_no_grades(subject, "delete")
        subject.is_active = False
        await self._commit()
        return subject

    async def bulk_create(self, actor: Actor, rows: List[Dict[str, Any]]) -> BulkResult:
        """Create subjects one by one; failures are reported per row"""
        require_role(actor, UserRole.ADMIN, UserRole.HOD)
        ensure_bulk_limit(rows)

        results: List[BulkRowResult] = []
        for index, row in enumerate(rows, start=1):
            try:
                data = SubjectCreate.model_validate(row)
                subject = await self.create_subject(actor, data)
                results.append(BulkRowResult(row=index, success=True, action="created", id=subject.id))
            except PydanticValidationError as e:
                results.append(BulkRowResult(row=index, success=False,
                                             error=ValidationError.from_pydantic(e).message))
            except AcademiaError as e:
                await self.db.rollback()
                results.append(BulkRowResult(row=index, success=False, error=e.message))

        outcome = BulkResult.from_rows(results)
        logger.log_bulk_result("create_subjects", outcome.total, outcome.succeeded, outcome.failed)
        return outcome

    async def _ensure_no_grades(self, subject: Subject, verb: str) -> None:
        grade_count = (await self.db.execute(
            select(func.count(Grade.id)).where(Grade.subject_id == subject.id)
        )).scalar() or 0
        if grade_count:
            raise ConflictError(
                f"Cannot {verb} subject with {grade_count} existing grade(s)",
                details={"grades": grade_count},
            )

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"[Subjects] Integrity error: {e.orig}")
            raise ConflictError("Subject conflicts with an existing record")
