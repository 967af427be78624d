"""
Grade Service Layer

Write path for grades: authorize, validate, compute the derived fields with
grading.grade_from_marks, then persist. The (student, subject, exam type)
unique constraint is what actually prevents duplicate rows; the lookup
before insert only exists to take the update branch without a failed
INSERT in the common case.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple
from datetime import datetime

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academia.core.exceptions import AcademiaError, ConflictError, NotFoundError, ValidationError
from academia.core.logging_config import logger
from academia.models import AcademicYear, ExamType, Grade, Subject, User, UserRole
from academia.schemas.common import BulkResult, BulkRowResult, ensure_bulk_limit
from academia.schemas.grade import GradeUpdate, GradeUpsert
from academia.services.access_policy import (
    Action,
    Actor,
    describe_grade,
    describe_new_grade,
    describe_report,
    require,
    require_all,
)
from academia.services.aggregation import CGPAResult, GradeEntry, aggregate
from academia.services.grading import GradeComputation, absent_grade, grade_from_marks
from academia.services.scoping import grade_scope
from academia.utils.pagination import paginate


def to_entry(grade: Grade, subject: Subject) -> GradeEntry:
    return GradeEntry(
        grade_points=grade.grade_points,
        credits=subject.credits,
        semester=grade.semester,
        subject_id=subject.id,
        subject_code=subject.code,
        subject_name=subject.name,
        grade=grade.grade.value,
        total_marks=grade.total_marks,
        academic_year=grade.academic_year.value,
        exam_type=grade.exam_type.value,
    )


def apply_computation(grade: Grade, computed: GradeComputation) -> None:
    grade.theory_marks = computed.theory
    grade.practical_marks = computed.practical
    grade.internal_marks = computed.internal
    grade.total_marks = computed.total
    grade.grade = computed.grade
    grade.grade_points = computed.grade_points


class GradeService:
    """Service for grade entry, publication and CGPA"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =====================================================
    # LOOKUPS
    # =====================================================

    async def _load_subject(self, subject_id: str) -> Subject:
        result = await self.db.execute(select(Subject).where(Subject.id == subject_id))
        subject = result.scalar_one_or_none()
        if not subject:
            raise NotFoundError("Subject", subject_id)
        return subject

    async def _load_student(self, student_id: str) -> User:
        result = await self.db.execute(select(User).where(User.id == student_id))
        student = result.scalar_one_or_none()
        if not student or not student.is_active:
            raise NotFoundError("Student", student_id)
        if student.role != UserRole.STUDENT:
            raise ValidationError("Grades can only be recorded for students", field="student_id")
        return student

    async def _find_existing(self, student_id: str, subject_id: str,
                             exam_type: ExamType) -> Optional[Grade]:
        result = await self.db.execute(
            select(Grade).where(
                Grade.student_id == student_id,
                Grade.subject_id == subject_id,
                Grade.exam_type == exam_type,
            )
        )
        return result.scalar_one_or_none()

    async def get_with_subject(self, grade_id: str) -> Tuple[Grade, Subject]:
        result = await self.db.execute(
            select(Grade, Subject)
            .join(Subject, Grade.subject_id == Subject.id)
            .where(Grade.id == grade_id)
        )
        row = result.first()
        if not row:
            raise NotFoundError("Grade", grade_id)
        return row[0], row[1]

    async def get_grade(self, actor: Actor, grade_id: str) -> Grade:
        grade, subject = await self.get_with_subject(grade_id)
        require(actor, Action.READ, describe_grade(grade, subject))
        return grade

    async def list_grades(
        self,
        actor: Actor,
        student_id: Optional[str] = None,
        subject_id: Optional[str] = None,
        department_id: Optional[str] = None,
        semester: Optional[int] = None,
        academic_year: Optional[AcademicYear] = None,
        exam_type: Optional[ExamType] = None,
        is_published: Optional[bool] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> dict:
        """Paginated grades, narrowed in SQL to what the actor may read"""
        query = select(Grade).where(*grade_scope(actor))
        if student_id:
            query = query.where(Grade.student_id == student_id)
        if subject_id:
            query = query.where(Grade.subject_id == subject_id)
        if department_id:
            query = query.where(Grade.subject_id.in_(
                select(Subject.id).where(Subject.department_id == department_id)
            ))
        if semester:
            query = query.where(Grade.semester == semester)
        if academic_year:
            query = query.where(Grade.academic_year == academic_year)
        if exam_type:
            query = query.where(Grade.exam_type == exam_type)
        if is_published is not None and actor.role != UserRole.STUDENT:
            query = query.where(Grade.is_published == is_published)

        query = query.order_by(Grade.updated_at.desc())
        return await paginate(self.db, query, page, page_size)

    # =====================================================
    # WRITE PATH
    # =====================================================

    async def upsert_grade(self, actor: Actor, data: GradeUpsert) -> Tuple[Grade, bool]:
        """
        Create the grade for (student, subject, exam type), or update it if
        one exists. Returns (grade, created). Any update resets publication.
        """
        subject = await self._load_subject(data.subject_id)
        require(actor, Action.CREATE, describe_new_grade(subject, data.student_id))

        if not subject.is_active:
            raise ValidationError("Subject is not active", field="subject_id")
        student = await self._load_student(data.student_id)
        if student.department_id != subject.department_id:
            raise ValidationError("Student must belong to the subject's department", field="student_id")

        computed = absent_grade(data.marks) if data.is_absent else grade_from_marks(data.marks)

        # Plain values only below: a rollback expires every loaded instance
        student_id = student.id
        subject_id = subject.id
        fields = {
            "semester": data.semester or subject.semester,
            "academic_year": data.academic_year or subject.academic_year,
            "remarks": data.remarks,
        }

        existing = await self._find_existing(student_id, subject_id, data.exam_type)
        if existing is not None:
            require(actor, Action.UPDATE, describe_grade(existing, subject))
            await self._overwrite(existing, computed, actor.id, fields)
            return existing, False

        grade = Grade(
            student_id=student_id,
            subject_id=subject_id,
            exam_type=data.exam_type,
            teacher_id=actor.id,
            is_published=False,
            **fields,
        )
        apply_computation(grade, computed)
        self.db.add(grade)

        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent request inserted the same key between our lookup and insert
            await self.db.rollback()
            existing = await self._find_existing(student_id, subject_id, data.exam_type)
            if existing is None:
                raise ConflictError("Grade could not be saved due to a conflicting record")
            logger.info(
                f"[Grades] Insert lost race for {student_id}/{subject_id}/{data.exam_type.value}, updating",
                extra={"event_type": "grade_upsert_race"}
            )
            await self._overwrite(existing, computed, actor.id, fields)
            return existing, False

        logger.info(
            f"[Grades] Created {grade.grade.value} for {student_id} in {subject_id}",
            extra={"event_type": "grade_created", "entered_by": actor.id}
        )
        return grade, True

    async def _overwrite(self, grade: Grade, computed: GradeComputation, teacher_id: str,
                         fields: Dict[str, Any]) -> None:
        apply_computation(grade, computed)
        grade.teacher_id = teacher_id
        grade.semester = fields["semester"]
        grade.academic_year = fields["academic_year"]
        if fields.get("remarks") is not None:
            grade.remarks = fields["remarks"]
        grade.is_published = False
        grade.published_at = None
        await self.db.commit()

    async def update_grade(self, actor: Actor, grade_id: str, data: GradeUpdate) -> Grade:
        """
        Partial update. Marks not supplied keep their stored value. A marks
        change unpublishes the grade unless the same request publishes it.
        """
        grade, subject = await self.get_with_subject(grade_id)
        require(actor, Action.UPDATE, describe_grade(grade, subject))
        if data.is_published:
            require(actor, Action.PUBLISH, describe_grade(grade, subject))

        marks_changed = data.marks is not None or data.is_absent is not None
        if marks_changed:
            supplied = data.marks.model_dump(exclude_none=True) if data.marks else {}
            merged = {
                "theory": supplied.get("theory", grade.theory_marks),
                "practical": supplied.get("practical", grade.practical_marks),
                "internal": supplied.get("internal", grade.internal_marks),
            }
            is_absent = data.is_absent if data.is_absent is not None else grade.is_absent
            computed = absent_grade(merged) if is_absent else grade_from_marks(merged)
            apply_computation(grade, computed)
            grade.teacher_id = actor.id
            grade.is_published = False
            grade.published_at = None

        if data.remarks is not None:
            grade.remarks = data.remarks

        if data.is_published is not None:
            grade.is_published = data.is_published
            grade.published_at = datetime.utcnow() if data.is_published else None

        await self.db.commit()
        return grade

    async def delete_grade(self, actor: Actor, grade_id: str) -> None:
        grade, subject = await self.get_with_subject(grade_id)
        require(actor, Action.DELETE, describe_grade(grade, subject))

        await self.db.delete(grade)
        await self.db.commit()
        logger.info(
            f"[Grades] Deleted {grade_id}",
            extra={"event_type": "grade_deleted", "deleted_by": actor.id}
        )

    async def publish_bulk(self, actor: Actor, grade_ids: Sequence[str]) -> Tuple[int, datetime]:
        """
        Publish every listed grade or none of them: an unknown id or a single
        denied grade fails the whole request before anything changes.
        """
        ids = list(dict.fromkeys(grade_ids))
        result = await self.db.execute(
            select(Grade, Subject)
            .join(Subject, Grade.subject_id == Subject.id)
            .where(Grade.id.in_(ids))
        )
        rows = result.all()

        found = {grade.id for grade, _ in rows}
        missing = [grade_id for grade_id in ids if grade_id not in found]
        if missing:
            raise NotFoundError("Grade", missing[0])

        require_all(actor, Action.PUBLISH, [describe_grade(grade, subject) for grade, subject in rows])

        published_at = datetime.utcnow()
        for grade, _ in rows:
            grade.is_published = True
            grade.published_at = published_at
        await self.db.commit()

        logger.info(
            f"[Grades] Published {len(rows)} grade(s)",
            extra={"event_type": "grades_published", "published_by": actor.id, "count": len(rows)}
        )
        return len(rows), published_at

    async def bulk_upsert(self, actor: Actor, rows: List[Dict[str, Any]]) -> BulkResult:
        """
        Best-effort batch. Authorization is checked for every row whose
        subject resolves before any row is written, and one denial fails
        the request. After that each row is validated and committed on its
        own, so a bad row is reported without affecting the others.
        """
        ensure_bulk_limit(rows)
        parsed: List[Tuple[int, Optional[GradeUpsert], Optional[str]]] = []
        for index, row in enumerate(rows, start=1):
            try:
                parsed.append((index, GradeUpsert.model_validate(row), None))
            except PydanticValidationError as e:
                parsed.append((index, None, ValidationError.from_pydantic(e).message))

        subject_ids = {data.subject_id for _, data, _ in parsed if data is not None}
        subjects: Dict[str, Subject] = {}
        if subject_ids:
            result = await self.db.execute(select(Subject).where(Subject.id.in_(subject_ids)))
            subjects = {s.id: s for s in result.scalars().all()}
        require_all(actor, Action.CREATE, [
            describe_new_grade(subjects[data.subject_id], data.student_id)
            for _, data, _ in parsed
            if data is not None and data.subject_id in subjects
        ])

        results: List[BulkRowResult] = []
        for index, data, error in parsed:
            if data is None:
                results.append(BulkRowResult(row=index, success=False, error=error))
                continue
            try:
                grade, created = await self.upsert_grade(actor, data)
                results.append(BulkRowResult(
                    row=index, success=True, id=grade.id, action="created" if created else "updated",
                ))
            except AcademiaError as e:
                await self.db.rollback()
                results.append(BulkRowResult(row=index, success=False, error=e.message))

        outcome = BulkResult.from_rows(results)
        logger.log_bulk_result("upsert_grades", outcome.total, outcome.succeeded, outcome.failed)
        return outcome

    # =====================================================
    # AGGREGATION
    # =====================================================

    async def published_entries(self, *clauses) -> List[Tuple[str, GradeEntry]]:
        """(student_id, entry) for every published grade matching `clauses`"""
        result = await self.db.execute(
            select(Grade, Subject)
            .join(Subject, Grade.subject_id == Subject.id)
            .where(Grade.is_published.is_(True), *clauses)
            .order_by(Grade.semester, Subject.name)
        )
        return [(grade.student_id, to_entry(grade, subject)) for grade, subject in result.all()]

    async def compute_cgpa(self, actor: Actor, student_id: str, semester: Optional[int] = None,
                           academic_year: Optional[AcademicYear] = None) -> CGPAResult:
        """SGPA per semester and credit-weighted CGPA over published grades"""
        result = await self.db.execute(select(User).where(User.id == student_id))
        student = result.scalar_one_or_none()
        if not student or student.role != UserRole.STUDENT:
            raise NotFoundError("Student", student_id)
        require(actor, Action.READ, describe_report(department_id=student.department_id,
                                                    student_id=student.id))

        clauses = [Grade.student_id == student.id]
        if semester:
            clauses.append(Grade.semester == semester)
        if academic_year:
            clauses.append(Grade.academic_year == academic_year)

        entries = [entry for _, entry in await self.published_entries(*clauses)]
        return aggregate(entries)
