"""
Analytics Service Layer

Read-only reports built from published grades. Every query is filtered by
the actor's scope before it runs; nothing here writes.

Passing always means grade points >= 4 (grading.is_passing), for pass
rates, distributions and dashboards alike.
"""

from collections import OrderedDict, defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from datetime import datetime, timedelta

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from academia.core.exceptions import NotFoundError, ValidationError
from academia.models import (
    AcademicYear, Department, ExamType, Grade, GradeLetter, Subject, User, UserRole,
)
from academia.services.access_policy import Action, Actor, describe_report, require
from academia.services.aggregation import GradeEntry, aggregate
from academia.services.grade_service import GradeService
from academia.services.grading import is_passing, pass_rate
from academia.services.scoping import grade_scope
from academia.services.user_service import UserService

# Lower bounds of the marks histogram; totals at or above the last bound go to "100+"
MARKS_BUCKETS: Tuple[int, ...] = (0, 40, 50, 60, 70, 80, 90, 100)

TREND_PERIODS: Dict[str, int] = {
    "1month": 1,
    "3months": 3,
    "6months": 6,
    "1year": 12,
}


# =====================================================
# PURE HELPERS
# =====================================================

def performance_stats(grades: Sequence[Grade]) -> Dict[str, Any]:
    total = len(grades)
    if not total:
        return {
            "total": 0, "average_marks": 0.0, "average_grade_points": 0.0,
            "highest_marks": 0.0, "lowest_marks": 0.0, "passing": 0, "pass_percentage": 0.0,
        }
    marks = [g.total_marks for g in grades]
    passing = sum(1 for g in grades if is_passing(g.grade_points))
    return {
        "total": total,
        "average_marks": round(sum(marks) / total, 2),
        "average_grade_points": round(sum(g.grade_points for g in grades) / total, 2),
        "highest_marks": max(marks),
        "lowest_marks": min(marks),
        "passing": passing,
        "pass_percentage": pass_rate(passing, total),
    }


def grade_distribution(grades: Iterable[Grade]) -> Dict[str, int]:
    """Count per letter grade, every letter present"""
    distribution = OrderedDict((letter.value, 0) for letter in GradeLetter)
    for grade in grades:
        distribution[grade.grade.value] += 1
    return dict(distribution)


def marks_bucket(total: float) -> str:
    if total >= MARKS_BUCKETS[-1]:
        return f"{MARKS_BUCKETS[-1]}+"
    for lower, upper in zip(MARKS_BUCKETS, MARKS_BUCKETS[1:]):
        if lower <= total < upper:
            return f"{lower}-{upper - 1}"
    return f"{MARKS_BUCKETS[0]}-{MARKS_BUCKETS[1] - 1}"


def marks_distribution(grades: Iterable[Grade]) -> Dict[str, int]:
    distribution = OrderedDict(
        (f"{lower}-{upper - 1}", 0) for lower, upper in zip(MARKS_BUCKETS, MARKS_BUCKETS[1:])
    )
    distribution[f"{MARKS_BUCKETS[-1]}+"] = 0
    for grade in grades:
        distribution[marks_bucket(grade.total_marks)] += 1
    return dict(distribution)


def _average(values: Sequence[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def month_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m")


def month_keys(start: datetime, end: datetime) -> List[str]:
    """Every YYYY-MM from start to end inclusive"""
    keys = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        keys.append(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return keys


def rank_students(entries: Iterable[Tuple[str, GradeEntry]], limit: int) -> List[Tuple[str, float, int]]:
    """(student_id, cgpa, credits) ordered by CGPA, then credits"""
    by_student: Dict[str, List[GradeEntry]] = defaultdict(list)
    for student_id, entry in entries:
        by_student[student_id].append(entry)

    ranked = []
    for student_id, student_entries in by_student.items():
        result = aggregate(student_entries)
        ranked.append((student_id, result.cgpa, result.total_credits))
    ranked.sort(key=lambda r: (-r[1], -r[2], r[0]))
    return ranked[:limit]


class AnalyticsService:
    """Dashboards and performance reports"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserService(db)
        self.grades = GradeService(db)

    async def _count(self, query) -> int:
        return (await self.db.execute(query)).scalar() or 0

    async def _students_by_id(self, ids: Iterable[str]) -> Dict[str, User]:
        ids = list(set(ids))
        if not ids:
            return {}
        result = await self.db.execute(select(User).where(User.id.in_(ids)))
        return {u.id: u for u in result.scalars().all()}

    async def _rankings(self, entries: List[Tuple[str, GradeEntry]], limit: int) -> List[Dict[str, Any]]:
        ranked = rank_students(entries, limit)
        students = await self._students_by_id(r[0] for r in ranked)
        rankings = []
        for student_id, cgpa, credits in ranked:
            student = students.get(student_id)
            rankings.append({
                "student_id": student_id,
                "name": student.full_name if student else "",
                "roll_number": student.roll_number if student else None,
                "cgpa": cgpa,
                "credits": credits,
            })
        return rankings

    @staticmethod
    def _grade_summary(grade: Grade, subject: Optional[Subject] = None) -> Dict[str, Any]:
        summary = {
            "grade_id": grade.id,
            "student_id": grade.student_id,
            "subject_id": grade.subject_id,
            "grade": grade.grade.value,
            "grade_points": grade.grade_points,
            "total_marks": grade.total_marks,
            "exam_type": grade.exam_type.value,
            "is_published": grade.is_published,
            "published_at": grade.published_at,
            "updated_at": grade.updated_at,
        }
        if subject is not None:
            summary["subject_code"] = subject.code
            summary["subject_name"] = subject.name
        return summary

    # =====================================================
    # DASHBOARDS
    # =====================================================

    async def dashboard(self, actor: Actor) -> Dict[str, Any]:
        """Role-specific summary for the actor"""
        handlers = {
            UserRole.ADMIN: self._admin_dashboard,
            UserRole.HOD: self._hod_dashboard,
            UserRole.TEACHER: self._teacher_dashboard,
            UserRole.STUDENT: self._student_dashboard,
        }
        data = await handlers[actor.role](actor)
        data["role"] = actor.role.value
        return data

    async def _admin_dashboard(self, actor: Actor) -> Dict[str, Any]:
        users_by_role = await self.users.count_by_role()

        department_stats = []
        departments = (await self.db.execute(
            select(Department).where(Department.is_active.is_(True)).order_by(Department.name)
        )).scalars().all()
        for department in departments:
            role_counts = dict((await self.db.execute(
                select(User.role, func.count(User.id))
                .where(User.department_id == department.id, User.is_active.is_(True))
                .group_by(User.role)
            )).all())
            subjects = await self._count(
                select(func.count(Subject.id))
                .where(Subject.department_id == department.id, Subject.is_active.is_(True))
            )
            department_stats.append({
                "department_id": department.id,
                "name": department.name,
                "code": department.code,
                "total_users": sum(role_counts.values()),
                "students": role_counts.get(UserRole.STUDENT, 0),
                "teachers": role_counts.get(UserRole.TEACHER, 0) + role_counts.get(UserRole.HOD, 0),
                "subjects": subjects,
            })

        recent = (await self.db.execute(
            select(Grade, Subject)
            .join(Subject, Grade.subject_id == Subject.id)
            .where(Grade.is_published.is_(True))
            .order_by(Grade.published_at.desc())
            .limit(10)
        )).all()

        return {
            "overview": {
                "total_users": sum(users_by_role.values()),
                "total_departments": len(departments),
                "total_subjects": await self._count(
                    select(func.count(Subject.id)).where(Subject.is_active.is_(True))
                ),
                "published_grades": await self._count(
                    select(func.count(Grade.id)).where(Grade.is_published.is_(True))
                ),
            },
            "users_by_role": users_by_role,
            "department_stats": department_stats,
            "recent_activity": [self._grade_summary(g, s) for g, s in recent],
        }

    async def _hod_dashboard(self, actor: Actor) -> Dict[str, Any]:
        department_id = actor.department_id
        in_department = select(Subject.id).where(Subject.department_id == department_id)

        role_counts = dict((await self.db.execute(
            select(User.role, func.count(User.id))
            .where(User.department_id == department_id, User.is_active.is_(True))
            .group_by(User.role)
        )).all())

        students_by_year = {year.value: 0 for year in AcademicYear}
        for year, count in (await self.db.execute(
            select(User.academic_year, func.count(User.id))
            .where(User.department_id == department_id, User.role == UserRole.STUDENT,
                   User.is_active.is_(True), User.academic_year.isnot(None))
            .group_by(User.academic_year)
        )).all():
            students_by_year[AcademicYear(year).value] = count

        subjects_by_year = {year.value: 0 for year in AcademicYear}
        for year, count in (await self.db.execute(
            select(Subject.academic_year, func.count(Subject.id))
            .where(Subject.department_id == department_id, Subject.is_active.is_(True))
            .group_by(Subject.academic_year)
        )).all():
            subjects_by_year[AcademicYear(year).value] = count

        published = (await self.db.execute(
            select(Grade).where(Grade.is_published.is_(True), Grade.subject_id.in_(in_department))
        )).scalars().all()

        entries = await self.grades.published_entries(Grade.subject_id.in_(in_department))

        return {
            "overview": {
                "total_students": role_counts.get(UserRole.STUDENT, 0),
                "total_teachers": role_counts.get(UserRole.TEACHER, 0) + role_counts.get(UserRole.HOD, 0),
                "total_subjects": sum(subjects_by_year.values()),
                "published_grades": len(published),
            },
            "students_by_year": students_by_year,
            "subjects_by_year": subjects_by_year,
            "grade_distribution": grade_distribution(published),
            "top_students": await self._rankings(entries, 10),
        }

    async def _teacher_dashboard(self, actor: Actor) -> Dict[str, Any]:
        subjects = (await self.db.execute(
            select(Subject)
            .where(Subject.teacher_id == actor.id, Subject.is_active.is_(True))
            .order_by(Subject.code)
        )).scalars().all()

        scoped = select(Grade).where(*grade_scope(actor))
        grades = (await self.db.execute(scoped)).scalars().all()
        published = [g for g in grades if g.is_published]

        subject_stats = []
        for subject in subjects:
            subject_grades = [g for g in grades if g.subject_id == subject.id]
            subject_published = [g for g in subject_grades if g.is_published]
            subject_stats.append({
                "subject_id": subject.id,
                "code": subject.code,
                "name": subject.name,
                "total_grades": len(subject_grades),
                "published_grades": len(subject_published),
                "average_marks": _average([g.total_marks for g in subject_published]),
                "pass_percentage": pass_rate(
                    sum(1 for g in subject_published if is_passing(g.grade_points)),
                    len(subject_published),
                ),
            })

        recent = (await self.db.execute(
            select(Grade, Subject)
            .join(Subject, Grade.subject_id == Subject.id)
            .where(*grade_scope(actor))
            .order_by(Grade.updated_at.desc())
            .limit(10)
        )).all()

        return {
            "overview": {
                "assigned_subjects": len(subjects),
                "students_graded": len({g.student_id for g in grades}),
                "total_grades": len(grades),
                "published_grades": len(published),
                "pending_grades": len(grades) - len(published),
            },
            "subject_stats": subject_stats,
            "recent_grades": [self._grade_summary(g, s) for g, s in recent],
        }

    async def _student_dashboard(self, actor: Actor) -> Dict[str, Any]:
        student = (await self.db.execute(select(User).where(User.id == actor.id))).scalar_one()

        enrolled = 0
        if student.department_id and student.semester:
            enrolled = await self._count(
                select(func.count(Subject.id)).where(
                    Subject.department_id == student.department_id,
                    Subject.semester == student.semester,
                    Subject.is_active.is_(True),
                )
            )

        entries = [e for _, e in await self.grades.published_entries(Grade.student_id == actor.id)]
        result = aggregate(entries)

        recent = (await self.db.execute(
            select(Grade, Subject)
            .join(Subject, Grade.subject_id == Subject.id)
            .where(*grade_scope(actor))
            .order_by(Grade.published_at.desc())
            .limit(5)
        )).all()

        return {
            "overview": {
                "enrolled_subjects": enrolled,
                "completed_subjects": len({e.subject_id for e in entries}),
                "published_grades": result.grades_count,
                "cgpa": result.cgpa,
                "total_credits": result.total_credits,
                "current_semester": student.semester,
            },
            "recent_grades": [self._grade_summary(g, s) for g, s in recent],
            "semester_progress": [
                {"semester": s.semester, "sgpa": s.sgpa, "total_credits": s.total_credits}
                for s in result.semester_wise
            ],
        }

    # =====================================================
    # PERFORMANCE REPORTS
    # =====================================================

    async def subject_performance(
        self,
        actor: Actor,
        subject_id: str,
        academic_year: Optional[AcademicYear] = None,
        exam_type: Optional[ExamType] = None,
        semester: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Detailed report for one subject's published grades"""
        subject = (await self.db.execute(select(Subject).where(Subject.id == subject_id))).scalar_one_or_none()
        if not subject:
            raise NotFoundError("Subject", subject_id)
        require(actor, Action.READ, describe_report(
            department_id=subject.department_id, subject_teacher_id=subject.teacher_id,
        ))

        query = (
            select(Grade, User)
            .join(User, Grade.student_id == User.id)
            .where(Grade.subject_id == subject.id, Grade.is_published.is_(True))
        )
        if academic_year:
            query = query.where(Grade.academic_year == academic_year)
        if exam_type:
            query = query.where(Grade.exam_type == exam_type)
        if semester:
            query = query.where(Grade.semester == semester)
        rows = (await self.db.execute(query)).all()
        grades = [g for g, _ in rows]

        performance = sorted(
            (
                {
                    "student_id": student.id,
                    "name": student.full_name,
                    "roll_number": student.roll_number,
                    "total_marks": grade.total_marks,
                    "grade": grade.grade.value,
                    "grade_points": grade.grade_points,
                }
                for grade, student in rows
            ),
            key=lambda p: (-p["total_marks"], p["roll_number"] or ""),
        )

        trend_groups: Dict[Tuple[str, str], List[Grade]] = OrderedDict()
        for grade in sorted(grades, key=lambda g: (g.academic_year.value, g.exam_type.value)):
            trend_groups.setdefault((grade.academic_year.value, grade.exam_type.value), []).append(grade)
        trends = []
        for (year, exam), group in trend_groups.items():
            stats = performance_stats(group)
            trends.append({
                "academic_year": year,
                "exam_type": exam,
                "total": stats["total"],
                "average_marks": stats["average_marks"],
                "pass_percentage": stats["pass_percentage"],
            })

        return {
            "subject_id": subject.id,
            "subject_code": subject.code,
            "subject_name": subject.name,
            "stats": performance_stats(grades),
            "average_theory": _average([g.theory_marks for g in grades]),
            "average_practical": _average([g.practical_marks for g in grades]),
            "average_internal": _average([g.internal_marks for g in grades]),
            "grade_distribution": grade_distribution(grades),
            "marks_distribution": marks_distribution(grades),
            "top_performers": performance[:5],
            "student_performance": performance,
            "trends": trends,
        }

    async def department_performance(
        self,
        actor: Actor,
        department_id: str,
        academic_year: Optional[AcademicYear] = None,
        semester: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Report across every subject of a department"""
        department = (await self.db.execute(
            select(Department).where(Department.id == department_id)
        )).scalar_one_or_none()
        if not department:
            raise NotFoundError("Department", department_id)
        require(actor, Action.READ, describe_report(department_id=department.id))

        clauses = [Grade.subject_id.in_(select(Subject.id).where(Subject.department_id == department.id))]
        if academic_year:
            clauses.append(Grade.academic_year == academic_year)
        if semester:
            clauses.append(Grade.semester == semester)

        rows = (await self.db.execute(
            select(Grade, Subject)
            .join(Subject, Grade.subject_id == Subject.id)
            .where(Grade.is_published.is_(True), *clauses)
        )).all()
        grades = [g for g, _ in rows]

        by_subject: Dict[str, Tuple[Subject, List[Grade]]] = OrderedDict()
        for grade, subject in sorted(rows, key=lambda r: r[1].code):
            by_subject.setdefault(subject.id, (subject, []))[1].append(grade)

        subject_performance = []
        for subject, subject_grades in by_subject.values():
            stats = performance_stats(subject_grades)
            subject_performance.append({
                "subject_id": subject.id,
                "code": subject.code,
                "name": subject.name,
                "credits": subject.credits,
                "total": stats["total"],
                "average_marks": stats["average_marks"],
                "average_grade_points": stats["average_grade_points"],
                "pass_percentage": stats["pass_percentage"],
            })

        entries = await self.grades.published_entries(*clauses)

        return {
            "department_id": department.id,
            "stats": performance_stats(grades),
            "grade_distribution": grade_distribution(grades),
            "subject_performance": subject_performance,
            "student_rankings": await self._rankings(entries, 20),
        }

    async def trends(self, actor: Actor, period: str = "6months",
                     now: Optional[datetime] = None) -> Dict[str, Any]:
        """Institution-wide monthly trends over a lookback window"""
        require(actor, Action.READ, describe_report())
        if period not in TREND_PERIODS:
            raise ValidationError(
                f"Period must be one of: {', '.join(TREND_PERIODS)}", field="period",
            )

        now = now or datetime.utcnow()
        start = now - timedelta(days=30 * TREND_PERIODS[period])
        months = month_keys(start, now)

        rows = (await self.db.execute(
            select(Grade, Subject)
            .join(Subject, Grade.subject_id == Subject.id)
            .where(Grade.is_published.is_(True), Grade.published_at >= start)
        )).all()

        monthly: Dict[str, List[Grade]] = OrderedDict((m, []) for m in months)
        for grade, _ in rows:
            monthly.setdefault(month_key(grade.published_at), []).append(grade)

        grade_trends = []
        performance_trends = []
        for month, group in monthly.items():
            stats = performance_stats(group)
            grade_trends.append({
                "month": month,
                "total": stats["total"],
                "average_marks": stats["average_marks"],
                "average_grade_points": stats["average_grade_points"],
            })
            performance_trends.append({"month": month, **grade_distribution(group)})

        departments = dict((await self.db.execute(
            select(Department.id, Department.code).where(Department.is_active.is_(True))
        )).all())
        by_department: Dict[str, List[Grade]] = OrderedDict((d, []) for d in departments)
        for grade, subject in rows:
            by_department.setdefault(subject.department_id, []).append(grade)
        department_comparison = []
        for department_id, group in by_department.items():
            stats = performance_stats(group)
            department_comparison.append({
                "department_id": department_id,
                "code": departments.get(department_id),
                "total": stats["total"],
                "average_marks": stats["average_marks"],
                "pass_percentage": stats["pass_percentage"],
            })

        user_growth = OrderedDict((m, {role.value: 0 for role in UserRole}) for m in months)
        created = (await self.db.execute(
            select(User.role, User.created_at).where(User.created_at >= start)
        )).all()
        for role, created_at in created:
            user_growth.setdefault(month_key(created_at), {r.value: 0 for r in UserRole})
            user_growth[month_key(created_at)][UserRole(role).value] += 1

        return {
            "period": period,
            "start": start,
            "end": now,
            "grade_trends": grade_trends,
            "department_comparison": department_comparison,
            "user_growth": [{"month": m, **counts} for m, counts in user_growth.items()],
            "performance_trends": performance_trends,
        }
