"""
Department Service Layer

Owns the department <-> HOD link: whenever a department's HOD changes, the
HOD user's department is updated in the same transaction, and a user can
head at most one department.
"""

from typing import Any, Dict, Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academia.core.exceptions import ConflictError, NotFoundError, ValidationError
from academia.core.logging_config import logger
from academia.models import Department, Subject, User, UserRole, AcademicYear
from academia.schemas.department import DepartmentCreate, DepartmentUpdate
from academia.services.access_policy import (
    Action,
    Actor,
    describe_department,
    describe_report,
    require,
    require_role,
)
from academia.services.scoping import department_scope
from academia.services.user_service import UserService
from academia.utils.pagination import paginate


class DepartmentService:
    """Service for departments and their HOD assignment"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_or_404(self, department_id: str) -> Department:
        result = await self.db.execute(select(Department).where(Department.id == department_id))
        department = result.scalar_one_or_none()
        if not department:
            raise NotFoundError("Department", department_id)
        return department

    async def list_departments(self, actor: Actor, include_inactive: bool = False,
                               search: Optional[str] = None, page: int = 1, page_size: int = 10) -> dict:
        query = select(Department).where(*department_scope(actor))
        if not include_inactive:
            query = query.where(Department.is_active.is_(True))
        if search:
            pattern = f"%{search}%"
            query = query.where(Department.name.ilike(pattern) | Department.code.ilike(pattern))
        return await paginate(self.db, query.order_by(Department.name), page, page_size)

    async def get_department(self, actor: Actor, department_id: str) -> Department:
        department = await self.get_or_404(department_id)
        require(actor, Action.READ, describe_department(department))
        return department

    async def user_counts(self, department_id: str) -> Dict[str, int]:
        """Active members by role; admins never belong to a department"""
        counts = await UserService(self.db).count_by_role(department_id)
        counts.pop(UserRole.ADMIN.value, None)
        return counts

    # =====================================================
    # CREATE / UPDATE / DEACTIVATE
    # =====================================================

    async def _ensure_unique(self, name: Optional[str], code: Optional[str],
                             exclude_id: Optional[str] = None) -> None:
        if name:
            query = select(Department.id).where(func.lower(Department.name) == name.lower())
            if exclude_id:
                query = query.where(Department.id != exclude_id)
            if (await self.db.execute(query)).first():
                raise ConflictError("Department name already exists", details={"field": "name"})
        if code:
            query = select(Department.id).where(Department.code == code)
            if exclude_id:
                query = query.where(Department.id != exclude_id)
            if (await self.db.execute(query)).first():
                raise ConflictError("Department code already exists", details={"field": "code"})

    async def _load_hod(self, hod_id: str) -> User:
        result = await self.db.execute(select(User).where(User.id == hod_id))
        hod = result.scalar_one_or_none()
        if not hod or not hod.is_active:
            raise NotFoundError("User", hod_id)
        if hod.role != UserRole.HOD:
            raise ValidationError("Assigned user must have the HOD role", field="hod_id")
        return hod

    async def _link_hod(self, department: Department, hod: User) -> None:
        """
        Point department.hod_id at `hod` and hod.department_id at the
        department. A previous HOD keeps their department membership but
        loses the HOD slot; another department headed by `hod` is released.
        """
        await self.db.execute(
            update(Department)
            .where(Department.hod_id == hod.id, Department.id != department.id)
            .values(hod_id=None)
        )
        department.hod_id = hod.id
        hod.department_id = department.id

    async def create_department(self, actor: Actor, data: DepartmentCreate) -> Department:
        require_role(actor, UserRole.ADMIN)
        await self._ensure_unique(data.name, data.code)

        hod = await self._load_hod(data.hod_id) if data.hod_id else None

        department = Department(
            name=data.name,
            code=data.code,
            description=data.description,
            established_year=data.established_year,
            total_semesters=data.total_semesters,
        )
        self.db.add(department)
        await self.db.flush()

        if hod:
            await self._link_hod(department, hod)

        await self._commit()
        logger.info(
            f"[Departments] Created {department.code}",
            extra={"event_type": "department_created", "created_by": actor.id}
        )
        return department

    async def update_department(self, actor: Actor, department_id: str,
                                data: DepartmentUpdate) -> Department:
        department = await self.get_or_404(department_id)
        require(actor, Action.UPDATE, describe_department(department))

        changes: Dict[str, Any] = data.model_dump(exclude_unset=True)
        await self._ensure_unique(changes.get("name"), changes.get("code"), exclude_id=department.id)

        if "hod_id" in changes:
            hod_id = changes.pop("hod_id")
            if hod_id and hod_id != department.hod_id:
                await self._link_hod(department, await self._load_hod(hod_id))
            elif not hod_id:
                department.hod_id = None

        if changes.get("is_active") is False and department.is_active:
            await self._ensure_no_active_users(department)

        for key, value in changes.items():
            setattr(department, key, value)

        await self._commit()
        return department

    async def assign_hod(self, actor: Actor, department_id: str, hod_id: str) -> Department:
        department = await self.get_or_404(department_id)
        require(actor, Action.UPDATE, describe_department(department))

        await self._link_hod(department, await self._load_hod(hod_id))
        await self._commit()

        logger.info(
            f"[Departments] HOD of {department.code} set to {hod_id}",
            extra={"event_type": "hod_assigned", "assigned_by": actor.id}
        )
        return department

    async def deactivate_department(self, actor: Actor, department_id: str) -> Department:
        """Soft delete; refused while the department still has active users"""
        department = await self.get_or_404(department_id)
        require(actor, Action.DELETE, describe_department(department))

        await self._ensure_no_active_users(department)
        department.is_active = False
        department.hod_id = None
        await self._commit()
        return department

    async def _ensure_no_active_users(self, department: Department) -> None:
        active_users = (await self.db.execute(
            select(func.count(User.id))
            .where(User.department_id == department.id, User.is_active.is_(True))
        )).scalar() or 0
        if active_users:
            raise ConflictError(
                f"Cannot deactivate department with {active_users} active user(s)",
                details={"active_users": active_users},
            )

    # =====================================================
    # READ VIEWS
    # =====================================================

    async def department_users(self, actor: Actor, department_id: str,
                               role: Optional[UserRole] = None,
                               page: int = 1, page_size: int = 10) -> dict:
        require_role(actor, UserRole.ADMIN, UserRole.HOD)
        department = await self.get_department(actor, department_id)

        query = select(User).where(User.department_id == department.id, User.is_active.is_(True))
        if role:
            query = query.where(User.role == role)
        return await paginate(self.db, query.order_by(User.first_name), page, page_size)

    async def statistics(self, actor: Actor, department_id: str) -> Dict[str, Any]:
        department = await self.get_or_404(department_id)
        require(actor, Action.READ, describe_report(department_id=department.id))

        counts = await self.user_counts(department.id)

        by_year = {year.value: 0 for year in AcademicYear}
        result = await self.db.execute(
            select(User.academic_year, func.count(User.id))
            .where(User.department_id == department.id, User.role == UserRole.STUDENT,
                   User.is_active.is_(True), User.academic_year.isnot(None))
            .group_by(User.academic_year)
        )
        for year, count in result.all():
            by_year[AcademicYear(year).value] = count

        by_semester: Dict[str, int] = {}
        result = await self.db.execute(
            select(User.semester, func.count(User.id))
            .where(User.department_id == department.id, User.role == UserRole.STUDENT,
                   User.is_active.is_(True), User.semester.isnot(None))
            .group_by(User.semester)
            .order_by(User.semester)
        )
        for semester, count in result.all():
            by_semester[str(semester)] = count

        total_subjects = (await self.db.execute(
            select(func.count(Subject.id))
            .where(Subject.department_id == department.id, Subject.is_active.is_(True))
        )).scalar() or 0

        return {
            "department_id": department.id,
            "total_students": counts[UserRole.STUDENT.value],
            "total_teachers": counts[UserRole.TEACHER.value] + counts[UserRole.HOD.value],
            "total_subjects": total_subjects,
            "students_by_year": by_year,
            "students_by_semester": by_semester,
        }

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"[Departments] Integrity error: {e.orig}")
            raise ConflictError("Department conflicts with an existing record")
