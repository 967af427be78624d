"""
User Service Layer
Account lifecycle, credentials and department-scoped user lookups
"""

from typing import Any, Dict, List, Optional, Union
from datetime import datetime

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, update, or_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academia.core.exceptions import (
    AcademiaError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from academia.core.logging_config import logger
from academia.core.security import get_password_hash, verify_password
from academia.models import Department, User, UserRole, AcademicYear
from academia.schemas.common import BulkResult, BulkRowResult, ensure_bulk_limit
from academia.schemas.user import PROFILE_FIELDS, ProfileUpdate, UserCreate, UserUpdate
from academia.services.access_policy import (
    Action,
    Actor,
    Resource,
    ResourceKind,
    describe_new_user,
    describe_user,
    require,
    require_role,
)
from academia.services.scoping import user_scope
from academia.utils.pagination import paginate


class UserService:
    """Service for user accounts"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =====================================================
    # LOOKUPS
    # =====================================================

    async def get_by_id(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_or_404(self, user_id: str) -> User:
        user = await self.get_by_id(user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    async def get_by_login(self, login: str) -> Optional[User]:
        """Find by login ID or email"""
        login = login.strip()
        result = await self.db.execute(
            select(User).where(or_(User.user_id == login, User.email == login.lower()))
        )
        return result.scalars().first()

    async def get_user(self, actor: Actor, user_id: str) -> User:
        user = await self.get_or_404(user_id)
        require(actor, Action.READ, describe_user(user))
        return user

    async def list_users(
        self,
        actor: Actor,
        role: Optional[UserRole] = None,
        department_id: Optional[str] = None,
        academic_year: Optional[AcademicYear] = None,
        semester: Optional[int] = None,
        is_active: Optional[bool] = True,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> dict:
        """Paginated list; HODs only ever see their own department"""
        require_role(actor, UserRole.ADMIN, UserRole.HOD)

        query = select(User).where(*user_scope(actor))
        if role:
            query = query.where(User.role == role)
        if department_id:
            query = query.where(User.department_id == department_id)
        if academic_year:
            query = query.where(User.academic_year == academic_year)
        if semester:
            query = query.where(User.semester == semester)
        if is_active is not None:
            query = query.where(User.is_active == is_active)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.user_id.ilike(pattern),
                User.email.ilike(pattern),
                User.roll_number.ilike(pattern),
            ))

        query = query.order_by(User.created_at.desc())
        return await paginate(self.db, query, page, page_size)

    async def users_by_department(
        self,
        actor: Actor,
        department_id: str,
        role: UserRole,
        academic_year: Optional[AcademicYear] = None,
        semester: Optional[int] = None,
    ) -> List[User]:
        """Active students or staff of a department"""
        require(actor, Action.READ, Resource(
            kind=ResourceKind.USER, department_id=department_id, owner_role=role,
        ))

        roles = [role] if role == UserRole.STUDENT else [UserRole.TEACHER, UserRole.HOD]
        query = select(User).where(
            User.department_id == department_id,
            User.role.in_(roles),
            User.is_active.is_(True),
        )
        if academic_year:
            query = query.where(User.academic_year == academic_year)
        if semester:
            query = query.where(User.semester == semester)

        order = User.roll_number if role == UserRole.STUDENT else User.first_name
        result = await self.db.execute(query.order_by(order))
        return list(result.scalars().all())

    # =====================================================
    # AUTHENTICATION
    # =====================================================

    async def authenticate(self, login: str, password: str) -> User:
        """Verify credentials; every failure looks the same to the caller"""
        user = await self.get_by_login(login)
        if not user or not user.is_active or not verify_password(password, user.hashed_password):
            reason = "unknown user" if not user else ("inactive" if not user.is_active else "bad password")
            logger.log_auth_event("login", False, login=login, reason=reason)
            raise AuthenticationError("Invalid credentials")

        user.last_login = datetime.utcnow()
        await self.db.commit()
        logger.log_auth_event("login", True, login=login, user_role=user.role.value)
        return user

    async def change_password(self, actor: Actor, current_password: str, new_password: str) -> None:
        user = await self.get_or_404(actor.id)
        if not verify_password(current_password, user.hashed_password):
            logger.log_auth_event("change_password", False, login=user.user_id,
                                  reason="Current password incorrect")
            raise ValidationError("Current password is incorrect", field="current_password")

        user.hashed_password = get_password_hash(new_password)
        await self.db.commit()
        logger.log_auth_event("change_password", True, login=user.user_id)

    async def reset_password(self, actor: Actor, login_id: str, new_password: str) -> User:
        """Admin sets a new password for a user identified by login ID"""
        require_role(actor, UserRole.ADMIN)

        result = await self.db.execute(select(User).where(User.user_id == login_id))
        user = result.scalar_one_or_none()
        if not user:
            raise NotFoundError("User", login_id)

        user.hashed_password = get_password_hash(new_password)
        await self.db.commit()
        logger.log_auth_event("reset_password", True, login=login_id, reset_by=actor.id)
        return user

    # =====================================================
    # CREATE / UPDATE / DEACTIVATE
    # =====================================================

    async def _ensure_department(self, department_id: Optional[str]) -> Optional[Department]:
        if not department_id:
            return None
        result = await self.db.execute(select(Department).where(Department.id == department_id))
        department = result.scalar_one_or_none()
        if not department or not department.is_active:
            raise NotFoundError("Department", department_id)
        return department

    async def _ensure_unique(self, exclude_id: Optional[str] = None, **fields: Any) -> None:
        """Friendly duplicate check; the unique indexes are the real guard"""
        for column_name, value in fields.items():
            if value is None:
                continue
            column = getattr(User, column_name)
            query = select(User.id).where(column == value)
            if exclude_id:
                query = query.where(User.id != exclude_id)
            if (await self.db.execute(query)).first():
                raise ConflictError(
                    f"A user with this {column_name} already exists",
                    details={"field": column_name, "value": value},
                )

    async def create_user(self, actor: Actor, data: UserCreate) -> User:
        require(actor, Action.CREATE, describe_new_user(data.role, data.department_id))

        department_id = data.department_id if data.role != UserRole.ADMIN else None
        await self._ensure_department(department_id)
        await self._ensure_unique(
            user_id=data.user_id,
            email=data.email,
            roll_number=data.roll_number if data.role == UserRole.STUDENT else None,
            employee_id=data.employee_id if data.role in (UserRole.TEACHER, UserRole.HOD) else None,
        )

        is_student = data.role == UserRole.STUDENT
        is_staff = data.role in (UserRole.TEACHER, UserRole.HOD)
        user = User(
            user_id=data.user_id,
            email=data.email,
            hashed_password=get_password_hash(data.password),
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            role=data.role,
            department_id=department_id,
            academic_year=data.academic_year if is_student else None,
            semester=data.semester if is_student else None,
            roll_number=data.roll_number if is_student else None,
            employee_id=data.employee_id if is_staff else None,
            phone_number=data.phone_number,
            address=data.address,
            date_of_birth=data.date_of_birth,
            joining_date=data.joining_date,
        )
        self.db.add(user)
        await self._commit("User")

        logger.info(
            f"[Users] Created {user.role.value} {user.user_id}",
            extra={"event_type": "user_created", "created_by": actor.id, "new_user": user.id}
        )
        return user

    async def update_user(self, actor: Actor, user_id: str,
                          data: Union[UserUpdate, ProfileUpdate]) -> User:
        """
        Admins may change any field. Everyone else may only touch the
        profile fields of their own record.
        """
        user = await self.get_or_404(user_id)
        require(actor, Action.UPDATE, describe_user(user))

        changes: Dict[str, Any] = data.model_dump(exclude_unset=True)
        if not actor.is_admin:
            forbidden = set(changes) - PROFILE_FIELDS
            if forbidden:
                raise AuthorizationError(
                    f"Not allowed to change: {', '.join(sorted(forbidden))}",
                    details={"fields": sorted(forbidden)},
                )

        if "email" in changes and changes["email"]:
            changes["email"] = changes["email"].lower()
        await self._ensure_unique(
            exclude_id=user.id,
            email=changes.get("email"),
            roll_number=changes.get("roll_number"),
            employee_id=changes.get("employee_id"),
        )

        new_role = changes.get("role", user.role)
        new_department = changes.get("department_id", user.department_id)
        if "department_id" in changes:
            await self._ensure_department(new_department)
        if new_role != UserRole.ADMIN and not new_department:
            raise ValidationError("Department is required for non-admin users", field="department_id")

        # Moving or demoting an HOD releases the department's HOD slot
        if user.role == UserRole.HOD and (new_role != UserRole.HOD or new_department != user.department_id):
            await self._release_hod(user.id)
        if changes.get("is_active") is False:
            await self._release_hod(user.id)

        for key, value in changes.items():
            setattr(user, key, value)

        if new_role != UserRole.STUDENT:
            user.academic_year = user.semester = user.roll_number = None
        if new_role not in (UserRole.TEACHER, UserRole.HOD):
            user.employee_id = None
        if new_role == UserRole.ADMIN:
            user.department_id = None

        await self._commit("User")
        return user

    async def update_profile(self, actor: Actor, data: ProfileUpdate) -> User:
        return await self.update_user(actor, actor.id, data)

    async def deactivate_user(self, actor: Actor, user_id: str) -> User:
        """Soft delete"""
        user = await self.get_or_404(user_id)
        require(actor, Action.DELETE, describe_user(user))
        if user.id == actor.id:
            raise ValidationError("You cannot deactivate your own account")

        await self._release_hod(user.id)
        user.is_active = False
        await self.db.commit()

        logger.info(
            f"[Users] Deactivated {user.user_id}",
            extra={"event_type": "user_deactivated", "deactivated_by": actor.id}
        )
        return user

    async def bulk_create(self, actor: Actor, rows: List[Dict[str, Any]]) -> BulkResult:
        """
        Create users one by one. Each row is committed on its own; a bad row
        is reported and skipped without touching the others.
        """
        require_role(actor, UserRole.ADMIN)
        ensure_bulk_limit(rows)

        results: List[BulkRowResult] = []
        for index, row in enumerate(rows, start=1):
            try:
                data = UserCreate.model_validate(row)
                user = await self.create_user(actor, data)
                results.append(BulkRowResult(row=index, success=True, action="created", id=user.id))
            except PydanticValidationError as e:
                results.append(BulkRowResult(row=index, success=False,
                                             error=ValidationError.from_pydantic(e).message))
            except AcademiaError as e:
                await self.db.rollback()
                results.append(BulkRowResult(row=index, success=False, error=e.message))

        outcome = BulkResult.from_rows(results)
        logger.log_bulk_result("create_users", outcome.total, outcome.succeeded, outcome.failed)
        return outcome

    # =====================================================
    # HELPERS
    # =====================================================

    async def ensure_bootstrap_admin(self, user_id: str, email: str, password: str) -> Optional[User]:
        """
        Seed the first admin account. Does nothing when any admin exists or
        no password is configured.
        """
        existing = (await self.db.execute(
            select(User.id).where(User.role == UserRole.ADMIN).limit(1)
        )).first()
        if existing or not password:
            return None

        admin = User(
            user_id=user_id,
            email=email.lower(),
            hashed_password=get_password_hash(password),
            first_name="System",
            last_name="Administrator",
            role=UserRole.ADMIN,
        )
        self.db.add(admin)
        await self._commit("User")
        logger.info(f"[Users] Bootstrap admin {user_id} created")
        return admin

    async def count_by_role(self, department_id: Optional[str] = None) -> Dict[str, int]:
        query = select(User.role, func.count(User.id)).where(User.is_active.is_(True))
        if department_id:
            query = query.where(User.department_id == department_id)
        result = await self.db.execute(query.group_by(User.role))
        counts = {role.value: 0 for role in UserRole}
        for role, count in result.all():
            counts[UserRole(role).value] = count
        return counts

    async def _release_hod(self, user_id: str) -> None:
        await self.db.execute(
            update(Department).where(Department.hod_id == user_id).values(hod_id=None)
        )

    async def _commit(self, resource_type: str) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"[{resource_type}] Integrity error: {e.orig}")
            raise ConflictError(f"{resource_type} conflicts with an existing record")
