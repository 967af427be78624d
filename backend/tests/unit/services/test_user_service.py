"""
Unit Tests for the User Service
Tests for: authentication, account creation, profile updates, deactivation, bulk import
"""
import pytest
from sqlalchemy import select

from academia.core.exceptions import (
    AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ValidationError,
)
from academia.core.security import verify_password
from academia.models import Department, User, UserRole
from academia.schemas.user import ProfileUpdate, UserCreate, UserUpdate
from academia.services.access_policy import Actor
from academia.services.user_service import UserService

DEFAULT_PASSWORD = "password123"


def _student_payload(department, **overrides):
    payload = {
        "user_id": "STU900",
        "email": "stu900@example.edu",
        "password": "password123",
        "first_name": "Asha",
        "last_name": "Rao",
        "role": "student",
        "department_id": department.id,
        "academic_year": "1st Year",
        "semester": 1,
        "roll_number": "R900",
    }
    payload.update(overrides)
    return payload


class TestAuthenticate:

    @pytest.mark.asyncio
    async def test_by_login_id_or_email(self, service_db, student_user):
        service = UserService(service_db)

        by_id = await service.authenticate(student_user.user_id, DEFAULT_PASSWORD)
        by_email = await service.authenticate(student_user.email.upper(), DEFAULT_PASSWORD)

        assert by_id.id == by_email.id == student_user.id
        assert by_id.last_login is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("login,password", [
        ("nobody", DEFAULT_PASSWORD),
        (None, "wrong-password"),
    ])
    async def test_failures_look_the_same(self, service_db, student_user, login, password):
        with pytest.raises(AuthenticationError) as exc:
            await UserService(service_db).authenticate(login or student_user.user_id, password)

        assert exc.value.message == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_inactive_user_rejected(self, service_db, make_user, department):
        inactive = await make_user(UserRole.TEACHER, department, is_active=False)

        with pytest.raises(AuthenticationError):
            await UserService(service_db).authenticate(inactive.user_id, DEFAULT_PASSWORD)


class TestCreateUser:

    @pytest.mark.asyncio
    async def test_admin_creates_student(self, service_db, admin_user, department):
        user = await UserService(service_db).create_user(
            Actor.from_user(admin_user), UserCreate(**_student_payload(department))
        )

        assert user.role == UserRole.STUDENT
        assert user.roll_number == "R900"
        assert user.employee_id is None
        assert verify_password("password123", user.hashed_password)

    @pytest.mark.asyncio
    async def test_admin_account_has_no_department(self, service_db, admin_user, department):
        user = await UserService(service_db).create_user(Actor.from_user(admin_user), UserCreate(
            user_id="ADM2", email="adm2@example.edu", password="password123",
            first_name="Second", last_name="Admin", role="admin", department_id=department.id,
        ))

        assert user.department_id is None

    @pytest.mark.asyncio
    async def test_duplicate_email(self, service_db, admin_user, student_user, department):
        with pytest.raises(ConflictError) as exc:
            await UserService(service_db).create_user(
                Actor.from_user(admin_user), UserCreate(**_student_payload(department, email=student_user.email))
            )

        assert exc.value.details["field"] == "email"

    @pytest.mark.asyncio
    async def test_unknown_department(self, service_db, admin_user, department):
        with pytest.raises(NotFoundError):
            await UserService(service_db).create_user(
                Actor.from_user(admin_user), UserCreate(**_student_payload(department, department_id="missing"))
            )

    @pytest.mark.asyncio
    async def test_hod_cannot_create(self, service_db, hod_user, department):
        with pytest.raises(AuthorizationError):
            await UserService(service_db).create_user(
                Actor.from_user(hod_user), UserCreate(**_student_payload(department))
            )


class TestUpdateUser:

    @pytest.mark.asyncio
    async def test_self_profile_update(self, service_db, student_user):
        user = await UserService(service_db).update_profile(
            Actor.from_user(student_user), ProfileUpdate(phone_number="9999999999")
        )

        assert user.phone_number == "9999999999"

    @pytest.mark.asyncio
    async def test_non_admin_cannot_change_role(self, service_db, student_user):
        with pytest.raises(AuthorizationError) as exc:
            await UserService(service_db).update_user(
                Actor.from_user(student_user), student_user.id, UserUpdate(role="admin")
            )

        assert exc.value.details["fields"] == ["role"]

    @pytest.mark.asyncio
    async def test_cannot_update_other_user(self, service_db, student_user, other_student):
        with pytest.raises(AuthorizationError):
            await UserService(service_db).update_user(
                Actor.from_user(student_user), other_student.id, UserUpdate(first_name="X")
            )

    @pytest.mark.asyncio
    async def test_demoting_hod_releases_department(self, service_db, admin_user, hod_user, department):
        await UserService(service_db).update_user(
            Actor.from_user(admin_user), hod_user.id, UserUpdate(role="teacher")
        )

        refreshed = (await service_db.execute(
            select(Department).where(Department.id == department.id).execution_options(populate_existing=True)
        )).scalar_one()
        assert refreshed.hod_id is None

    @pytest.mark.asyncio
    async def test_role_change_clears_student_fields(self, service_db, admin_user, student_user):
        user = await UserService(service_db).update_user(
            Actor.from_user(admin_user), student_user.id, UserUpdate(role="teacher", employee_id="E777")
        )

        assert user.role == UserRole.TEACHER
        assert user.employee_id == "E777"
        assert user.roll_number is None
        assert user.semester is None
        assert user.academic_year is None

    @pytest.mark.asyncio
    async def test_role_change_clears_staff_fields(self, service_db, admin_user, teacher_user):
        user = await UserService(service_db).update_user(
            Actor.from_user(admin_user), teacher_user.id, UserUpdate(role="admin")
        )

        assert user.employee_id is None
        assert user.department_id is None

    @pytest.mark.asyncio
    async def test_department_required_for_non_admin(self, service_db, admin_user, teacher_user):
        with pytest.raises(ValidationError) as exc:
            await UserService(service_db).update_user(
                Actor.from_user(admin_user), teacher_user.id, UserUpdate(department_id=None)
            )

        assert exc.value.field == "department_id"


class TestDeactivateUser:

    @pytest.mark.asyncio
    async def test_soft_delete(self, service_db, admin_user, student_user):
        user = await UserService(service_db).deactivate_user(Actor.from_user(admin_user), student_user.id)

        assert user.is_active is False
        stored = (await service_db.execute(select(User).where(User.id == student_user.id))).scalar_one()
        assert stored is not None

    @pytest.mark.asyncio
    async def test_cannot_deactivate_self(self, service_db, admin_user):
        with pytest.raises(ValidationError):
            await UserService(service_db).deactivate_user(Actor.from_user(admin_user), admin_user.id)

    @pytest.mark.asyncio
    async def test_hod_cannot_deactivate(self, service_db, hod_user, student_user):
        with pytest.raises(AuthorizationError):
            await UserService(service_db).deactivate_user(Actor.from_user(hod_user), student_user.id)


class TestPasswords:

    @pytest.mark.asyncio
    async def test_change_password(self, service_db, teacher_user):
        service = UserService(service_db)

        await service.change_password(Actor.from_user(teacher_user), DEFAULT_PASSWORD, "new-password-1")

        user = await service.authenticate(teacher_user.user_id, "new-password-1")
        assert user.id == teacher_user.id

    @pytest.mark.asyncio
    async def test_change_password_wrong_current(self, service_db, teacher_user):
        with pytest.raises(ValidationError) as exc:
            await UserService(service_db).change_password(Actor.from_user(teacher_user), "nope", "new-password-1")

        assert exc.value.field == "current_password"

    @pytest.mark.asyncio
    async def test_reset_password_admin_only(self, service_db, hod_user, student_user):
        with pytest.raises(AuthorizationError):
            await UserService(service_db).reset_password(Actor.from_user(hod_user), student_user.user_id, "x" * 8)


class TestListingAndBulk:

    @pytest.mark.asyncio
    async def test_hod_listing_limited_to_department(self, service_db, hod_user, student_user, foreign_student):
        page = await UserService(service_db).list_users(Actor.from_user(hod_user), role=UserRole.STUDENT)

        assert [u.id for u in page["items"]] == [student_user.id]

    @pytest.mark.asyncio
    async def test_teacher_cannot_list(self, service_db, teacher_user):
        with pytest.raises(AuthorizationError):
            await UserService(service_db).list_users(Actor.from_user(teacher_user))

    @pytest.mark.asyncio
    async def test_teacher_reads_department_students(self, service_db, teacher_user, student_user,
                                                     other_student, department):
        students = await UserService(service_db).users_by_department(
            Actor.from_user(teacher_user), department.id, UserRole.STUDENT
        )

        assert {s.id for s in students} == {student_user.id, other_student.id}

    @pytest.mark.asyncio
    async def test_teacher_cannot_read_department_staff(self, service_db, teacher_user, department):
        with pytest.raises(AuthorizationError):
            await UserService(service_db).users_by_department(
                Actor.from_user(teacher_user), department.id, UserRole.TEACHER
            )

    @pytest.mark.asyncio
    async def test_bulk_create_reports_rows(self, service_db, admin_user, department, student_user):
        rows = [
            _student_payload(department),
            _student_payload(department, user_id="STU901", email=student_user.email, roll_number="R901"),
            {"user_id": "BAD"},
        ]

        result = await UserService(service_db).bulk_create(Actor.from_user(admin_user), rows)

        assert result.succeeded == 1
        assert [r.row for r in result.errors] == [2, 3]

    @pytest.mark.asyncio
    async def test_bootstrap_admin_only_once(self, service_db):
        service = UserService(service_db)

        first = await service.ensure_bootstrap_admin("admin", "Admin@Example.edu", "bootstrap-pass")
        second = await service.ensure_bootstrap_admin("admin2", "admin2@example.edu", "bootstrap-pass")

        assert first.email == "admin@example.edu"
        assert first.role == UserRole.ADMIN
        assert second is None

    @pytest.mark.asyncio
    async def test_bootstrap_admin_needs_password(self, service_db):
        assert await UserService(service_db).ensure_bootstrap_admin("admin", "a@example.edu", "") is None
