"""
Academia Records - Test Configuration and Fixtures
"""
import os
from datetime import datetime
from typing import AsyncGenerator, Callable, Dict
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from faker import Faker

# Set testing environment before the app reads its settings
TEST_DATABASE_URL = 'sqlite+aiosqlite:///./test_academia.db'
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = TEST_DATABASE_URL
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['BOOTSTRAP_ADMIN_PASSWORD'] = ''

from academia.main import app
from academia.core.database import Base, get_db
from academia.core.security import get_password_hash, create_access_token
from academia.models import (
    AcademicYear, Department, ExamType, Grade, Subject, User, UserRole,
)
from academia.services.grade_service import apply_computation
from academia.services.grading import grade_from_marks

fake = Faker()

DEFAULT_PASSWORD = 'password123'

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@pytest_asyncio.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def service_db(db_session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Session for the code under test. Kept apart from db_session so a
    rollback inside a service does not expire the fixture objects.
    """
    async with TestSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override; one session per request"""
    async def override_get_db():
        async with TestSessionLocal() as session:
            try:
                yield session
                if session.new or session.dirty or session.deleted:
                    await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


# =====================================================
# Factories
# =====================================================

@pytest.fixture
def make_department(db_session: AsyncSession) -> Callable:
    async def _make(code: str = None, name: str = None) -> Department:
        code = code or fake.unique.lexify('????').upper()
        department = Department(name=name or f"Department of {code}", code=code)
        db_session.add(department)
        await db_session.commit()
        return department
    return _make


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable:
    async def _make(role: UserRole, department: Department = None, **overrides) -> User:
        suffix = fake.unique.numerify('####')
        fields = dict(
            user_id=f"{role.value.upper()}{suffix}",
            email=f"{role.value}{suffix}@example.edu",
            hashed_password=get_password_hash(DEFAULT_PASSWORD),
            first_name=fake.first_name(),
            last_name=fake.last_name(),
            role=role,
            department_id=department.id if department else None,
            is_active=True,
        )
        if role == UserRole.STUDENT:
            fields.update(academic_year=AcademicYear.SECOND, semester=3, roll_number=f"R{suffix}")
        if role in (UserRole.TEACHER, UserRole.HOD):
            fields.update(employee_id=f"E{suffix}")
        fields.update(overrides)
        user = User(**fields)
        db_session.add(user)
        await db_session.commit()
        return user
    return _make


@pytest.fixture
def make_subject(db_session: AsyncSession) -> Callable:
    async def _make(department: Department, teacher: User = None, credits: int = 4,
                    semester: int = 3, code: str = None, **overrides) -> Subject:
        code = code or f"CS{fake.unique.numerify('####')}"
        prerequisites = overrides.pop('prerequisites', [])
        subject = Subject(
            name=overrides.pop('name', f"Subject {code}"),
            code=code,
            credits=credits,
            department_id=department.id,
            semester=semester,
            academic_year=overrides.pop('academic_year', AcademicYear.SECOND),
            teacher_id=teacher.id if teacher else None,
            **overrides,
        )
        subject.prerequisites = prerequisites
        db_session.add(subject)
        await db_session.commit()
        return subject
    return _make


# =====================================================
# A department with one user of each role
# =====================================================

@pytest_asyncio.fixture
async def department(make_department) -> Department:
    return await make_department(code='CSE', name='Computer Science')


@pytest_asyncio.fixture
async def other_department(make_department) -> Department:
    return await make_department(code='ECE', name='Electronics')


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    return await make_user(UserRole.ADMIN)


@pytest_asyncio.fixture
async def hod_user(make_user, department, db_session) -> User:
    hod = await make_user(UserRole.HOD, department)
    department.hod_id = hod.id
    await db_session.commit()
    return hod


@pytest_asyncio.fixture
async def teacher_user(make_user, department) -> User:
    return await make_user(UserRole.TEACHER, department)


@pytest_asyncio.fixture
async def other_teacher(make_user, department) -> User:
    return await make_user(UserRole.TEACHER, department)


@pytest_asyncio.fixture
async def student_user(make_user, department) -> User:
    return await make_user(UserRole.STUDENT, department)


@pytest_asyncio.fixture
async def other_student(make_user, department) -> User:
    return await make_user(UserRole.STUDENT, department)


@pytest_asyncio.fixture
async def foreign_student(make_user, other_department) -> User:
    return await make_user(UserRole.STUDENT, other_department)


@pytest_asyncio.fixture
async def subject(make_subject, department, teacher_user) -> Subject:
    return await make_subject(department, teacher_user, credits=4, code='CS301')


# =====================================================
# Auth headers
# =====================================================

def headers_for(user: User) -> Dict[str, str]:
    token = create_access_token({'sub': str(user.id), 'role': user.role.value})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def auth_headers() -> Callable[[User], Dict[str, str]]:
    return headers_for


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest.fixture
def hod_headers(hod_user: User) -> dict:
    return headers_for(hod_user)


@pytest.fixture
def teacher_headers(teacher_user: User) -> dict:
    return headers_for(teacher_user)


@pytest.fixture
def student_headers(student_user: User) -> dict:
    return headers_for(student_user)


# =====================================================
# Grades
# =====================================================

@pytest.fixture
def make_grade(db_session: AsyncSession) -> Callable:
    """Insert a grade row directly, derived fields computed by grading"""
    async def _make(student: User, subject: Subject, teacher: User = None,
                    published: bool = True, exam_type: ExamType = ExamType.REGULAR,
                    semester: int = None, published_at: datetime = None, **marks) -> Grade:
        grade = Grade(
            student_id=student.id,
            subject_id=subject.id,
            teacher_id=teacher.id if teacher else subject.teacher_id,
            semester=semester or subject.semester,
            academic_year=subject.academic_year,
            exam_type=exam_type,
            is_published=published,
            published_at=(published_at or datetime.utcnow()) if published else None,
        )
        apply_computation(grade, grade_from_marks(marks))
        db_session.add(grade)
        await db_session.commit()
        return grade
    return _make
