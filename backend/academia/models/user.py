from sqlalchemy import Column, String, Boolean, DateTime, Date, Enum as SQLEnum, Integer, Text, ForeignKey
from sqlalchemy.orm import relationship
import enum

from academia.core.database import Base, TimestampMixin, generate_uuid


class UserRole(str, enum.Enum):
    """User roles"""
    ADMIN = "admin"
    HOD = "hod"
    TEACHER = "teacher"
    STUDENT = "student"


class AcademicYear(str, enum.Enum):
    """Year of study, shared by students and subjects"""
    FIRST = "1st Year"
    SECOND = "2nd Year"
    THIRD = "3rd Year"
    FOURTH = "4th Year"


STAFF_ROLES = (UserRole.HOD, UserRole.TEACHER)


class User(TimestampMixin, Base):
    """User model"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)

    role = Column(SQLEnum(UserRole, values_callable=lambda e: [m.value for m in e]),
                  default=UserRole.STUDENT, nullable=False, index=True)
    department_id = Column(String(36), ForeignKey("departments.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Student fields
    academic_year = Column(SQLEnum(AcademicYear, values_callable=lambda e: [m.value for m in e]),
                           nullable=True)
    semester = Column(Integer, nullable=True)
    roll_number = Column(String(50), unique=True, nullable=True)

    # Staff fields
    employee_id = Column(String(50), unique=True, nullable=True)

    # Profile fields
    phone_number = Column(String(20), nullable=True)
    address = Column(Text, nullable=True)
    date_of_birth = Column(Date, nullable=True)
    joining_date = Column(Date, nullable=True)
    profile_image = Column(Text, nullable=True)

    last_login = Column(DateTime, nullable=True)

    # Relationships
    department = relationship("Department", foreign_keys=[department_id], back_populates="members")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def __repr__(self):
        return f"<User {self.user_id} ({self.role.value})>"
