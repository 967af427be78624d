from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional
from datetime import date, datetime

from academia.core.config import settings
from academia.models.user import UserRole, AcademicYear


class UserCreate(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=settings.MIN_PASSWORD_LENGTH)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole
    department_id: Optional[str] = None

    # Student Details
    academic_year: Optional[AcademicYear] = None
    semester: Optional[int] = Field(None, ge=1, le=8)
    roll_number: Optional[str] = None

    # Staff Details
    employee_id: Optional[str] = None

    phone_number: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    joining_date: Optional[date] = None

    @field_validator('user_id', 'roll_number', 'employee_id')
    @classmethod
    def strip_identifiers(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        return v or None

    @field_validator('email')
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

    @model_validator(mode='after')
    def validate_role_fields(self):
        """Department is required except for admins; role-specific fields per role"""
        if self.role != UserRole.ADMIN and not self.department_id:
            raise ValueError("Department is required for non-admin users")

        if self.role == UserRole.STUDENT:
            missing = []
            if not self.academic_year:
                missing.append('academic_year')
            if not self.semester:
                missing.append('semester')
            if not self.roll_number:
                missing.append('roll_number')
            if missing:
                raise ValueError(f"Required fields for students: {', '.join(missing)}")

        if self.role in (UserRole.TEACHER, UserRole.HOD) and not self.employee_id:
            raise ValueError("Employee ID is required for teachers and HODs")

        return self


class UserUpdate(BaseModel):
    """Admin update; every field optional"""
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[UserRole] = None
    department_id: Optional[str] = None
    academic_year: Optional[AcademicYear] = None
    semester: Optional[int] = Field(None, ge=1, le=8)
    roll_number: Optional[str] = None
    employee_id: Optional[str] = None
    is_active: Optional[bool] = None
    phone_number: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    joining_date: Optional[date] = None
    profile_image: Optional[str] = None


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own record"""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    profile_image: Optional[str] = None


PROFILE_FIELDS = frozenset(ProfileUpdate.model_fields)


class UserSummary(BaseModel):
    id: str
    user_id: str
    first_name: str
    last_name: str
    role: UserRole
    roll_number: Optional[str] = None
    employee_id: Optional[str] = None

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: str
    user_id: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    role: UserRole
    department_id: Optional[str] = None
    academic_year: Optional[AcademicYear] = None
    semester: Optional[int] = None
    roll_number: Optional[str] = None
    employee_id: Optional[str] = None
    is_active: bool
    phone_number: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    joining_date: Optional[date] = None
    profile_image: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
