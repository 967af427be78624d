from pydantic import BaseModel, Field, field_validator
from typing import Dict, Optional
from datetime import datetime


def _normalize_code(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip().upper()
    if not v.isalnum():
        raise ValueError("Department code must be alphanumeric")
    return v


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=2, max_length=10)
    description: Optional[str] = Field(None, max_length=500)
    hod_id: Optional[str] = None
    established_year: Optional[int] = Field(None, ge=1800, le=2100)
    total_semesters: int = Field(8, ge=1, le=10)

    @field_validator('code')
    @classmethod
    def upper_code(cls, v: str) -> str:
        return _normalize_code(v)

    @field_validator('name')
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, min_length=2, max_length=10)
    description: Optional[str] = Field(None, max_length=500)
    hod_id: Optional[str] = None
    established_year: Optional[int] = Field(None, ge=1800, le=2100)
    total_semesters: Optional[int] = Field(None, ge=1, le=10)
    is_active: Optional[bool] = None

    @field_validator('code')
    @classmethod
    def upper_code(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_code(v)


class AssignHODRequest(BaseModel):
    hod_id: str


class DepartmentResponse(BaseModel):
    id: str
    name: str
    code: str
    description: Optional[str] = None
    hod_id: Optional[str] = None
    is_active: bool
    established_year: Optional[int] = None
    total_semesters: int
    created_at: datetime

    class Config:
        from_attributes = True


class DepartmentDetail(DepartmentResponse):
    user_counts: Dict[str, int] = {}


class DepartmentStatistics(BaseModel):
    department_id: str
    total_students: int
    total_teachers: int
    total_subjects: int
    students_by_year: Dict[str, int]
    students_by_semester: Dict[str, int]
