from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from datetime import datetime

from academia.models.user import AcademicYear
from academia.models.subject import SubjectType


class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=20)
    credits: int = Field(..., ge=1, le=10)
    department_id: Optional[str] = Field(None, description="Ignored for HODs, who always create in their own department")
    semester: int = Field(..., ge=1, le=8)
    academic_year: AcademicYear
    subject_type: SubjectType = SubjectType.THEORY
    description: Optional[str] = Field(None, max_length=500)
    teacher_id: Optional[str] = None
    prerequisite_ids: List[str] = []
    max_marks: int = Field(100, ge=50, le=200)
    passing_marks: int = Field(40, ge=30, le=100)

    @field_validator('code')
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode='after')
    def passing_below_max(self):
        if self.passing_marks > self.max_marks:
            raise ValueError("passing_marks cannot exceed max_marks")
        return self


class SubjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    credits: Optional[int] = Field(None, ge=1, le=10)
    semester: Optional[int] = Field(None, ge=1, le=8)
    academic_year: Optional[AcademicYear] = None
    subject_type: Optional[SubjectType] = None
    description: Optional[str] = Field(None, max_length=500)
    teacher_id: Optional[str] = None
    prerequisite_ids: Optional[List[str]] = None
    max_marks: Optional[int] = Field(None, ge=50, le=200)
    passing_marks: Optional[int] = Field(None, ge=30, le=100)
    is_active: Optional[bool] = None

    @field_validator('code')
    @classmethod
    def upper_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v


class AssignTeacherRequest(BaseModel):
    teacher_id: str


class SubjectResponse(BaseModel):
    id: str
    name: str
    code: str
    credits: int
    department_id: str
    semester: int
    academic_year: AcademicYear
    subject_type: SubjectType
    description: Optional[str] = None
    teacher_id: Optional[str] = None
    prerequisite_ids: List[str] = []
    max_marks: int
    passing_marks: int
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
