from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from academia.models.user import AcademicYear
from academia.models.grade import ExamType, GradeLetter


class MarksInput(BaseModel):
    """
    Raw marks. Range checks live in grading.grade_from_marks so API and
    bulk paths report the same field-level error.
    """
    theory: Optional[float] = None
    practical: Optional[float] = None
    internal: Optional[float] = None


class GradeUpsert(BaseModel):
    student_id: str
    subject_id: str
    marks: MarksInput = MarksInput()
    exam_type: ExamType = ExamType.REGULAR
    semester: Optional[int] = Field(None, ge=1, le=8, description="Defaults to the subject's semester")
    academic_year: Optional[AcademicYear] = Field(None, description="Defaults to the subject's academic year")
    remarks: Optional[str] = Field(None, max_length=500)
    is_absent: bool = False


class GradeUpdate(BaseModel):
    marks: Optional[MarksInput] = None
    remarks: Optional[str] = Field(None, max_length=500)
    is_published: Optional[bool] = None
    is_absent: Optional[bool] = None


class PublishRequest(BaseModel):
    grade_ids: List[str] = Field(..., min_length=1)


class GradeResponse(BaseModel):
    id: str
    student_id: str
    subject_id: str
    teacher_id: str
    theory_marks: float
    practical_marks: float
    internal_marks: float
    total_marks: float
    grade: GradeLetter
    grade_points: int
    semester: int
    academic_year: AcademicYear
    exam_type: ExamType
    is_published: bool
    published_at: Optional[datetime] = None
    remarks: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GradeUpsertResponse(BaseModel):
    created: bool
    grade: GradeResponse


class PublishResponse(BaseModel):
    published: int
    published_at: datetime
