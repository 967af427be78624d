from pydantic import BaseModel
from typing import Dict, List, Optional


class GradeEntryResponse(BaseModel):
    subject_id: Optional[str] = None
    subject_code: Optional[str] = None
    subject_name: Optional[str] = None
    grade: Optional[str] = None
    grade_points: float
    credits: int
    total_marks: Optional[float] = None
    semester: int
    academic_year: Optional[str] = None
    exam_type: Optional[str] = None

    class Config:
        from_attributes = True


class SemesterSummaryResponse(BaseModel):
    semester: int
    sgpa: float
    total_credits: int
    total_grade_points: float
    grades: List[GradeEntryResponse]

    class Config:
        from_attributes = True


class CGPAResponse(BaseModel):
    student_id: str
    cgpa: float
    total_credits: int
    grades_count: int
    semester_wise: List[SemesterSummaryResponse]
    overall_grades: List[GradeEntryResponse]

    class Config:
        from_attributes = True


class PerformanceStats(BaseModel):
    total: int = 0
    average_marks: float = 0.0
    average_grade_points: float = 0.0
    highest_marks: float = 0.0
    lowest_marks: float = 0.0
    passing: int = 0
    pass_percentage: float = 0.0


class PerformerEntry(BaseModel):
    student_id: str
    name: str
    roll_number: Optional[str] = None
    total_marks: Optional[float] = None
    grade: Optional[str] = None
    grade_points: Optional[float] = None
    cgpa: Optional[float] = None
    credits: Optional[int] = None


class SubjectPerformanceResponse(BaseModel):
    subject_id: str
    subject_code: str
    subject_name: str
    stats: PerformanceStats
    average_theory: float = 0.0
    average_practical: float = 0.0
    average_internal: float = 0.0
    grade_distribution: Dict[str, int]
    marks_distribution: Dict[str, int]
    top_performers: List[PerformerEntry]
    student_performance: List[PerformerEntry]
    trends: List[Dict]


class DepartmentPerformanceResponse(BaseModel):
    department_id: str
    stats: PerformanceStats
    grade_distribution: Dict[str, int]
    subject_performance: List[Dict]
    student_rankings: List[PerformerEntry]
