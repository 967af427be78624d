from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, Float, Text, ForeignKey, UniqueConstraint, Index,
    Enum as SQLEnum,
)
import enum

from academia.core.database import Base, TimestampMixin, generate_uuid
from academia.models.user import AcademicYear


class ExamType(str, enum.Enum):
    REGULAR = "Regular"
    SUPPLEMENTARY = "Supplementary"
    IMPROVEMENT = "Improvement"


class GradeLetter(str, enum.Enum):
    O = "O"
    A_PLUS = "A+"
    A = "A"
    B_PLUS = "B+"
    B = "B"
    C = "C"
    P = "P"
    F = "F"
    ABSENT = "Ab"


class Grade(TimestampMixin, Base):
    """
    Marks and derived result for one (student, subject, exam type).

    total, grade and grade_points are written only by the grade service from
    grading.grade_from_marks; callers never set them directly.
    """
    __tablename__ = "grades"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    student_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    subject_id = Column(String(36), ForeignKey("subjects.id"), nullable=False, index=True)
    teacher_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    # Marks
    theory_marks = Column(Float, default=0, nullable=False)
    practical_marks = Column(Float, default=0, nullable=False)
    internal_marks = Column(Float, default=0, nullable=False)
    total_marks = Column(Float, default=0, nullable=False)

    # Derived result
    grade = Column(SQLEnum(GradeLetter, values_callable=lambda e: [m.value for m in e]), nullable=False)
    grade_points = Column(Integer, default=0, nullable=False)

    semester = Column(Integer, nullable=False)
    academic_year = Column(SQLEnum(AcademicYear, values_callable=lambda e: [m.value for m in e]),
                           nullable=False)
    exam_type = Column(SQLEnum(ExamType, values_callable=lambda e: [m.value for m in e]),
                       default=ExamType.REGULAR, nullable=False)

    # Publication
    is_published = Column(Boolean, default=False, nullable=False)
    published_at = Column(DateTime, nullable=True)

    remarks = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("student_id", "subject_id", "exam_type", name="uq_grade_student_subject_exam"),
        Index("ix_grades_subject_published", "subject_id", "is_published"),
        Index("ix_grades_student_semester", "student_id", "semester"),
    )

    @property
    def is_absent(self) -> bool:
        return self.grade == GradeLetter.ABSENT

    def __repr__(self):
        return f"<Grade {self.student_id}/{self.subject_id}/{self.exam_type.value} {self.grade.value}>"
