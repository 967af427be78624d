from sqlalchemy import (
    Column, String, Boolean, Integer, Text, ForeignKey, Table, UniqueConstraint, Index,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
import enum

from academia.core.database import Base, TimestampMixin, generate_uuid
from academia.models.user import AcademicYear


class SubjectType(str, enum.Enum):
    THEORY = "Theory"
    PRACTICAL = "Practical"
    PROJECT = "Project"
    ELECTIVE = "Elective"


subject_prerequisites = Table(
    "subject_prerequisites",
    Base.metadata,
    Column("subject_id", String(36), ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True),
    Column("prerequisite_id", String(36), ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True),
)


class Subject(TimestampMixin, Base):
    """Course offered by a department in a given semester and year"""
    __tablename__ = "subjects"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False)
    code = Column(String(20), nullable=False, index=True)
    credits = Column(Integer, nullable=False)
    department_id = Column(String(36), ForeignKey("departments.id"), nullable=False, index=True)
    semester = Column(Integer, nullable=False)
    academic_year = Column(SQLEnum(AcademicYear, values_callable=lambda e: [m.value for m in e]),
                           nullable=False)
    subject_type = Column(SQLEnum(SubjectType, values_callable=lambda e: [m.value for m in e]),
                          default=SubjectType.THEORY, nullable=False)
    description = Column(Text, nullable=True)
    teacher_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    max_marks = Column(Integer, default=100, nullable=False)
    passing_marks = Column(Integer, default=40, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    department = relationship("Department", back_populates="subjects")
    prerequisites = relationship(
        "Subject",
        secondary=subject_prerequisites,
        primaryjoin=id == subject_prerequisites.c.subject_id,
        secondaryjoin=id == subject_prerequisites.c.prerequisite_id,
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("code", "department_id", "semester", "academic_year",
                         name="uq_subject_code_scope"),
        Index("ix_subjects_department_semester", "department_id", "semester"),
    )

    @property
    def prerequisite_ids(self):
        return [p.id for p in self.prerequisites]

    def __repr__(self):
        return f"<Subject {self.code} sem={self.semester}>"
