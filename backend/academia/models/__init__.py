# Re-export all models for convenient imports
from academia.models.user import User, UserRole, AcademicYear, STAFF_ROLES
from academia.models.department import Department
from academia.models.subject import Subject, SubjectType, subject_prerequisites
from academia.models.grade import Grade, GradeLetter, ExamType

__all__ = [
    # User
    "User",
    "UserRole",
    "AcademicYear",
    "STAFF_ROLES",
    # Department
    "Department",
    # Subject
    "Subject",
    "SubjectType",
    "subject_prerequisites",
    # Grade
    "Grade",
    "GradeLetter",
    "ExamType",
]
