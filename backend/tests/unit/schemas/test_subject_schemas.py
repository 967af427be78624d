"""
Unit Tests for Subject, Department and Grade Schemas
"""
import pytest
from pydantic import ValidationError

from academia.models import ExamType, SubjectType
from academia.schemas.department import DepartmentCreate
from academia.schemas.grade import GradeUpsert, PublishRequest
from academia.schemas.subject import SubjectCreate, SubjectUpdate


class TestSubjectCreate:

    def test_defaults_and_code_upper(self):
        subject = SubjectCreate(name="Networks", code=" cs501 ", credits=4, semester=5,
                                academic_year="3rd Year")

        assert subject.code == "CS501"
        assert subject.subject_type == SubjectType.THEORY
        assert subject.max_marks == 100
        assert subject.passing_marks == 40
        assert subject.prerequisite_ids == []

    @pytest.mark.parametrize("credits", [0, 11])
    def test_credit_range(self, credits):
        with pytest.raises(ValidationError):
            SubjectCreate(name="X", code="X1", credits=credits, semester=1, academic_year="1st Year")

    def test_passing_above_max(self):
        with pytest.raises(ValidationError, match="passing_marks"):
            SubjectCreate(name="X", code="X1", credits=3, semester=1, academic_year="1st Year",
                          max_marks=50, passing_marks=60)

    def test_update_code_upper(self):
        assert SubjectUpdate(code="ab12").code == "AB12"


class TestDepartmentCreate:

    def test_code_normalized(self):
        assert DepartmentCreate(name=" Physics ", code=" phy ").code == "PHY"

    def test_code_must_be_alphanumeric(self):
        with pytest.raises(ValidationError):
            DepartmentCreate(name="Physics", code="PH-Y")


class TestGradeSchemas:

    def test_upsert_defaults(self):
        data = GradeUpsert(student_id="s1", subject_id="sub1")

        assert data.exam_type == ExamType.REGULAR
        assert data.semester is None
        assert data.is_absent is False
        assert data.marks.theory is None

    def test_marks_range_not_checked_in_schema(self):
        """Range checks happen during grade computation so the error names marks.<field>"""
        data = GradeUpsert(student_id="s1", subject_id="sub1", marks={"theory": 250})
        assert data.marks.theory == 250

    def test_unknown_exam_type(self):
        with pytest.raises(ValidationError):
            GradeUpsert(student_id="s1", subject_id="sub1", exam_type="Midterm")

    def test_publish_request_needs_ids(self):
        with pytest.raises(ValidationError):
            PublishRequest(grade_ids=[])
