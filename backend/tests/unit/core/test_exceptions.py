"""
Unit Tests for Error Types and the JSON Error Shape
"""
import pytest
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from academia.core.exceptions import (
    AcademiaError,
    AuthenticationError,
    AuthorizationError,
    ComputationError,
    ConflictError,
    NotFoundError,
    ValidationError,
    error_response,
)


class _Marks(BaseModel):
    theory: float = Field(..., ge=0)


class TestStatusCodes:

    @pytest.mark.parametrize("error,status,code", [
        (AuthenticationError(), 401, "AUTH_FAILED"),
        (AuthorizationError(), 403, "NOT_AUTHORIZED"),
        (NotFoundError("Subject", "s1"), 404, "SUBJECT_NOT_FOUND"),
        (ValidationError("bad", field="marks.theory"), 400, "VALIDATION_ERROR"),
        (ConflictError("taken"), 409, "CONFLICT"),
        (ComputationError("boom"), 500, "COMPUTATION_ERROR"),
    ])
    def test_mapping(self, error, status, code):
        assert isinstance(error, AcademiaError)
        assert error.status_code == status
        assert error.code == code


class TestErrorShape:

    def test_error_response(self):
        body = error_response(NotFoundError("Grade", "g1"))

        assert body == {
            "success": False,
            "error": {
                "code": "GRADE_NOT_FOUND",
                "message": "Grade with ID 'g1' not found",
                "details": {"resource_type": "Grade", "resource_id": "g1"},
            },
        }

    def test_validation_error_carries_field(self):
        error = ValidationError("Theory marks out of range", field="marks.theory")

        assert error.to_dict()["details"] == {"field": "marks.theory"}

    def test_validation_error_without_field(self):
        assert ValidationError("Invalid").details == {}


class TestFromPydantic:

    def test_first_error_with_location(self):
        with pytest.raises(PydanticValidationError) as exc:
            _Marks(theory=-1)

        error = ValidationError.from_pydantic(exc.value)

        assert error.field == "theory"
        assert error.message.startswith("theory: ")

    def test_missing_field(self):
        with pytest.raises(PydanticValidationError) as exc:
            _Marks.model_validate({})

        assert ValidationError.from_pydantic(exc.value).field == "theory"
