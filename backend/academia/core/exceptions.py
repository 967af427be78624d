"""
Custom Exceptions for Academia Records
======================================

Services raise these instead of HTTPException so the same code paths can be
exercised from tests and scripts. The API layer translates any AcademiaError
into a JSON error body with the status code carried by the class.

Usage:
    from academia.core.exceptions import NotFoundError, ValidationError

    if not subject:
        raise NotFoundError("Subject", subject_id)

    if marks.theory > 100:
        raise ValidationError("Theory marks must be between 0 and 100", field="marks.theory")
"""

from typing import Optional, Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class AcademiaError(Exception):
    """Base exception for all Academia errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(AcademiaError):
    """Request is not tied to an authenticated, active user"""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, code="AUTH_FAILED")


class TokenExpiredError(AuthenticationError):
    """JWT token has expired"""

    def __init__(self):
        super().__init__("Token has expired")
        self.code = "TOKEN_EXPIRED"


class InvalidTokenError(AuthenticationError):
    """JWT token is invalid"""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)
        self.code = "INVALID_TOKEN"


class AuthorizationError(AcademiaError):
    """Authenticated, but the role or scope does not permit the action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized to perform this action",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="NOT_AUTHORIZED", details=details)


# ============================================
# Resource Errors (404-type)
# ============================================

class NotFoundError(AcademiaError):
    """Referenced entity does not exist"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(AcademiaError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)
        self.field = field

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """First error of a pydantic ValidationError, for bulk row reports"""
        errors = exc.errors()
        if not errors:
            return cls(str(exc))
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        message = first.get("msg", "Invalid value")
        return cls(f"{field}: {message}" if field else message, field=field)


# ============================================
# Conflict Errors (409-type)
# ============================================

class ConflictError(AcademiaError):
    """Unique key already taken, or the entity still has dependents"""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFLICT", details=details)


# ============================================
# Computation Errors
# ============================================

class ComputationError(AcademiaError):
    """Derived value could not be computed. Not expected in normal operation."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message, code="COMPUTATION_ERROR")


# ============================================
# Helpers for API responses
# ============================================

def error_response(error: AcademiaError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }


async def academia_error_handler(request: Request, exc: AcademiaError) -> JSONResponse:
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map every AcademiaError subclass to its status code"""
    app.add_exception_handler(AcademiaError, academia_error_handler)
