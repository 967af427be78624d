from pydantic import BaseModel, Field

from academia.core.config import settings
from academia.schemas.user import UserResponse


class LoginRequest(BaseModel):
    login: str = Field(..., min_length=1, description="User ID or email")
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=settings.MIN_PASSWORD_LENGTH)


class ResetPasswordRequest(BaseModel):
    user_id: str = Field(..., description="Login ID of the user")
    new_password: str = Field(..., min_length=settings.MIN_PASSWORD_LENGTH)
