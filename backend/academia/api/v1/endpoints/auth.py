from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from academia.core.database import get_db
from academia.core.logging_config import logger, set_user_id
from academia.core.rate_limiter import auth_rate_limit
from academia.core.security import create_user_token
from academia.models.user import User
from academia.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    ResetPasswordRequest,
)
from academia.schemas.common import MessageResponse
from academia.schemas.user import ProfileUpdate, UserCreate, UserResponse
from academia.modules.auth.dependencies import get_current_actor, get_current_user
from academia.services.access_policy import Actor
from academia.services.user_service import UserService


router = APIRouter()


@router.post("/login", response_model=LoginResponse)
@auth_rate_limit()
async def login(
    request: Request,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Login with user ID or email (rate limited)"""
    user = await UserService(db).authenticate(credentials.login, credentials.password)
    set_user_id(user.id)

    return LoginResponse(
        access_token=create_user_token(user),
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Admin creates an account and receives a token for it"""
    user = await UserService(db).create_user(actor, user_data)
    logger.log_auth_event("register", True, login=user.user_id, created_by=actor.id)

    return LoginResponse(
        access_token=create_user_token(user),
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user info"""
    return current_user


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    await UserService(db).change_password(actor, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Update the caller's own profile fields"""
    return await UserService(db).update_profile(actor, body)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    """Admin only"""
    await UserService(db).reset_password(actor, body.user_id, body.new_password)
    return MessageResponse(message=f"Password reset for {body.user_id}")
