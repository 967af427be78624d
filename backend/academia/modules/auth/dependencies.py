from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional

from academia.core.database import get_db
from academia.core.exceptions import AuthenticationError
from academia.core.logging_config import set_user_id
from academia.core.security import access_token_subject, security
from academia.models.user import User
from academia.services.access_policy import Actor


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user"""

    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")

    user_id = access_token_subject(credentials.credentials)

    result = await db.execute(
        select(User).where(User.id == user_id)
    )
    user = result.scalar_one_or_none()

    # Unknown and deactivated accounts are indistinguishable to the caller
    if not user or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    set_user_id(user.id)
    request.state.user_id = user.id
    return user


async def get_current_actor(
    current_user: User = Depends(get_current_user)
) -> Actor:
    """The explicit actor every service call receives"""
    return Actor.from_user(current_user)
