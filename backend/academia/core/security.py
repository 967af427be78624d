"""
Password hashing and access tokens.

Tokens carry the user's primary key as `sub` and the role as a hint for
clients; authorization always re-reads the role from the database.
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, ExpiredSignatureError, jwt
import bcrypt
from fastapi.security import HTTPBearer

from academia.core.config import settings
from academia.core.exceptions import InvalidTokenError, TokenExpiredError

ACCESS_TOKEN_TYPE = "access"
BCRYPT_MAX_BYTES = 72

# Missing credentials are reported by the auth dependency, not by HTTPBearer
security = HTTPBearer(auto_error=False)


def _password_bytes(password: str) -> bytes:
    return password.encode('utf-8')[:BCRYPT_MAX_BYTES]


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode('utf-8'))


def get_password_hash(password: str) -> str:
    """Hash with BCRYPT_ROUNDS; input beyond 72 bytes is ignored by bcrypt anyway"""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_password_bytes(password), salt).decode('utf-8')


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {**data, "exp": datetime.utcnow() + lifetime, "type": ACCESS_TOKEN_TYPE}
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_user_token(user) -> str:
    """Access token for a stored user"""
    return create_access_token({"sub": str(user.id), "role": user.role.value})


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise InvalidTokenError("Could not validate credentials")


def access_token_subject(token: str) -> str:
    """Validate an access token and return the user id it was issued for"""
    payload = decode_token(token)

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise InvalidTokenError("Invalid token type")

    subject = payload.get("sub")
    if not subject:
        raise InvalidTokenError("Invalid token payload")
    return subject
