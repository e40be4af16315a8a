from typing import Any, Dict, Optional
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from app.core.config import settings

logger = logging.getLogger(__name__)

# Tokens are issued by the external auth service; this core only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

ROLES = {"tutor", "student", "admin"}

async def get_current_user(token: str = Depends(oauth2_scheme)) -> Dict[str, Any]:
    """Get current user from token.

    Token shape: { sub: <user id>, role: "tutor" | "student" | "admin" }.
    Returns a minimal identity dict with `id` and `role`.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    except JWTError as jwt_error:
        logger.info(f"JWT decode error: {jwt_error}")
        raise credentials_exception

    subject: Optional[str] = payload.get("sub")
    role: str = payload.get("role") or "student"
    if subject is None or role not in ROLES:
        raise credentials_exception

    return {"id": str(subject), "role": role}

async def get_current_tutor(current_user: dict = Depends(get_current_user)) -> Dict[str, Any]:
    """Require the caller to be a tutor."""
    if current_user["role"] != "tutor":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only tutors can manage availability"
        )
    return current_user
