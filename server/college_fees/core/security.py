"""
college_fees/core/security.py
Identity & role context: bearer token -> (user, role, department)

Tokens are issued by the college auth service; this module only decodes
them. The fee core trusts the resolved context and never accepts a
caller-supplied role or department.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from college_fees.core.config import settings
from college_fees.core.errors import AuthenticationFailed, Forbidden
from college_fees.models.domain import ActorContext, UserRole
from college_fees.services.scope import require_department
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def create_access_token(
    user_id: str,
    role: UserRole,
    department_id: Optional[str] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create JWT access token (service tooling and tests)"""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {
        "sub": user_id,
        "role": role.value,
        "department_id": department_id,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> ActorContext:
    """Verify and decode JWT token"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.error(f"JWT verification failed: {e}")
        raise AuthenticationFailed("Could not validate credentials")

    user_id = payload.get("sub")
    role = payload.get("role")
    if user_id is None or role is None:
        raise AuthenticationFailed("Invalid token payload")

    try:
        return ActorContext(
            user_id=user_id,
            role=UserRole(role),
            department_id=payload.get("department_id"),
        )
    except ValueError:
        raise AuthenticationFailed(f"Unknown role '{role}'")


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> ActorContext:
    """Get current authenticated actor from token"""
    if credentials is None:
        raise AuthenticationFailed("Not authenticated")
    return verify_token(credentials.credentials)


# Role-based dependencies

async def require_admin(actor: ActorContext = Depends(get_current_actor)) -> ActorContext:
    """Require administrator role"""
    if actor.role != UserRole.ADMINISTRATOR:
        raise Forbidden("Administrator access required")
    return actor


async def require_hod(actor: ActorContext = Depends(get_current_actor)) -> ActorContext:
    """Require department head role with an assigned department"""
    if actor.role != UserRole.DEPARTMENT_HEAD:
        raise Forbidden("Department head access required")
    require_department(actor)
    return actor


async def require_faculty(actor: ActorContext = Depends(get_current_actor)) -> ActorContext:
    """Require faculty role"""
    if actor.role != UserRole.FACULTY:
        raise Forbidden("Faculty access required")
    return actor


async def require_student(actor: ActorContext = Depends(get_current_actor)) -> ActorContext:
    """Require student role"""
    if actor.role != UserRole.STUDENT:
        raise Forbidden("Student access required")
    return actor
