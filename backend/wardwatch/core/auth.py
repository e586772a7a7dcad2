"""
Caller authentication using JWT bearer tokens.

Tokens are issued by the main municipal backend; this service only verifies
them and reads the caller id and role from the claims.
"""

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from wardwatch.core.config import settings

logger = structlog.get_logger(__name__)

security = HTTPBearer(auto_error=False)


class CallerRole(str, enum.Enum):
    """Roles carried in the token ``role`` claim."""
    ADMIN = "admin"
    EO = "eo"
    SUPERVISOR = "supervisor"
    CLERK = "clerk"


@dataclass(frozen=True)
class Caller:
    id: int
    role: CallerRole
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == CallerRole.ADMIN

    @property
    def is_eo(self) -> bool:
        return self.role == CallerRole.EO


def _build_dev_caller() -> Caller:
    """Return a mock admin caller when auth is disabled."""
    return Caller(id=0, role=CallerRole.ADMIN, name="Development Admin")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Used by operational scripts and tests; production tokens come from the
    main backend signed with the same secret.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """
    Verify and decode a JWT token.

    Returns:
        dict: Token payload if valid, None otherwise
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning("JWT verification failed", error=str(e))
        return None


def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Caller:
    """
    Resolve the caller from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    if settings.AUTH_DISABLED:
        return _build_dev_caller()

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    payload = verify_token(credentials.credentials)
    if payload is None:
        raise credentials_exception

    try:
        caller_id = int(payload["sub"])
        role = CallerRole(str(payload["role"]).lower())
    except (KeyError, TypeError, ValueError):
        raise credentials_exception

    return Caller(id=caller_id, role=role, name=payload.get("name"))


def require_alert_viewer(caller: Caller = Depends(get_current_caller)) -> Caller:
    """Admins see every alert, EOs see the alerts routed to them."""
    if caller.role not in (CallerRole.ADMIN, CallerRole.EO):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation requires admin or EO role",
        )
    return caller


def require_admin(caller: Caller = Depends(get_current_caller)) -> Caller:
    if not caller.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation requires admin privileges",
        )
    return caller
