"""Authentication and authorization middleware for the Hope Bridge dashboard.

Provides:
- Password hashing (bcrypt)
- JWT creation / validation
- ``get_current_user()`` dependency
- ``require_permission()`` over the role permission flags
- Activity-log helper
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hopebridge.config import settings
from hopebridge.database import get_db
from hopebridge.rbac import has_permission, parse_permission

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain: str, hashed: str) -> bool:
    """Compare a plain-text password against a bcrypt hash."""
    return _pwd_context.verify(plain, hashed)


def hash_password(plain: str) -> str:
    """Return the bcrypt hash of a plain-text password."""
    return _pwd_context.hash(plain)


# ---------------------------------------------------------------------------
# JWT helpers
# ---------------------------------------------------------------------------


def create_access_token(data: dict[str, Any]) -> str:
    """Create a signed JWT containing *sub* (email), *role*, *user_id* and *exp*."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    to_encode.update({"exp": expire})

    # UUIDs are not JSON-serialisable.
    if "user_id" in to_encode and not isinstance(to_encode["user_id"], str):
        to_encode["user_id"] = str(to_encode["user_id"])

    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def token_for_user(user_row) -> str:
    return create_access_token({
        "sub": user_row.email,
        "role": user_row.role,
        "user_id": user_row.id,
    })


# ---------------------------------------------------------------------------
# OAuth2 scheme (tells Swagger UI where the login endpoint is)
# ---------------------------------------------------------------------------

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

# ---------------------------------------------------------------------------
# Current-user dependency
# ---------------------------------------------------------------------------


def user_context(user) -> dict[str, Any]:
    """The dict every route receives for the authenticated caller."""
    return {
        "user_id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "department": user.department,
    }


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Decode the JWT, look up the user in the ``users`` table, and return a
    dict describing the authenticated user.

    The role comes from the database row, not from the token, so a role
    change takes effect on the next request.

    Raises ``HTTPException(401)`` when the token is invalid or the user cannot
    be found, ``HTTPException(403)`` when the account is deactivated.
    """
    from hopebridge.models.user import User

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
        raw_id: str | None = payload.get("user_id")
        if raw_id is None:
            raise credentials_exception
        user_id = uuid.UUID(raw_id)
    except (JWTError, ValueError):
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user: User | None = result.scalar_one_or_none()

    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user_context(user)


# ---------------------------------------------------------------------------
# Permission-checking dependency factory
# ---------------------------------------------------------------------------


def require_permission(*permissions: str):
    """Return a FastAPI dependency that ensures the authenticated user's role
    holds ALL of the specified permission flags.

    Usage::

        @router.post("", status_code=201)
        async def send_message(
            body: MessageCreate,
            db: AsyncSession = Depends(get_db),
            user: dict = Depends(require_permission(Permission.SEND_MESSAGES)),
        ):
            ...
    """
    required = [parse_permission(p) for p in permissions]
    if None in required:
        raise ValueError(f"Unknown permission flag in {permissions!r}")

    async def _check_permission(
        current_user: dict[str, Any] = Depends(get_current_user),
    ) -> dict[str, Any]:
        missing = [p.value for p in required if not has_permission(current_user["role"], p)]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permissions: {', '.join(sorted(missing))}.",
            )
        return current_user

    return _check_permission


# ---------------------------------------------------------------------------
# Activity-log helper
# ---------------------------------------------------------------------------


def client_ip(request: Request | None) -> str | None:
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def write_activity_log(
    db: AsyncSession,
    user: dict[str, Any] | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    description: str | None = None,
    details: dict | None = None,
    request: Request | None = None,
) -> None:
    """Add an ``activity_log`` row to the current transaction."""
    from hopebridge.models.activity import ActivityLog

    user_id = None
    username = None
    role = None
    if user:
        uid = user.get("user_id")
        if uid:
            user_id = uid if isinstance(uid, uuid.UUID) else uuid.UUID(str(uid))
        username = user.get("email")
        role = user.get("role")

    entry = ActivityLog(
        user_id=user_id,
        username=username,
        user_role=role,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
        details=details,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent") if request else None,
    )
    db.add(entry)
    await db.flush()
