"""Authentication routes."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hopebridge.database import get_db
from hopebridge.middleware.auth import (
    get_current_user,
    hash_password,
    token_for_user,
    user_context,
    verify_password,
    write_activity_log,
)
from hopebridge.models.user import User
from hopebridge.rbac import UserRole, get_role_permissions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=200)
    password: str = Field(min_length=8)
    department: str | None = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict


def _user_payload(user: User) -> dict:
    data = user.to_dict()
    data["permissions"] = get_role_permissions(user.role).as_flags()
    return data


def _normalize_email(email: str) -> str:
    return email.strip().lower()


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, request: Request, db: AsyncSession = Depends(get_db)):
    email = _normalize_email(body.email)
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user or not user.is_active or not verify_password(body.password, user.password_hash):
        logger.info("Failed login for %s", email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    await write_activity_log(
        db,
        user_context(user),
        "LOGIN",
        entity_type="user",
        entity_id=str(user.id),
        description=f"{user.email} signed in",
        request=request,
    )
    await db.commit()

    return TokenResponse(access_token=token_for_user(user), user=_user_payload(user))


@router.post("/register", status_code=201)
async def register(body: RegisterRequest, request: Request, db: AsyncSession = Depends(get_db)):
    """Self-service sign-up. New accounts always start as ``USER``."""
    email = _normalize_email(body.email)
    existing = await db.execute(select(User).where(User.email == email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(
        name=body.name.strip(),
        email=email,
        password_hash=hash_password(body.password),
        role=UserRole.USER.value,
        department=body.department,
        is_active=True,
        email_verified=False,
    )
    db.add(user)
    await db.flush()

    await write_activity_log(
        db,
        user_context(user),
        "REGISTER",
        entity_type="user",
        entity_id=str(user.id),
        description=f"{email} registered",
        request=request,
    )
    await db.commit()

    return {"access_token": token_for_user(user), "token_type": "bearer", "user": _user_payload(user)}


@router.get("/me")
async def get_me(
    user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(User).where(User.id == user["user_id"]))
    return _user_payload(result.scalar_one())


@router.post("/refresh")
async def refresh_token(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    result = await db.execute(select(User).where(User.id == user["user_id"], User.is_active.is_(True)))
    user_row = result.scalar_one_or_none()
    if not user_row:
        raise HTTPException(status_code=401, detail="User not found")

    return {"access_token": token_for_user(user_row), "token_type": "bearer"}
