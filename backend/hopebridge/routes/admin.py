"""Administration routes --- User management, role assignment, activity log."""
from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hopebridge.database import get_db
from hopebridge.middleware.auth import (
    get_current_user,
    hash_password,
    require_permission,
    write_activity_log,
)
from hopebridge.models.activity import ActivityLog
from hopebridge.models.base import utcnow
from hopebridge.models.user import User
from hopebridge.rbac import (
    ROLE_HIERARCHY,
    VALID_ROLES,
    Permission,
    UserRole,
    can_assign_role,
    parse_role,
    role_summary,
)
from hopebridge.role_validation import (
    get_role_restrictions,
    validate_bulk_role_assignment,
    validate_role_assignment,
    validate_role_transition,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

ROLE_UPDATE = "ROLE_UPDATE"


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=200)
    password: str = Field(min_length=8)
    role: str = UserRole.USER.value
    department: str | None = None


class UserUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    department: str | None = None
    is_active: bool | None = None


class RoleUpdate(BaseModel):
    role: str


class BulkRoleItem(BaseModel):
    user_id: uuid.UUID
    role: str


class BulkRoleUpdate(BaseModel):
    assignments: list[BulkRoleItem] = Field(min_length=1)


def _require_role(value: str) -> UserRole:
    role = parse_role(value)
    if role is None:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid role '{value}'. Valid roles: {', '.join(VALID_ROLES)}",
        )
    return role


async def _get_user_or_404(db: AsyncSession, user_id: uuid.UUID) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    target = result.scalar_one_or_none()
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    return target


def _can_manage_account(user: dict, target: User) -> bool:
    """Account state (active flag, login email) of another user is editable
    only by a role that could assign that user's role."""
    if target.id == user["user_id"] or parse_role(user["role"]) is UserRole.SUPER_ADMIN:
        return True
    return can_assign_role(user["role"], target.role)


# ---------------------------------------------------------------------------
# USER MANAGEMENT
# ---------------------------------------------------------------------------


@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    role: str | None = Query(None),
    is_active: bool | None = Query(None),
    search: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(Permission.MANAGE_USERS)),
):
    """List users, optionally filtered by role, status or name/email."""
    conditions = []
    if role:
        conditions.append(User.role == role)
    if is_active is not None:
        conditions.append(User.is_active.is_(is_active))
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

    total = (
        await db.execute(select(func.count()).select_from(User).where(*conditions))
    ).scalar_one()

    result = await db.execute(
        select(User)
        .where(*conditions)
        .order_by(User.name)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    items = [u.to_dict() for u in result.scalars().all()]

    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/users/{user_id}")
async def get_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(Permission.MANAGE_USERS)),
):
    target = await _get_user_or_404(db, user_id)
    data = target.to_dict()
    parsed = parse_role(target.role)
    data["permissions"] = role_summary(parsed)["permissions"] if parsed else {}
    return data


@router.post("/users", status_code=201)
async def create_user(
    body: UserCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(Permission.MANAGE_USERS)),
):
    """Create a user with an initial role the caller is allowed to assign."""
    role = _require_role(body.role)

    check = validate_role_assignment(user["role"], role)
    if not check.is_valid:
        raise HTTPException(status_code=403, detail=check.error)

    email = body.email.strip().lower()
    existing = await db.execute(select(User).where(User.email == email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Email already registered")

    new_user = User(
        name=body.name.strip(),
        email=email,
        password_hash=hash_password(body.password),
        role=role.value,
        department=body.department,
        is_active=True,
        email_verified=False,
        updated_by=user["email"],
    )
    db.add(new_user)
    await db.flush()

    await write_activity_log(
        db,
        user,
        "USER_CREATE",
        entity_type="user",
        entity_id=str(new_user.id),
        description=f"Created user {email} as {role.value}",
        details={"email": email, "role": role.value},
        request=request,
    )

    await db.commit()
    return new_user.to_dict()


@router.put("/users/{user_id}")
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(Permission.MANAGE_USERS)),
):
    """Update profile fields. Roles change only through the role endpoint."""
    target = await _get_user_or_404(db, user_id)

    if (body.is_active is not None or body.email is not None) and not _can_manage_account(user, target):
        logger.warning(
            "Account change denied: %s (%s) -> %s (%s)",
            user["email"], user["role"], target.email, target.role,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role '{user['role']}' cannot change account status of a '{target.role}' user",
        )

    changes = {}

    if body.name is not None:
        changes["name"] = body.name
        target.name = body.name

    if body.email is not None:
        email = body.email.strip().lower()
        if email != target.email:
            clash = await db.execute(select(User).where(User.email == email))
            if clash.scalar_one_or_none():
                raise HTTPException(status_code=409, detail="Email already registered")
        changes["email"] = email
        target.email = email

    if body.department is not None:
        changes["department"] = body.department
        target.department = body.department

    if body.is_active is not None:
        if not body.is_active and target.id == user["user_id"]:
            raise HTTPException(status_code=400, detail="Cannot deactivate your own account")
        changes["is_active"] = body.is_active
        target.is_active = body.is_active

    target.updated_by = user["email"]
    target.updated_at = utcnow()

    await write_activity_log(
        db,
        user,
        "USER_UPDATE",
        entity_type="user",
        entity_id=str(user_id),
        details=changes,
        request=request,
    )

    await db.commit()
    return target.to_dict()


# ---------------------------------------------------------------------------
# ROLE ASSIGNMENT
# ---------------------------------------------------------------------------


@router.patch("/users/{user_id}/role")
async def update_user_role(
    user_id: uuid.UUID,
    body: RoleUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(Permission.MANAGE_USERS)),
):
    """Assign a new role. The stored role is exactly the requested value."""
    new_role = _require_role(body.role)
    target = await _get_user_or_404(db, user_id)
    previous_role = target.role

    check = validate_role_transition(
        previous_role,
        new_role,
        user["role"],
        target_user_id=str(target.id),
        assigner_user_id=str(user["user_id"]),
    )
    if not check.is_valid:
        logger.warning(
            "Role change denied: %s (%s) -> %s for %s: %s",
            user["email"], user["role"], new_role.value, target.email, check.error,
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=check.error)

    target.role = new_role.value
    target.updated_by = user["email"]
    target.updated_at = utcnow()

    await write_activity_log(
        db,
        user,
        ROLE_UPDATE,
        entity_type="user",
        entity_id=str(target.id),
        description=f"Changed role of {target.email} from {previous_role} to {new_role.value}",
        details={
            "previous_role": previous_role,
            "new_role": new_role.value,
            "warning": check.warning,
        },
        request=request,
    )
    await db.commit()

    # Re-read so the response reflects what was persisted.
    db.expire(target)
    saved = await _get_user_or_404(db, user_id)
    return {"user": saved.to_dict(), "warning": check.warning}


@router.get("/users/{user_id}/role")
async def get_user_role(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(Permission.MANAGE_USERS)),
):
    """Current role plus the ten most recent role changes."""
    target = await _get_user_or_404(db, user_id)

    result = await db.execute(
        select(ActivityLog)
        .where(ActivityLog.action == ROLE_UPDATE, ActivityLog.entity_id == str(user_id))
        .order_by(ActivityLog.created_at.desc())
        .limit(10)
    )

    return {
        "user": target.to_dict(),
        "role_history": [e.to_dict() for e in result.scalars().all()],
    }


@router.post("/users/roles/bulk")
async def bulk_update_roles(
    body: BulkRoleUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(Permission.MANAGE_USERS)),
):
    """Assign several roles at once; nothing is written unless all pass."""
    assignments = [(item.user_id, _require_role(item.role)) for item in body.assignments]

    check = validate_bulk_role_assignment(
        user["role"],
        [(str(uid), role) for uid, role in assignments],
        assigner_user_id=str(user["user_id"]),
    )
    if not check.is_valid:
        raise HTTPException(status_code=403, detail=check.error)

    ids = [uid for uid, _ in assignments]
    result = await db.execute(select(User).where(User.id.in_(ids)))
    users = {u.id: u for u in result.scalars().all()}
    missing = [str(uid) for uid in ids if uid not in users]
    if missing:
        raise HTTPException(status_code=404, detail=f"Users not found: {', '.join(missing)}")

    now = utcnow()
    updated = []
    for uid, role in assignments:
        target = users[uid]
        previous_role = target.role
        target.role = role.value
        target.updated_by = user["email"]
        target.updated_at = now
        await write_activity_log(
            db,
            user,
            ROLE_UPDATE,
            entity_type="user",
            entity_id=str(uid),
            description=f"Changed role of {target.email} from {previous_role} to {role.value}",
            details={"previous_role": previous_role, "new_role": role.value, "bulk": True},
            request=request,
        )
        updated.append({"user_id": str(uid), "previous_role": previous_role, "role": role.value})

    await db.commit()
    return {"updated": updated, "warning": check.warning}


# ---------------------------------------------------------------------------
# ROLES
# ---------------------------------------------------------------------------


@router.get("/roles")
async def list_roles(
    user: dict = Depends(require_permission(Permission.MANAGE_USERS)),
):
    """List all roles in hierarchy order with their permission flags."""
    return {"roles": [role_summary(role) for role in ROLE_HIERARCHY]}


@router.get("/roles/restrictions")
async def role_restrictions(user: dict = Depends(get_current_user)):
    return get_role_restrictions(user["role"])


# ---------------------------------------------------------------------------
# ACTIVITY LOG
# ---------------------------------------------------------------------------


@router.get("/activity")
async def list_activity(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    action: str | None = Query(None),
    username: str | None = Query(None),
    entity_type: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_permission(Permission.VIEW_REPORTS, Permission.MANAGE_USERS)),
):
    """Paginated activity trail."""
    stmt = select(ActivityLog)
    count_stmt = select(func.count()).select_from(ActivityLog)

    if action:
        stmt = stmt.where(ActivityLog.action == action)
        count_stmt = count_stmt.where(ActivityLog.action == action)
    if username:
        stmt = stmt.where(ActivityLog.username == username)
        count_stmt = count_stmt.where(ActivityLog.username == username)
    if entity_type:
        stmt = stmt.where(ActivityLog.entity_type == entity_type)
        count_stmt = count_stmt.where(ActivityLog.entity_type == entity_type)

    total = (await db.execute(count_stmt)).scalar()

    offset = (page - 1) * page_size
    stmt = stmt.order_by(ActivityLog.created_at.desc()).offset(offset).limit(page_size)
    result = await db.execute(stmt)

    return {
        "items": [e.to_dict() for e in result.scalars().all()],
        "total": total,
        "page": page,
        "page_size": page_size,
    }
