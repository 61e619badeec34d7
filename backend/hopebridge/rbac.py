"""
RBAC Permission Registry — Hope Bridge operations dashboard

Defines the canonical role-to-permission mapping. Every role maps to exactly
one fixed set of permission flags; there are no per-user overrides.

Permission flags use the camelCase names the dashboard front-end expects
(``canManageUsers``, ``canAssignTasks``, ...).
"""
from __future__ import annotations

import dataclasses
import enum


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


class UserRole(str, enum.Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    GENERAL_MANAGER = "GENERAL_MANAGER"
    PROGRAM_MANAGER = "PROGRAM_MANAGER"
    PROJECT_COORDINATOR = "PROJECT_COORDINATOR"
    HR = "HR"
    FINANCE = "FINANCE"
    PROCUREMENT = "PROCUREMENT"
    STOREKEEPER = "STOREKEEPER"
    ME_OFFICER = "ME_OFFICER"
    FIELD_OFFICER = "FIELD_OFFICER"
    ACCOUNTANT = "ACCOUNTANT"
    USER = "USER"


# ---------------------------------------------------------------------------
# Permission flags
# ---------------------------------------------------------------------------


class Permission(str, enum.Enum):
    MANAGE_USERS = "canManageUsers"
    ASSIGN_ROLES = "canAssignRoles"
    CREATE_TASKS = "canCreateTasks"
    ASSIGN_TASKS = "canAssignTasks"
    VIEW_ALL_TASKS = "canViewAllTasks"
    SEND_MESSAGES = "canSendMessages"
    RECEIVE_MESSAGES = "canReceiveMessages"
    MANAGE_PROJECTS = "canManageProjects"
    MANAGE_CONTENT = "canManageContent"
    MANAGE_FINANCE = "canManageFinance"
    MANAGE_HR = "canManageHR"
    MANAGE_PROCUREMENT = "canManageProcurement"
    MANAGE_INVENTORY = "canManageInventory"
    VIEW_ANALYTICS = "canViewAnalytics"
    VIEW_REPORTS = "canViewReports"

    @property
    def attr(self) -> str:
        """Attribute name on ``RolePermissions`` (``can_manage_users``)."""
        return "can_" + self.name.lower()


@dataclasses.dataclass(frozen=True)
class RolePermissions:
    """Fixed-shape record of permission flags for one role."""

    can_manage_users: bool = False
    can_assign_roles: bool = False
    can_create_tasks: bool = False
    can_assign_tasks: bool = False
    can_view_all_tasks: bool = False
    can_send_messages: bool = False
    can_receive_messages: bool = False
    can_manage_projects: bool = False
    can_manage_content: bool = False
    can_manage_finance: bool = False
    can_manage_hr: bool = False
    can_manage_procurement: bool = False
    can_manage_inventory: bool = False
    can_view_analytics: bool = False
    can_view_reports: bool = False

    def allows(self, permission: Permission) -> bool:
        return getattr(self, permission.attr)

    def as_flags(self) -> dict[str, bool]:
        """Return ``{"canManageUsers": bool, ...}`` in flag declaration order."""
        return {p.value: self.allows(p) for p in Permission}

    def granted(self) -> list[str]:
        return [p.value for p in Permission if self.allows(p)]


_ALL = RolePermissions(**{p.attr: True for p in Permission})

# Every operational role shares this baseline; the role-specific
# "manage" flag is added on top.
_STAFF = dict(
    can_create_tasks=True,
    can_assign_tasks=True,
    can_send_messages=True,
    can_receive_messages=True,
    can_view_analytics=True,
    can_view_reports=True,
)


# ---------------------------------------------------------------------------
# Role → Permissions mapping (source of truth)
# ---------------------------------------------------------------------------

ROLE_PERMISSIONS: dict[UserRole, RolePermissions] = {
    # ── Super Admin ──────────────────────────────────────────────────────
    # Everything, including user and role management.
    UserRole.SUPER_ADMIN: _ALL,

    # ── Admin ────────────────────────────────────────────────────────────
    # Operations and content, no user/role management or finance/HR.
    UserRole.ADMIN: RolePermissions(
        **_STAFF,
        can_view_all_tasks=True,
        can_manage_projects=True,
        can_manage_content=True,
    ),

    # ── General Manager ──────────────────────────────────────────────────
    # Same flags as Super Admin; assignment is limited by the hierarchy.
    UserRole.GENERAL_MANAGER: _ALL,

    # ── Program Manager ──────────────────────────────────────────────────
    UserRole.PROGRAM_MANAGER: RolePermissions(
        **_STAFF,
        can_view_all_tasks=True,
        can_manage_projects=True,
    ),

    # ── Project Coordinator ──────────────────────────────────────────────
    UserRole.PROJECT_COORDINATOR: RolePermissions(**_STAFF, can_manage_projects=True),

    # ── Department roles ─────────────────────────────────────────────────
    # HR may manage user records but never assign roles.
    UserRole.HR: RolePermissions(**_STAFF, can_manage_users=True, can_manage_hr=True),
    UserRole.FINANCE: RolePermissions(**_STAFF, can_manage_finance=True),
    UserRole.PROCUREMENT: RolePermissions(**_STAFF, can_manage_procurement=True),
    UserRole.STOREKEEPER: RolePermissions(**_STAFF, can_manage_inventory=True),
    UserRole.ME_OFFICER: RolePermissions(**_STAFF),
    UserRole.FIELD_OFFICER: RolePermissions(**_STAFF),
    UserRole.ACCOUNTANT: RolePermissions(**_STAFF, can_manage_finance=True),

    # ── Basic user ───────────────────────────────────────────────────────
    # Messaging only.
    UserRole.USER: RolePermissions(can_send_messages=True, can_receive_messages=True),
}

_NO_PERMISSIONS = RolePermissions()


ROLE_DISPLAY_NAMES: dict[UserRole, str] = {
    UserRole.SUPER_ADMIN: "Super Admin",
    UserRole.ADMIN: "Admin",
    UserRole.GENERAL_MANAGER: "General Manager",
    UserRole.PROGRAM_MANAGER: "Program Manager",
    UserRole.PROJECT_COORDINATOR: "Project Coordinator",
    UserRole.HR: "HR",
    UserRole.FINANCE: "Finance",
    UserRole.PROCUREMENT: "Procurement",
    UserRole.STOREKEEPER: "Storekeeper",
    UserRole.ME_OFFICER: "M&E",
    UserRole.FIELD_OFFICER: "Field Officer",
    UserRole.ACCOUNTANT: "Accountant",
    UserRole.USER: "User",
}


# ---------------------------------------------------------------------------
# Hierarchy (highest first), used for role assignment
# ---------------------------------------------------------------------------

ROLE_HIERARCHY: list[UserRole] = [
    UserRole.SUPER_ADMIN,
    UserRole.GENERAL_MANAGER,
    UserRole.ADMIN,
    UserRole.PROGRAM_MANAGER,
    UserRole.PROJECT_COORDINATOR,
    UserRole.HR,
    UserRole.FINANCE,
    UserRole.PROCUREMENT,
    UserRole.STOREKEEPER,
    UserRole.ME_OFFICER,
    UserRole.FIELD_OFFICER,
    UserRole.ACCOUNTANT,
    UserRole.USER,
]

# Roles that may assign roles at all.
ROLE_ASSIGNERS: frozenset[UserRole] = frozenset({UserRole.SUPER_ADMIN, UserRole.GENERAL_MANAGER})

# Roles that create tasks for other users and review/complete them.
TASK_MANAGER_ROLES: frozenset[UserRole] = frozenset({
    UserRole.GENERAL_MANAGER,
    UserRole.SUPER_ADMIN,
    UserRole.ADMIN,
})

VALID_ROLES: list[str] = [r.value for r in UserRole]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_role(value: UserRole | str | None) -> UserRole | None:
    """Return the ``UserRole`` for an exact role string, or ``None``.

    No case folding or trimming: ``"admin"`` is not a role.
    """
    if isinstance(value, UserRole):
        return value
    try:
        return UserRole(value)
    except ValueError:
        return None


def parse_permission(value: Permission | str) -> Permission | None:
    if isinstance(value, Permission):
        return value
    try:
        return Permission(value)
    except ValueError:
        return None


def get_role_permissions(role: UserRole | str | None) -> RolePermissions:
    """Return the permission record for a role; unknown roles get no flags."""
    parsed = parse_role(role)
    if parsed is None:
        return _NO_PERMISSIONS
    return ROLE_PERMISSIONS[parsed]


def has_permission(role: UserRole | str | None, permission: Permission | str) -> bool:
    """Look up one flag for a role. Unknown role or flag denies."""
    flag = parse_permission(permission)
    if flag is None:
        return False
    return get_role_permissions(role).allows(flag)


def role_rank(role: UserRole | str | None) -> int | None:
    """Index of the role in ``ROLE_HIERARCHY`` (0 is highest)."""
    parsed = parse_role(role)
    if parsed is None:
        return None
    return ROLE_HIERARCHY.index(parsed)


def can_assign_role(acting_role: UserRole | str | None, target_role: UserRole | str | None) -> bool:
    """Whether *acting_role* may give *target_role* to a user.

    Super Admin assigns any role, itself included. General Manager assigns
    only roles strictly below it, so never General Manager or Super Admin.
    Everyone else assigns nothing.
    """
    acting = parse_role(acting_role)
    target = parse_role(target_role)
    if acting is None or target is None:
        return False
    if acting not in ROLE_ASSIGNERS:
        return False
    if acting is UserRole.SUPER_ADMIN:
        return True
    return role_rank(target) > role_rank(acting)


def can_send_message(from_role: UserRole | str | None, to_role: UserRole | str | None) -> bool:
    """Sender must be able to send and recipient must be able to receive."""
    return has_permission(from_role, Permission.SEND_MESSAGES) and has_permission(
        to_role, Permission.RECEIVE_MESSAGES
    )


def get_roles_by_permission(permission: Permission | str) -> list[UserRole]:
    """Roles that hold *permission*, in hierarchy order."""
    return [r for r in ROLE_HIERARCHY if has_permission(r, permission)]


def role_summary(role: UserRole) -> dict:
    return {
        "code": role.value,
        "display_name": ROLE_DISPLAY_NAMES[role],
        "rank": role_rank(role),
        "permissions": ROLE_PERMISSIONS[role].as_flags(),
    }
