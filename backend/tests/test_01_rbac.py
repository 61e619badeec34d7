"""
Tests 101-140: Role permission table, assignment hierarchy, messaging matrix.

Pure unit tests against ``hopebridge.rbac``. Every expected value below is
written out literally rather than derived from the module under test.
"""
import pytest

from hopebridge.rbac import (
    ROLE_DISPLAY_NAMES,
    ROLE_HIERARCHY,
    ROLE_PERMISSIONS,
    TASK_MANAGER_ROLES,
    VALID_ROLES,
    Permission,
    UserRole,
    can_assign_role,
    can_send_message,
    get_role_permissions,
    get_roles_by_permission,
    has_permission,
    parse_role,
    role_rank,
    role_summary,
)

ALL_FLAGS = {
    "canManageUsers", "canAssignRoles", "canCreateTasks", "canAssignTasks",
    "canViewAllTasks", "canSendMessages", "canReceiveMessages", "canManageProjects",
    "canManageContent", "canManageFinance", "canManageHR", "canManageProcurement",
    "canManageInventory", "canViewAnalytics", "canViewReports",
}

STAFF = {
    "canCreateTasks", "canAssignTasks", "canSendMessages", "canReceiveMessages",
    "canViewAnalytics", "canViewReports",
}

EXPECTED_FLAGS = {
    "SUPER_ADMIN": ALL_FLAGS,
    "GENERAL_MANAGER": ALL_FLAGS,
    "ADMIN": STAFF | {"canViewAllTasks", "canManageProjects", "canManageContent"},
    "PROGRAM_MANAGER": STAFF | {"canViewAllTasks", "canManageProjects"},
    "PROJECT_COORDINATOR": STAFF | {"canManageProjects"},
    "HR": STAFF | {"canManageUsers", "canManageHR"},
    "FINANCE": STAFF | {"canManageFinance"},
    "PROCUREMENT": STAFF | {"canManageProcurement"},
    "STOREKEEPER": STAFF | {"canManageInventory"},
    "ME_OFFICER": STAFF,
    "FIELD_OFFICER": STAFF,
    "ACCOUNTANT": STAFF | {"canManageFinance"},
    "USER": {"canSendMessages", "canReceiveMessages"},
}

# Assigner -> roles it may hand out. Roles absent here assign nothing.
EXPECTED_ASSIGNABLE = {
    "SUPER_ADMIN": {
        "SUPER_ADMIN", "GENERAL_MANAGER", "ADMIN", "PROGRAM_MANAGER", "PROJECT_COORDINATOR",
        "HR", "FINANCE", "PROCUREMENT", "STOREKEEPER", "ME_OFFICER", "FIELD_OFFICER",
        "ACCOUNTANT", "USER",
    },
    "GENERAL_MANAGER": {
        "ADMIN", "PROGRAM_MANAGER", "PROJECT_COORDINATOR", "HR", "FINANCE", "PROCUREMENT",
        "STOREKEEPER", "ME_OFFICER", "FIELD_OFFICER", "ACCOUNTANT", "USER",
    },
}


class TestPermissionTable:

    # ==================================================================
    # Tests 101-110: has_permission
    # ==================================================================

    def test_101_thirteen_roles(self):
        assert set(VALID_ROLES) == set(EXPECTED_FLAGS)
        assert len(UserRole) == 13

    def test_102_fifteen_flags(self):
        assert {p.value for p in Permission} == ALL_FLAGS

    def test_103_every_role_flag_pair_matches_table(self):
        for role, granted in EXPECTED_FLAGS.items():
            for flag in ALL_FLAGS:
                assert has_permission(role, flag) is (flag in granted), (role, flag)

    def test_104_enum_arguments_accepted(self):
        assert has_permission(UserRole.HR, Permission.MANAGE_USERS) is True
        assert has_permission(UserRole.HR, Permission.ASSIGN_ROLES) is False

    def test_105_unknown_role_denies_everything(self):
        for flag in ALL_FLAGS:
            assert has_permission("VOLUNTEER", flag) is False
            assert has_permission(None, flag) is False
            assert has_permission("", flag) is False

    def test_106_role_match_is_exact(self):
        assert parse_role("admin") is None
        assert parse_role(" ADMIN") is None
        assert has_permission("super_admin", "canManageUsers") is False

    def test_107_unknown_flag_denies(self):
        assert has_permission("SUPER_ADMIN", "canLaunchRockets") is False

    def test_108_granted_lists_only_true_flags(self):
        assert set(get_role_permissions("USER").granted()) == {"canSendMessages", "canReceiveMessages"}
        assert get_role_permissions("NOBODY").granted() == []

    def test_109_as_flags_covers_every_flag(self):
        flags = ROLE_PERMISSIONS[UserRole.ADMIN].as_flags()
        assert set(flags) == ALL_FLAGS
        assert flags["canManageContent"] is True
        assert flags["canManageUsers"] is False

    def test_110_roles_by_permission_in_hierarchy_order(self):
        assert get_roles_by_permission("canManageUsers") == [
            UserRole.SUPER_ADMIN, UserRole.GENERAL_MANAGER, UserRole.HR,
        ]
        assert get_roles_by_permission("canViewAllTasks") == [
            UserRole.SUPER_ADMIN, UserRole.GENERAL_MANAGER, UserRole.ADMIN, UserRole.PROGRAM_MANAGER,
        ]
        assert get_roles_by_permission("bogus") == []


class TestAssignmentHierarchy:

    # ==================================================================
    # Tests 111-125: can_assign_role
    # ==================================================================

    def test_111_hierarchy_order(self):
        assert [r.value for r in ROLE_HIERARCHY] == [
            "SUPER_ADMIN", "GENERAL_MANAGER", "ADMIN", "PROGRAM_MANAGER",
            "PROJECT_COORDINATOR", "HR", "FINANCE", "PROCUREMENT", "STOREKEEPER",
            "ME_OFFICER", "FIELD_OFFICER", "ACCOUNTANT", "USER",
        ]

    def test_112_rank_zero_is_super_admin(self):
        assert role_rank("SUPER_ADMIN") == 0
        assert role_rank("USER") == 12
        assert role_rank("nobody") is None

    def test_113_every_pair_matches_table(self):
        for acting in EXPECTED_FLAGS:
            allowed = EXPECTED_ASSIGNABLE.get(acting, set())
            for target in EXPECTED_FLAGS:
                assert can_assign_role(acting, target) is (target in allowed), (acting, target)

    def test_114_super_admin_assigns_itself(self):
        assert can_assign_role("SUPER_ADMIN", "SUPER_ADMIN") is True

    def test_115_general_manager_cannot_assign_general_manager(self):
        assert can_assign_role("GENERAL_MANAGER", "GENERAL_MANAGER") is False

    def test_116_general_manager_cannot_assign_super_admin(self):
        assert can_assign_role("GENERAL_MANAGER", "SUPER_ADMIN") is False

    def test_117_reflexive_pairs_for_non_assigners(self):
        for role in ("ADMIN", "PROGRAM_MANAGER", "HR", "FINANCE", "ME_OFFICER", "USER"):
            assert can_assign_role(role, role) is False

    def test_118_hr_manages_users_but_assigns_nothing(self):
        assert has_permission("HR", "canManageUsers") is True
        assert can_assign_role("HR", "USER") is False

    def test_119_admin_assigns_nothing(self):
        assert can_assign_role("ADMIN", "USER") is False
        assert can_assign_role("ADMIN", "FIELD_OFFICER") is False

    def test_120_unknown_roles_never_assign_or_get_assigned(self):
        assert can_assign_role("OWNER", "USER") is False
        assert can_assign_role("SUPER_ADMIN", "OWNER") is False
        assert can_assign_role(None, None) is False

    def test_121_display_names(self):
        assert ROLE_DISPLAY_NAMES[UserRole.ME_OFFICER] == "M&E"
        assert ROLE_DISPLAY_NAMES[UserRole.GENERAL_MANAGER] == "General Manager"
        assert set(ROLE_DISPLAY_NAMES) == set(UserRole)

    def test_122_task_manager_roles(self):
        assert TASK_MANAGER_ROLES == {UserRole.GENERAL_MANAGER, UserRole.SUPER_ADMIN, UserRole.ADMIN}

    def test_123_role_summary_shape(self):
        summary = role_summary(UserRole.ME_OFFICER)
        assert summary["code"] == "ME_OFFICER"
        assert summary["display_name"] == "M&E"
        assert summary["rank"] == 9
        assert summary["permissions"]["canCreateTasks"] is True
        assert summary["permissions"]["canManageFinance"] is False


class TestMessagingMatrix:

    # ==================================================================
    # Tests 126-135: can_send_message
    # ==================================================================

    @pytest.mark.parametrize(
        "sender, recipient, expected",
        [
            ("USER", "USER", True),
            ("USER", "SUPER_ADMIN", True),
            ("SUPER_ADMIN", "USER", True),
            ("FIELD_OFFICER", "GENERAL_MANAGER", True),
            ("ME_OFFICER", "ACCOUNTANT", True),
            ("HR", "STOREKEEPER", True),
            ("VOLUNTEER", "USER", False),
            ("USER", "VOLUNTEER", False),
            ("admin", "USER", False),
            (None, "USER", False),
        ],
    )
    def test_126_literal_rows(self, sender, recipient, expected):
        assert can_send_message(sender, recipient) is expected

    def test_127_every_known_pair_can_message(self):
        for sender in EXPECTED_FLAGS:
            for recipient in EXPECTED_FLAGS:
                assert can_send_message(sender, recipient) is True, (sender, recipient)
