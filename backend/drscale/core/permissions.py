"""Roles and the capabilities they grant, resolved once per session."""
from enum import Enum


class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class Permission(str, Enum):
    MANAGE_TEAM = "manage_team"
    MANAGE_AGENTS = "manage_agents"
    VIEW_AGENTS = "view_agents"
    CREATE_AGENTS = "create_agents"
    ASSIGN_AGENTS = "assign_agents"
    DELETE_AGENTS = "delete_agents"
    VIEW_CALLS = "view_calls"
    UPLOAD_CALLS = "upload_calls"
    PLACE_CALLS = "place_calls"
    MANAGE_BALANCES = "manage_balances"
    VIEW_BALANCE = "view_balance"
    ACCESS_BILLING_SETTINGS = "access_billing_settings"
    EDIT_SETTINGS = "edit_settings"
    UPLOAD_COMPANY_LOGO = "upload_company_logo"
    INVITE_USERS = "invite_users"
    REMOVE_USERS = "remove_users"
    SEND_INVITATIONS = "send_invitations"
    SUPER_ADMIN_ACCESS = "super_admin_access"


VIEWER_PERMISSIONS = frozenset({
    Permission.VIEW_AGENTS,
    Permission.VIEW_CALLS,
    Permission.VIEW_BALANCE,
})

MEMBER_PERMISSIONS = VIEWER_PERMISSIONS | {
    Permission.UPLOAD_CALLS,
    Permission.PLACE_CALLS,
}

ADMIN_PERMISSIONS = frozenset(Permission) - {Permission.SUPER_ADMIN_ACCESS}

ROLE_PERMISSIONS = {
    Role.OWNER: ADMIN_PERMISSIONS,
    Role.ADMIN: ADMIN_PERMISSIONS,
    Role.MEMBER: MEMBER_PERMISSIONS,
    Role.VIEWER: VIEWER_PERMISSIONS,
}


def parse_role(value) -> Role:
    """Unknown or missing roles fall back to viewer, the most restrictive one."""
    try:
        return Role(value)
    except ValueError:
        return Role.VIEWER


def resolve_permissions(role, is_company_owner: bool = False, is_super_admin: bool = False) -> frozenset:
    if is_super_admin:
        return frozenset(Permission)
    if is_company_owner:
        return ADMIN_PERMISSIONS
    return ROLE_PERMISSIONS[parse_role(role)]
