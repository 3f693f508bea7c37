"""
Default roles and their associated permissions.
"""

from guarded_authz.api.data import RoleData
from guarded_authz.constants import permissions

# Define the associated permissions for each role

SUPER_ADMIN_PERMISSIONS = list(permissions.ALL_PERMISSIONS)

ADMIN_PERMISSIONS = [
    permissions.VIEW_DASHBOARD,
    permissions.MANAGE_USERS,
    permissions.VIEW_USERS,
    permissions.CREATE_USERS,
    permissions.EDIT_USERS,
    permissions.DELETE_USERS,
    permissions.MANAGE_ROLES,
    permissions.ASSIGN_ROLES,
    permissions.VIEW_ANALYTICS,
    permissions.VIEW_REPORTS,
    permissions.SYSTEM_SETTINGS,
    permissions.VIEW_LOGS,
    permissions.DELETE_ANY_CONTENT,
]

MANAGER_PERMISSIONS = [
    permissions.VIEW_DASHBOARD,
    permissions.VIEW_USERS,
    permissions.EDIT_USERS,
    permissions.VIEW_ANALYTICS,
    permissions.VIEW_REPORTS,
    permissions.EXPORT_DATA,
    permissions.CREATE_CONTENT,
    permissions.EDIT_OWN_CONTENT,
]

MODERATOR_PERMISSIONS = [
    permissions.VIEW_DASHBOARD,
    permissions.MODERATE_CONTENT,
    permissions.VIEW_REPORTS,
    permissions.HANDLE_REPORTS,
    permissions.EDIT_ANY_CONTENT,
    permissions.DELETE_ANY_CONTENT,
    permissions.CREATE_CONTENT,
    permissions.EDIT_OWN_CONTENT,
]

USER_PERMISSIONS = [
    permissions.VIEW_DASHBOARD,
    permissions.CREATE_CONTENT,
    permissions.EDIT_OWN_CONTENT,
    permissions.DELETE_OWN_CONTENT,
]

SUPER_ADMIN = RoleData(external_key="super_admin", permissions=SUPER_ADMIN_PERMISSIONS)
ADMIN = RoleData(external_key="admin", permissions=ADMIN_PERMISSIONS)
MANAGER = RoleData(external_key="manager", permissions=MANAGER_PERMISSIONS)
MODERATOR = RoleData(external_key="moderator", permissions=MODERATOR_PERMISSIONS)
USER = RoleData(external_key="user", permissions=USER_PERMISSIONS)

DEFAULT_ROLES = [SUPER_ADMIN, ADMIN, MANAGER, MODERATOR, USER]

# Presentation

ROLE_LABELS = {
    SUPER_ADMIN.name: "Super Administrator",
    ADMIN.name: "Administrator",
    MANAGER.name: "Manager",
    MODERATOR.name: "Moderator",
    USER.name: "User",
}

ROLE_COLORS = {
    SUPER_ADMIN.name: "red",
    ADMIN.name: "purple",
    MANAGER.name: "blue",
    MODERATOR.name: "yellow",
    USER.name: "gray",
}

DEFAULT_ROLE_COLOR = "gray"
