"""
Default permission constants.
"""

from guarded_authz.api.data import PermissionData

# Dashboard

VIEW_DASHBOARD = PermissionData(external_key="view_dashboard")

# User management

MANAGE_USERS = PermissionData(external_key="manage_users")
VIEW_USERS = PermissionData(external_key="view_users")
CREATE_USERS = PermissionData(external_key="create_users")
EDIT_USERS = PermissionData(external_key="edit_users")
DELETE_USERS = PermissionData(external_key="delete_users")

# Role and permission management

MANAGE_ROLES = PermissionData(external_key="manage_roles")
MANAGE_PERMISSIONS = PermissionData(external_key="manage_permissions")
ASSIGN_ROLES = PermissionData(external_key="assign_roles")

# Content

CREATE_CONTENT = PermissionData(external_key="create_content")
EDIT_OWN_CONTENT = PermissionData(external_key="edit_own_content")
EDIT_ANY_CONTENT = PermissionData(external_key="edit_any_content")
DELETE_OWN_CONTENT = PermissionData(external_key="delete_own_content")
DELETE_ANY_CONTENT = PermissionData(external_key="delete_any_content")
PUBLISH_CONTENT = PermissionData(external_key="publish_content")

# Moderation

MODERATE_CONTENT = PermissionData(external_key="moderate_content")
VIEW_REPORTS = PermissionData(external_key="view_reports")
HANDLE_REPORTS = PermissionData(external_key="handle_reports")

# Analytics

VIEW_ANALYTICS = PermissionData(external_key="view_analytics")
EXPORT_DATA = PermissionData(external_key="export_data")

# System

SYSTEM_SETTINGS = PermissionData(external_key="system_settings")
VIEW_LOGS = PermissionData(external_key="view_logs")
MANAGE_SYSTEM = PermissionData(external_key="manage_system")

ALL_PERMISSIONS = [
    VIEW_DASHBOARD,
    MANAGE_USERS,
    VIEW_USERS,
    CREATE_USERS,
    EDIT_USERS,
    DELETE_USERS,
    MANAGE_ROLES,
    MANAGE_PERMISSIONS,
    ASSIGN_ROLES,
    CREATE_CONTENT,
    EDIT_OWN_CONTENT,
    EDIT_ANY_CONTENT,
    DELETE_OWN_CONTENT,
    DELETE_ANY_CONTENT,
    PUBLISH_CONTENT,
    MODERATE_CONTENT,
    VIEW_REPORTS,
    HANDLE_REPORTS,
    VIEW_ANALYTICS,
    EXPORT_DATA,
    SYSTEM_SETTINGS,
    VIEW_LOGS,
    MANAGE_SYSTEM,
]
