"""Admin configuration for guarded_authz."""

from django.contrib import admin

from guarded_authz.models import Permission, PrincipalPermission, PrincipalRole, Role, RolePermission


class RolePermissionInline(admin.TabularInline):
    """Inline admin listing the permissions a role grants."""

    model = RolePermission
    extra = 0
    autocomplete_fields = ("permission",)


class PrincipalRoleInline(admin.TabularInline):
    """Inline admin listing the principals holding a role."""

    model = PrincipalRole
    extra = 0
    fields = ("principal_type", "principal_id", "created_at")
    readonly_fields = ("created_at",)


class PrincipalPermissionInline(admin.TabularInline):
    """Inline admin listing the principals holding a permission directly."""

    model = PrincipalPermission
    extra = 0
    fields = ("principal_type", "principal_id", "created_at")
    readonly_fields = ("created_at",)


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    """Admin for roles, with their permissions and holders."""

    list_display = ("id", "name", "guard_name", "created_at", "updated_at")
    search_fields = ("name",)
    list_filter = ("guard_name",)
    inlines = [RolePermissionInline, PrincipalRoleInline]


@admin.register(Permission)
class PermissionAdmin(admin.ModelAdmin):
    """Admin for permissions, with their direct holders."""

    list_display = ("id", "name", "guard_name", "created_at", "updated_at")
    search_fields = ("name",)
    list_filter = ("guard_name",)
    inlines = [PrincipalPermissionInline]
