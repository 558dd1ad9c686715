"""
Django admin configuration for RBAC app.

Grant and override rows are read-only here: every change has to go
through AdministrationService so it is authorized, cached correctly and
audited.
"""
from django.contrib import admin

from .models import AuditLog, ImpersonationLog, Permission, RolePermission, UserPermission


class ReadOnlyAdmin(admin.ModelAdmin):

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Permission)
class PermissionAdmin(ReadOnlyAdmin):
    list_display = ['code', 'name', 'module', 'action']
    list_filter = ['module', 'action']
    search_fields = ['code', 'name', 'description']
    ordering = ['module', 'action']


@admin.register(RolePermission)
class RolePermissionAdmin(ReadOnlyAdmin):
    list_display = ['company', 'role', 'permission', 'is_granted', 'updated_at']
    list_filter = ['role', 'is_granted']
    search_fields = ['company__name', 'permission__code']
    raw_id_fields = ['company', 'permission']


@admin.register(UserPermission)
class UserPermissionAdmin(ReadOnlyAdmin):
    list_display = ['user', 'company', 'permission', 'granted', 'granted_by', 'created_at']
    list_filter = ['granted']
    search_fields = ['user__username', 'user__email', 'company__name', 'permission__code']
    raw_id_fields = ['user', 'company', 'permission', 'granted_by']


@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyAdmin):
    list_display = ['action', 'company', 'user', 'target_type', 'target_id', 'created_at']
    list_filter = ['action', 'target_type']
    search_fields = ['action', 'target_id', 'request_id']
    date_hierarchy = 'created_at'


@admin.register(ImpersonationLog)
class ImpersonationLogAdmin(ReadOnlyAdmin):
    list_display = ['admin_user', 'company_name', 'action', 'session_id', 'duration_seconds', 'created_at']
    list_filter = ['action']
    search_fields = ['company_name', 'session_id']
