"""
RBAC API URLs.

Provides endpoints for:
- Permission catalog and self-service checks
- Platform administration of role grants and user overrides
- Impersonation
- Audit log viewing
"""
from django.urls import path
from apps.rbac.views import (
    PermissionCatalogView,
    MyPermissionsView,
    PermissionCheckView,
    AuditLogListView,
    RolePermissionsAdminView,
    RolePermissionsResetView,
    UserPermissionsAdminView,
    UserPermissionsBatchView,
    CompanyOverridesView,
    CompanyFreezeView,
    ImpersonationStatusView,
    ImpersonationStartView,
    ImpersonationStopView,
)

app_name = 'rbac'

urlpatterns = [
    # Catalog and self-service
    path('permissions', PermissionCatalogView.as_view(), name='permission-list'),
    path('me/permissions', MyPermissionsView.as_view(), name='my-permissions'),
    path('me/permissions/check', PermissionCheckView.as_view(), name='permission-check'),

    # Audit logs
    path('audit-logs', AuditLogListView.as_view(), name='audit-log-list'),

    # Platform administration
    path('admin/companies/<uuid:company_id>/roles/<str:role>/permissions',
         RolePermissionsAdminView.as_view(), name='admin-role-permissions'),
    path('admin/companies/<uuid:company_id>/roles/<str:role>/permissions/reset',
         RolePermissionsResetView.as_view(), name='admin-role-permissions-reset'),
    path('admin/companies/<uuid:company_id>/users/<int:user_id>/permissions',
         UserPermissionsAdminView.as_view(), name='admin-user-permissions'),
    path('admin/companies/<uuid:company_id>/users/<int:user_id>/permissions/batch',
         UserPermissionsBatchView.as_view(), name='admin-user-permissions-batch'),
    path('admin/companies/<uuid:company_id>/overrides',
         CompanyOverridesView.as_view(), name='admin-company-overrides'),
    path('admin/companies/<uuid:company_id>/freeze',
         CompanyFreezeView.as_view(), name='admin-company-freeze'),

    # Impersonation
    path('admin/impersonation', ImpersonationStatusView.as_view(), name='impersonation-status'),
    path('admin/impersonation/start', ImpersonationStartView.as_view(), name='impersonation-start'),
    path('admin/impersonation/stop', ImpersonationStopView.as_view(), name='impersonation-stop'),
]
