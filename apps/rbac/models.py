"""
RBAC models for per-company permission resolution.

Implements:
- Permission (catalog rows, one per valid module:action pair)
- RolePermission (per-company role grant matrix)
- UserPermission (per-company, per-user allow/deny overrides)
- AuditLog (append-only audit trail of permission administration)
- ImpersonationLog (start/end records of platform impersonation sessions)
"""
import logging
from django.conf import settings
from django.db import models

from apps.core.models import BaseModel
from apps.rbac.catalog import Action, Module, PermissionCatalog, Role

logger = logging.getLogger(__name__)


class PermissionManager(models.Manager):
    """Manager for Permission queries."""

    def by_code(self, code):
        """Find permission by code."""
        return self.filter(code=code).first()

    def for_pair(self, module, action):
        """
        Catalog row for a (module, action) pair, created on first use.

        Raises:
            InvalidPermissionError: if the pair is not in the catalog.
        """
        entry = PermissionCatalog.get(module, action)
        permission, _ = self.get_or_create(
            module=entry.module,
            action=entry.action,
            defaults={
                'code': entry.code,
                'name': entry.name,
                'description': entry.description,
            }
        )
        return permission

    def sync_catalog(self):
        """
        Create missing catalog rows (idempotent).

        Existing rows are never modified: they are immutable once
        referenced.

        Returns:
            Number of rows created
        """
        existing = set(self.values_list('code', flat=True))
        missing = [
            Permission(
                module=entry.module,
                action=entry.action,
                code=entry.code,
                name=entry.name,
                description=entry.description,
            )
            for entry in PermissionCatalog.entries()
            if entry.code not in existing
        ]
        if missing:
            self.bulk_create(missing, ignore_conflicts=True)
        return len(missing)


class Permission(BaseModel):
    """
    Global permission catalog row, shared across all companies.

    Rows mirror apps.rbac.catalog and are seeded by migration and by the
    seed_permissions command.
    """

    module = models.CharField(
        max_length=50,
        choices=Module.choices,
        db_index=True,
        help_text="Functional area (e.g., 'leave')"
    )
    action = models.CharField(
        max_length=20,
        choices=Action.choices,
        help_text="Operation kind (e.g., 'approve')"
    )
    code = models.CharField(
        max_length=100,
        unique=True,
        help_text="Unique permission code (e.g., 'leave:approve')"
    )
    name = models.CharField(
        max_length=255,
        help_text="Human-readable label (e.g., 'Approve Leave')"
    )
    description = models.TextField(
        blank=True,
        help_text="Detailed description of what this permission grants"
    )

    objects = PermissionManager()

    class Meta:
        db_table = 'permissions'
        unique_together = [('module', 'action')]
        ordering = ['module', 'action']

    def __str__(self):
        return f"{self.code} - {self.name}"


class RolePermissionManager(models.Manager):
    """Manager for RolePermission queries."""

    def for_role(self, company, role):
        """All grant rows of one role in one company."""
        return self.filter(company=company, role=role)

    def grant_map(self, company, role):
        """Mapping permission code -> is_granted for one role."""
        return dict(
            self.for_role(company, role).values_list('permission__code', 'is_granted')
        )


class RolePermission(BaseModel):
    """
    One cell of a company's role grant matrix.

    A missing row means not granted. super_admin never has rows.
    """

    company = models.ForeignKey(
        'companies.Company',
        on_delete=models.CASCADE,
        related_name='role_permissions',
        db_index=True,
        help_text="Company this grant belongs to"
    )
    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        db_index=True,
        help_text="Role receiving the grant"
    )
    permission = models.ForeignKey(
        Permission,
        on_delete=models.PROTECT,
        related_name='role_permissions',
        help_text="Permission being granted"
    )
    is_granted = models.BooleanField(
        default=True,
        help_text="Whether the role holds this permission"
    )

    objects = RolePermissionManager()

    class Meta:
        db_table = 'role_permissions'
        unique_together = [('company', 'role', 'permission')]
        ordering = ['company', 'role', 'permission']
        indexes = [
            models.Index(fields=['company', 'role'], name='rp_company_role_idx'),
        ]

    def __str__(self):
        state = "GRANT" if self.is_granted else "NO"
        return f"{state} {self.permission.code} to {self.role}"


class UserPermissionManager(models.Manager):
    """Manager for UserPermission queries."""

    def for_user(self, company, user_id):
        """All overrides of one user in one company."""
        return self.filter(company=company, user_id=user_id)

    def override_map(self, company, user_id):
        """Mapping permission code -> granted for one user."""
        return dict(
            self.for_user(company, user_id).values_list('permission__code', 'granted')
        )


class UserPermission(BaseModel):
    """
    Per-user permission override (explicit allow or explicit deny).

    Unset is represented by the absence of a row; there is never a null
    override stored.
    """

    company = models.ForeignKey(
        'companies.Company',
        on_delete=models.CASCADE,
        related_name='user_permissions',
        db_index=True,
        help_text="Company this override applies in"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='permission_overrides',
        db_index=True,
        help_text="User this override applies to"
    )
    permission = models.ForeignKey(
        Permission,
        on_delete=models.PROTECT,
        related_name='user_permissions',
        help_text="Permission being allowed or denied"
    )
    granted = models.BooleanField(
        help_text="True = explicit allow, False = explicit deny"
    )

    # Audit fields
    reason = models.TextField(
        blank=True,
        help_text="Reason for this override"
    )
    granted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='permission_overrides_made',
        help_text="User who created this override"
    )

    objects = UserPermissionManager()

    class Meta:
        db_table = 'user_permissions'
        unique_together = [('company', 'user', 'permission')]
        ordering = ['company', 'user', 'permission']
        indexes = [
            models.Index(fields=['company', 'user'], name='up_company_user_idx'),
        ]

    def __str__(self):
        action = "ALLOW" if self.granted else "DENY"
        return f"{action} {self.permission.code} for user {self.user_id}"


class AuditLogManager(models.Manager):
    """Manager for AuditLog queries with company scoping."""

    def for_company(self, company):
        return self.filter(company=company)

    def by_action(self, action):
        return self.filter(action=action)


class AuditLog(BaseModel):
    """
    Append-only audit trail of permission administration.

    Written by apps.rbac.audit.DatabaseAuditSink.
    """

    company = models.ForeignKey(
        'companies.Company',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='audit_logs',
        db_index=True,
        help_text="Company this event belongs to (null for platform-level)"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        db_index=True,
        help_text="User who performed the action (null for system actions)"
    )

    # Action Details
    action = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Event type (e.g., 'role_permission_changed')"
    )
    target_type = models.CharField(
        max_length=50,
        blank=True,
        help_text="Type of target entity (e.g., 'RolePermission')"
    )
    target_id = models.CharField(
        max_length=64,
        blank=True,
        help_text="ID of target entity"
    )

    # Change Tracking
    diff = models.JSONField(
        default=dict,
        blank=True,
        help_text="Event payload"
    )

    # Request Context
    ip_address = models.GenericIPAddressField(
        null=True,
        blank=True,
        help_text="IP address of the request"
    )
    user_agent = models.TextField(
        blank=True,
        help_text="User agent string"
    )
    request_id = models.CharField(
        max_length=64,
        blank=True,
        help_text="Request ID for tracing"
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Additional context metadata"
    )

    objects = AuditLogManager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['company', 'created_at'], name='audit_company_created_idx'),
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
        ]

    def __str__(self):
        company_str = self.company.name if self.company else 'Platform'
        return f"{company_str} - {self.user_id or 'System'} - {self.action}"


class ImpersonationLog(BaseModel):
    """Start and end records of platform impersonation sessions."""

    ACTION_CHOICES = [
        ('start', 'Start'),
        ('end', 'End'),
    ]

    admin_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='impersonation_logs',
        help_text="Platform administrator"
    )
    company = models.ForeignKey(
        'companies.Company',
        on_delete=models.SET_NULL,
        null=True,
        related_name='impersonation_logs',
        help_text="Impersonated company"
    )
    company_name = models.CharField(
        max_length=255,
        help_text="Company name at the time of impersonation"
    )
    action = models.CharField(
        max_length=10,
        choices=ACTION_CHOICES,
        db_index=True
    )
    session_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Links the start and end records of one session"
    )
    user_agent = models.TextField(blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    duration_seconds = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Session length, set on the end record"
    )

    class Meta:
        db_table = 'impersonation_logs'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.admin_user_id} {self.action} {self.company_name}"
