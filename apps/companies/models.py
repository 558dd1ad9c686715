"""
Company models for multi-tenant isolation.

Implements:
- Company (the tenant)
- CompanyUser (membership carrying the user's tenant role)
- PlatformAdmin (platform operator capability, independent of tenant roles)
"""
from django.conf import settings
from django.db import models

from apps.core.models import BaseModel
from apps.rbac.catalog import Role


class CompanyManager(models.Manager):
    """Manager for company queries."""

    def active(self):
        """Return only active companies."""
        return self.filter(is_active=True)

    def by_slug(self, slug):
        """Find company by slug."""
        return self.filter(slug=slug).first()


class Company(BaseModel):
    """
    A tenant of the HR platform.

    Creating a company seeds its role grant matrix (see
    apps.rbac.signals).
    """

    name = models.CharField(
        max_length=255,
        help_text="Company display name"
    )
    slug = models.SlugField(
        max_length=100,
        unique=True,
        help_text="URL-safe unique identifier"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive companies reject tenant requests"
    )
    is_frozen = models.BooleanField(
        default=False,
        help_text="Frozen companies are read-only: every mutating permission check denies"
    )

    objects = CompanyManager()

    class Meta:
        db_table = 'companies'
        ordering = ['name']
        verbose_name_plural = 'companies'

    def __str__(self):
        return f"{self.name} ({self.slug})"


class CompanyUserManager(models.Manager):
    """Manager for membership queries."""

    def for_company(self, company):
        return self.filter(company=company)

    def for_user(self, user):
        return self.filter(user=user)

    def get_membership(self, company, user_id):
        """Active membership of a user in a company, or None."""
        return self.filter(company=company, user_id=user_id, is_active=True).first()

    def active_admins(self, company):
        """Active company_admin memberships of a company."""
        return self.filter(company=company, role=Role.COMPANY_ADMIN, is_active=True)


class CompanyUser(BaseModel):
    """
    Association between a user and a company.

    The role stored here is the tenant role the permission engine
    resolves against.
    """

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name='members',
        db_index=True,
        help_text="Company this membership belongs to"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='company_memberships',
        db_index=True,
        help_text="User who is a member"
    )
    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.EMPLOYEE,
        db_index=True,
        help_text="Tenant role of the user in this company"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether membership is active"
    )

    objects = CompanyUserManager()

    class Meta:
        db_table = 'company_users'
        unique_together = [('company', 'user')]
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['company', 'user', 'is_active'], name='cu_company_user_active_idx'),
            models.Index(fields=['company', 'role'], name='cu_company_role_idx'),
        ]

    def __str__(self):
        return f"{self.user} @ {self.company.slug} ({self.role})"


class PlatformAdminManager(models.Manager):

    def is_platform_admin(self, user) -> bool:
        """True if the user holds an active platform-admin record."""
        if user is None or not getattr(user, 'is_authenticated', False):
            return False
        return self.filter(user_id=user.pk, is_active=True).exists()


class PlatformAdmin(BaseModel):
    """
    Platform operator capability.

    Grants access to permission administration and impersonation. It is
    separate from any company role.
    """

    ROLE_CHOICES = [
        ('owner', 'Owner'),
        ('admin', 'Admin'),
        ('support', 'Support'),
    ]

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='platform_admin',
        help_text="User holding the platform-admin capability"
    )
    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default='admin',
        help_text="Platform admin role"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive admins lose the capability immediately"
    )

    objects = PlatformAdminManager()

    class Meta:
        db_table = 'platform_admins'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.user} ({self.role})"
