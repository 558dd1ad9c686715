"""
Storage tables behind permission resolution.

RolePermissionTable holds the per-company role grant matrix and
UserOverrideTable holds per-user allow/deny overrides. Both are read
through the cache and are written only by AdministrationService (and the
company bootstrap signal).
"""
import logging

from django.db import transaction
from django.db.models import Count

from apps.companies.models import Company, CompanyUser
from apps.core.cache import CacheKeys, CacheService, CacheTTL, PermissionCacheInvalidator
from apps.core.exceptions import (
    CannotOverrideSuperAdminError,
    ImmutableRoleError,
    LastAdministratorLockoutError,
    MembershipNotFoundError,
    ValidationError,
)
from apps.rbac.audit import get_audit_sink
from apps.rbac.catalog import Action, Module, PermissionCatalog, Role, permission_code
from apps.rbac.defaults import EDITABLE_ROLES, default_grants_for
from apps.rbac.models import Permission, RolePermission, UserPermission

logger = logging.getLogger(__name__)


def _coerce_role(role) -> Role:
    try:
        return Role(role)
    except ValueError:
        raise ValidationError(f"Unknown role '{role}'", details={'role': str(role)})


def _lock_company(company):
    """Row lock serializing permission writers of one company."""
    return Company.objects.select_for_update().get(pk=company.pk)


def _permission_rows():
    """Catalog rows keyed by (module, action), creating any missing ones."""
    Permission.objects.sync_catalog()
    return {
        (Module(p.module), Action(p.action)): p
        for p in Permission.objects.all()
    }


def _actor_id(actor):
    return actor.pk if actor is not None else None


class RolePermissionTable:
    """Per-company, per-role grant matrix."""

    @classmethod
    def get(cls, company, role):
        """
        Grant map of one role in one company.

        Returns:
            dict mapping permission code to is_granted. A missing code
            means not granted.
        """
        role = _coerce_role(role)
        if role == Role.SUPER_ADMIN:
            return {}

        cache_key = CacheKeys.role_grants(company.id, role.value)
        return CacheService.get_or_set(
            cache_key,
            lambda: RolePermission.objects.grant_map(company, role),
            ttl=CacheTTL.RBAC_GRANTS
        )

    @classmethod
    def set(cls, company, role, module, action, grant, actor=None, request=None):
        """
        Grant or revoke one permission for a role.

        Returns:
            True if stored state changed, False for a no-op.

        Raises:
            ImmutableRoleError: if role is super_admin
            InvalidPermissionError: if the pair is not in the catalog
        """
        role = _coerce_role(role)
        if role == Role.SUPER_ADMIN:
            raise ImmutableRoleError(
                "The super_admin role bypasses grants and cannot be edited",
                details={'role': role.value}
            )
        module, action = PermissionCatalog.coerce(module, action)
        grant = bool(grant)

        with transaction.atomic():
            _lock_company(company)
            permission = Permission.objects.for_pair(module, action)
            existing = RolePermission.objects.filter(
                company=company, role=role, permission=permission
            ).first()

            if existing is not None and existing.is_granted == grant:
                return False

            previous = existing.is_granted if existing is not None else None
            row, _ = RolePermission.objects.update_or_create(
                company=company,
                role=role,
                permission=permission,
                defaults={'is_granted': grant}
            )
            PermissionCacheInvalidator.invalidate_role_grants(company.id, role.value)

            get_audit_sink().emit(
                'role_permission_changed',
                {
                    'role': role.value,
                    'module': module.value,
                    'action': action.value,
                    'grant': grant,
                    'previous': previous,
                    'actor': _actor_id(actor),
                },
                company=company,
                user=actor,
                target_type='RolePermission',
                target_id=row.id,
                request=request
            )

        logger.info(
            f"Role permission {permission.code} set to {grant} for {role.value}",
            extra={'company_id': company.id, 'role': role.value, 'permission': permission.code}
        )
        return True

    @classmethod
    def reset_to_defaults(cls, company, role, actor=None, request=None):
        """
        Replace every grant of a role with the factory matrix.

        Runs as one transaction; a failure part-way leaves the previous
        grant set untouched.

        Returns:
            Number of grants after the reset
        """
        role = _coerce_role(role)
        if role == Role.SUPER_ADMIN:
            raise ImmutableRoleError(
                "The super_admin role has no grants to reset",
                details={'role': role.value}
            )

        with transaction.atomic():
            _lock_company(company)
            rows = _permission_rows()
            existing = RolePermission.objects.for_role(company, role)
            previous_count = existing.filter(is_granted=True).count()
            existing.delete()

            RolePermission.objects.bulk_create([
                RolePermission(company=company, role=role, permission=rows[pair], is_granted=True)
                for pair in sorted(default_grants_for(role))
            ])
            granted_count = len(default_grants_for(role))
            PermissionCacheInvalidator.invalidate_role_grants(company.id, role.value)

            get_audit_sink().emit(
                'role_permissions_reset',
                {
                    'role': role.value,
                    'previous_granted_count': previous_count,
                    'granted_count': granted_count,
                    'actor': _actor_id(actor),
                },
                company=company,
                user=actor,
                target_type='Role',
                target_id=role.value,
                request=request
            )

        logger.info(
            f"Reset {role.value} to defaults ({granted_count} grants)",
            extra={'company_id': company.id, 'role': role.value}
        )
        return granted_count

    @classmethod
    def initialize_company(cls, company):
        """
        Seed the factory matrix for every editable role without rows.

        Idempotent: roles that already have rows are left alone.

        Returns:
            Number of grant rows created
        """
        created = 0
        with transaction.atomic():
            rows = _permission_rows()
            for role in EDITABLE_ROLES:
                if RolePermission.objects.for_role(company, role).exists():
                    continue
                grants = [
                    RolePermission(company=company, role=role, permission=rows[pair], is_granted=True)
                    for pair in sorted(default_grants_for(role))
                ]
                RolePermission.objects.bulk_create(grants)
                created += len(grants)
                PermissionCacheInvalidator.invalidate_role_grants(company.id, role.value)

        if created:
            logger.info(
                f"Initialized {created} default role grants for company {company.slug}",
                extra={'company_id': company.id}
            )
        return created


class UserOverrideTable:
    """Per-company, per-user tri-state overrides (allow, deny, unset)."""

    @classmethod
    def get(cls, company, user_id):
        """
        Overrides of one user in one company.

        Returns:
            dict mapping permission code to granted. A missing code means
            the role decides.
        """
        cache_key = CacheKeys.user_overrides(company.id, user_id)
        return CacheService.get_or_set(
            cache_key,
            lambda: UserPermission.objects.override_map(company, user_id),
            ttl=CacheTTL.RBAC_GRANTS
        )

    @classmethod
    def get_target_membership(cls, company, user_id):
        """
        Active membership of an override target.

        Raises:
            MembershipNotFoundError: if the user is not an active member
            CannotOverrideSuperAdminError: if the member is a super_admin
        """
        membership = CompanyUser.objects.get_membership(company, user_id)
        if membership is None:
            raise MembershipNotFoundError(
                f"User {user_id} is not an active member of this company",
                details={'user_id': user_id, 'company_id': str(company.id)}
            )
        if membership.role == Role.SUPER_ADMIN:
            raise CannotOverrideSuperAdminError(
                "Overrides cannot be placed on a super_admin user",
                details={'user_id': user_id}
            )
        return membership

    @classmethod
    def set(cls, company, user_id, module, action, granted, actor=None, reason='', request=None):
        """
        Set (True/False) or clear (None) one override.

        Returns:
            True if stored state changed, False for a no-op.

        Raises:
            InvalidPermissionError: if the pair is not in the catalog
            MembershipNotFoundError: if the user is not an active member
            CannotOverrideSuperAdminError: if the user is a super_admin
            LastAdministratorLockoutError: if a deny would leave nobody
                able to manage users
        """
        module, action = PermissionCatalog.coerce(module, action)
        membership = cls.get_target_membership(company, user_id)
        if granted is not None:
            granted = bool(granted)

        with transaction.atomic():
            _lock_company(company)
            permission = Permission.objects.for_pair(module, action)
            existing = UserPermission.objects.filter(
                company=company, user_id=user_id, permission=permission
            ).first()
            previous = existing.granted if existing is not None else None

            if previous == granted:
                return False

            if granted is False and (module, action) == (Module.USERS, Action.UPDATE):
                cls._guard_last_administrator(company, membership)

            if granted is None:
                existing.delete()
                target_id = existing.id
            else:
                row, _ = UserPermission.objects.update_or_create(
                    company=company,
                    user_id=user_id,
                    permission=permission,
                    defaults={
                        'granted': granted,
                        'reason': reason or '',
                        'granted_by': actor,
                    }
                )
                target_id = row.id
            PermissionCacheInvalidator.invalidate_user_overrides(company.id, user_id)

            get_audit_sink().emit(
                'user_permission_changed',
                {
                    'user_id': user_id,
                    'module': module.value,
                    'action': action.value,
                    'granted': granted,
                    'previous': previous,
                    'reason': reason or '',
                    'actor': _actor_id(actor),
                },
                company=company,
                user=actor,
                target_type='UserPermission',
                target_id=target_id,
                request=request
            )

        logger.info(
            f"Override {permission.code} set to {granted} for user {user_id}",
            extra={'company_id': company.id, 'target_user_id': user_id, 'permission': permission.code}
        )
        return True

    @classmethod
    def _guard_last_administrator(cls, company, membership):
        """Refuse a users:update deny that leaves no admin able to manage users."""
        if membership.role != Role.COMPANY_ADMIN:
            return

        code = permission_code(Module.USERS, Action.UPDATE)
        other_admins = list(
            CompanyUser.objects.active_admins(company)
            .exclude(user_id=membership.user_id)
            .values_list('user_id', flat=True)
        )
        role_grants = RolePermission.objects.filter(
            company=company,
            role=Role.COMPANY_ADMIN,
            permission__code=code,
            is_granted=True
        ).exists()
        overrides = dict(
            UserPermission.objects.filter(
                company=company, user_id__in=other_admins, permission__code=code
            ).values_list('user_id', 'granted')
        )
        if not any(overrides.get(user_id, role_grants) for user_id in other_admins):
            raise LastAdministratorLockoutError(
                "Denying users:update would leave the company without an administrator able to manage users",
                details={'user_id': membership.user_id}
            )

    @classmethod
    def users_with_overrides(cls, company):
        """Override counts per user, for users with at least one override."""
        return list(
            UserPermission.objects.filter(company=company)
            .values('user_id', 'user__username')
            .annotate(override_count=Count('id'))
            .order_by('user_id')
        )
