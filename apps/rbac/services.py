"""
Permission checks and permission administration.

``can`` and ``explain`` are the only way the rest of the platform asks
permission questions. AdministrationService is the only writer of role
grants, user overrides and the company frozen flag.
"""
import logging
from typing import List, Optional

from django.db import transaction

from apps.companies.models import Company, CompanyUser, PlatformAdmin
from apps.core.exceptions import (
    ImmutableRoleError,
    ImpersonationWriteForbiddenError,
    InvalidPermissionError,
    MembershipNotFoundError,
    NotPlatformAdministratorError,
)
from apps.core.logging import SecurityLogger
from apps.rbac.audit import get_audit_sink
from apps.rbac.catalog import Action, PermissionCatalog, Role
from apps.rbac.identity import IdentityProvider
from apps.rbac.impersonation import ImpersonationGate, ImpersonationState
from apps.rbac.resolver import Actor, Decision, EffectivePermission, PermissionResolver, PermissionSource
from apps.rbac.tables import RolePermissionTable, UserOverrideTable

logger = logging.getLogger(__name__)


def explain(actor: Optional[Actor], module, action,
            session: Optional[ImpersonationState] = None) -> Decision:
    """
    Decision with provenance for one permission.

    Args:
        actor: Identity to check, or None when the user has no membership
        module: Module being accessed
        action: Action being performed
        session: The caller's impersonation state, if any

    Returns:
        Decision (never raises for an ordinary denial)
    """
    if actor is None:
        return Decision(False, PermissionSource.NONE, "No membership in this company")
    return ImpersonationGate.check_and_resolve(session, actor, module, action)


def can(actor: Optional[Actor], module, action,
        session: Optional[ImpersonationState] = None) -> bool:
    return explain(actor, module, action, session).allowed


def can_access_module(actor: Optional[Actor], module,
                      session: Optional[ImpersonationState] = None) -> bool:
    """
    True when any action on the module resolves allowed.

    Drives navigation. In a frozen company only the module's read
    permission counts. Unknown modules are never accessible.
    """
    if actor is None:
        return False
    try:
        actions = PermissionCatalog.list_actions(module)
    except InvalidPermissionError:
        return False
    if actor.company_frozen:
        return can(actor, module, Action.READ, session)
    return any(can(actor, module, action, session) for action in sorted(actions))


def list_effective_permissions(company, user_id, *, caller, session) -> List[EffectivePermission]:
    return AdministrationService.list_effective_permissions(
        company, user_id, caller=caller, session=session
    )


class AdministrationService:
    """
    Self-authorizing mutation surface for role grants, user overrides
    and company freezing.

    Every method requires an active platform administrator who is not
    impersonating.
    """

    @classmethod
    def authorize(cls, caller, session, operation):
        """
        Check the caller may run an administration operation.

        Raises:
            NotPlatformAdministratorError: if caller is not an active platform admin
            ImpersonationWriteForbiddenError: if the session is impersonating
        """
        user_id = getattr(caller, 'pk', None)
        if not PlatformAdmin.objects.is_platform_admin(caller):
            SecurityLogger.log_administration_rejected(user_id, operation, 'not_platform_admin')
            raise NotPlatformAdministratorError(
                "Permission administration requires a platform administrator",
                details={'operation': operation}
            )
        if session is not None and session.is_impersonating:
            SecurityLogger.log_administration_rejected(user_id, operation, 'impersonating')
            raise ImpersonationWriteForbiddenError(
                "Permission administration is not allowed while impersonating",
                details={'operation': operation}
            )

    @classmethod
    def set_role_permission(cls, company, role, module, action, grant, *, caller, session, request=None):
        """
        Grant or revoke a permission for a role in a company.

        Returns:
            True if stored state changed
        """
        cls.authorize(caller, session, 'set_role_permission')
        return RolePermissionTable.set(
            company, role, module, action, grant, actor=caller, request=request
        )

    @classmethod
    def set_user_permission(cls, company, user_id, module, action, granted, *, caller, session,
                            reason='', request=None):
        """
        Set (True/False) or clear (None) a user override.

        Returns:
            True if stored state changed
        """
        cls.authorize(caller, session, 'set_user_permission')
        return UserOverrideTable.set(
            company, user_id, module, action, granted,
            actor=caller, reason=reason, request=request
        )

    @classmethod
    def set_user_permissions_batch(cls, company, user_id, changes, *, caller, session,
                                   reason='', request=None):
        """
        Apply several override changes in one transaction.

        Args:
            changes: iterable of (module, action, granted) tuples

        Every pair is validated before anything is written; any failure
        rolls the whole batch back.

        Returns:
            Number of overrides that changed
        """
        cls.authorize(caller, session, 'set_user_permissions_batch')
        changes = [
            (*PermissionCatalog.coerce(module, action), granted)
            for module, action, granted in changes
        ]
        UserOverrideTable.get_target_membership(company, user_id)

        changed = 0
        with transaction.atomic():
            for module, action, granted in changes:
                if UserOverrideTable.set(
                    company, user_id, module, action, granted,
                    actor=caller, reason=reason, request=request
                ):
                    changed += 1
        return changed

    @classmethod
    def reset_to_defaults(cls, company, role, *, caller, session, request=None):
        cls.authorize(caller, session, 'reset_to_defaults')
        return RolePermissionTable.reset_to_defaults(company, role, actor=caller, request=request)

    @classmethod
    def get_role_permissions(cls, company, role, *, caller, session):
        """
        Grant map of one role, keyed by permission code.

        Raises:
            ImmutableRoleError: for super_admin, which has no grant matrix
        """
        cls.authorize(caller, session, 'get_role_permissions')
        if role == Role.SUPER_ADMIN:
            raise ImmutableRoleError(
                "The super_admin role bypasses grants and has no grant matrix",
                details={'role': Role.SUPER_ADMIN.value}
            )
        return RolePermissionTable.get(company, role)

    @classmethod
    def list_effective_permissions(cls, company, user_id, *, caller, session) -> List[EffectivePermission]:
        """
        Decision for every catalog permission for one member.

        Raises:
            MembershipNotFoundError: if the user is not an active member
        """
        cls.authorize(caller, session, 'list_effective_permissions')
        membership = CompanyUser.objects.get_membership(company, user_id)
        if membership is None:
            raise MembershipNotFoundError(
                f"User {user_id} is not an active member of this company",
                details={'user_id': user_id, 'company_id': str(company.id)}
            )
        return PermissionResolver.resolve_all(IdentityProvider.actor_for_membership(membership))

    @classmethod
    def list_users_with_overrides(cls, company, *, caller, session):
        cls.authorize(caller, session, 'list_users_with_overrides')
        return UserOverrideTable.users_with_overrides(company)

    @classmethod
    def set_company_frozen(cls, company, frozen, *, caller, session, reason='', request=None):
        """
        Freeze or unfreeze a company.

        A frozen company stays reachable, but every mutating permission
        check in it denies. Setting the current state is a no-op.

        Returns:
            True if the company state changed
        """
        cls.authorize(caller, session, 'set_company_frozen')
        frozen = bool(frozen)

        with transaction.atomic():
            locked = Company.objects.select_for_update().get(pk=company.pk)
            if locked.is_frozen == frozen:
                return False
            locked.is_frozen = frozen
            locked.save(update_fields=['is_frozen', 'updated_at'])
            company.is_frozen = frozen

            get_audit_sink().emit(
                'company_frozen' if frozen else 'company_unfrozen',
                {'frozen': frozen, 'reason': reason or '', 'actor': caller.pk},
                company=locked,
                user=caller,
                target_type='Company',
                target_id=locked.id,
                request=request
            )

        logger.info(
            f"Company {company.slug} {'frozen' if frozen else 'unfrozen'}",
            extra={'company_id': company.id, 'actor_id': caller.pk}
        )
        return True
