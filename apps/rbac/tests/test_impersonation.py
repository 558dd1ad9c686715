"""
Tests for impersonation state, the read-only gate and the session service.
"""
from datetime import timedelta

import pytest
from django.contrib.sessions.backends.db import SessionStore
from django.test import override_settings
from django.utils import timezone

from apps.companies.models import PlatformAdmin
from apps.core.exceptions import ImpersonationStateError, NotPlatformAdministratorError, ValidationError
from apps.rbac.identity import IdentityProvider
from apps.rbac.impersonation import (
    ImpersonationGate,
    ImpersonationService,
    ImpersonationSessionStore,
    ImpersonationState,
)
from apps.rbac.catalog import PermissionCatalog
from apps.rbac.models import ImpersonationLog
from apps.rbac.resolver import Decision, PermissionSource
from apps.rbac.services import can, can_access_module, explain
from apps.rbac.tables import UserOverrideTable


@pytest.fixture
def store():
    return ImpersonationSessionStore(SessionStore())


@pytest.fixture
def impersonating(company):
    return ImpersonationState(
        is_impersonating=True,
        acting_as_company_id=str(company.id),
        started_at=timezone.now(),
        session_id='session-1',
        admin_user_id=1,
        company_name=company.name,
    )


class TestImpersonationState:

    def test_round_trips_through_session_dict(self, store):
        started = timezone.now()
        state = ImpersonationState(True, 'abc', started, 'sid', 5, 'Acme')

        store.save(state)
        loaded = store.load()

        assert loaded == state
        assert isinstance(store.session['impersonation']['started_at'], str)

    def test_empty_session(self, store):
        assert store.load() is None

    def test_clear(self, store):
        store.save(ImpersonationState(is_impersonating=True))
        store.clear()

        assert store.load() is None
        assert 'impersonation' not in store.session

    def test_duration(self):
        state = ImpersonationState(True, started_at=timezone.now() - timedelta(seconds=90))
        assert 89 <= state.duration_seconds <= 91

    def test_duration_without_start(self):
        assert ImpersonationState().duration_seconds is None


@pytest.mark.django_db
class TestImpersonationGate:
    """Read-only enforcement while a session impersonates."""

    def test_mutating_action_blocked_despite_role_grant(self, company, admin_member, impersonating):
        actor = IdentityProvider.actor_for_membership(admin_member)
        assert can(actor, 'documents', 'delete') is True

        decision = explain(actor, 'documents', 'delete', impersonating)

        assert decision.allowed is False
        assert decision.source == PermissionSource.NONE
        assert decision.explanation == ImpersonationGate.READ_ONLY_EXPLANATION

    def test_allowlisted_read_uses_resolver(self, company, admin_member, impersonating):
        actor = IdentityProvider.actor_for_membership(admin_member)

        decision = explain(actor, 'settings', 'read', impersonating)

        assert decision.allowed is True
        assert decision.source == PermissionSource.ROLE

    def test_reads_are_not_gated(self, company, admin_member, impersonating):
        actor = IdentityProvider.actor_for_membership(admin_member)

        assert can(actor, 'payroll', 'read', impersonating) is True
        assert can(actor, 'payroll', 'export', impersonating) is True

    def test_gate_never_grants(self, company, admin_member, impersonating):
        UserOverrideTable.set(company, admin_member.user_id, 'settings', 'read', False)
        actor = IdentityProvider.actor_for_membership(admin_member)

        decision = explain(actor, 'settings', 'read', impersonating)

        assert decision.source == PermissionSource.EXPLICIT_DENY

    @override_settings(RBAC_IMPERSONATION_SAFE_PERMISSIONS=['settings:update'])
    def test_allowlisted_mutation_passes_through(self, company, admin_member, impersonating):
        actor = IdentityProvider.actor_for_membership(admin_member)

        assert can(actor, 'settings', 'update', impersonating) is True
        assert can(actor, 'users', 'update', impersonating) is False

    def test_not_impersonating_is_transparent(self, company, admin_member):
        actor = IdentityProvider.actor_for_membership(admin_member)
        idle = ImpersonationState(is_impersonating=False)

        assert can(actor, 'documents', 'delete', idle) is True

    def test_unknown_action_fails_closed(self, company, admin_member, impersonating):
        actor = IdentityProvider.actor_for_membership(admin_member)

        decision = explain(actor, 'documents', 'obliterate', impersonating)

        assert decision.allowed is False
        assert decision.explanation == "Unknown permission"


@pytest.mark.django_db
class TestImpersonationService:
    """Starting, stopping and validating impersonation sessions."""

    def test_start(self, company, platform_admin_user, store):
        state = ImpersonationService.start(platform_admin_user, company, store)

        assert state.is_impersonating is True
        assert state.acting_as_company_id == str(company.id)
        assert state.admin_user_id == platform_admin_user.pk
        assert store.load() == state

        log = ImpersonationLog.objects.get(action='start')
        assert log.admin_user == platform_admin_user
        assert log.company == company
        assert log.session_id == state.session_id

    def test_start_requires_platform_admin(self, company, make_user, store):
        with pytest.raises(NotPlatformAdministratorError):
            ImpersonationService.start(make_user(), company, store)

        assert store.load() is None
        assert not ImpersonationLog.objects.exists()

    def test_start_twice_rejected(self, company, other_company, platform_admin_user, store):
        ImpersonationService.start(platform_admin_user, company, store)

        with pytest.raises(ImpersonationStateError):
            ImpersonationService.start(platform_admin_user, other_company, store)

        assert store.load().acting_as_company_id == str(company.id)

    def test_start_inactive_company_rejected(self, company, platform_admin_user, store):
        company.is_active = False
        company.save()

        with pytest.raises(ValidationError):
            ImpersonationService.start(platform_admin_user, company, store)

    def test_stop(self, company, platform_admin_user, store):
        started = ImpersonationService.start(platform_admin_user, company, store)

        stopped = ImpersonationService.stop(platform_admin_user, store)

        assert stopped.session_id == started.session_id
        assert store.load() is None
        log = ImpersonationLog.objects.get(action='end')
        assert log.session_id == started.session_id
        assert log.duration_seconds is not None

    def test_stop_when_idle(self, platform_admin_user, store):
        assert ImpersonationService.stop(platform_admin_user, store) is None
        assert not ImpersonationLog.objects.exists()

    def test_validate_keeps_own_session(self, company, platform_admin_user, store):
        state = ImpersonationService.start(platform_admin_user, company, store)

        assert ImpersonationService.validate(platform_admin_user, store) == state

    def test_validate_drops_state_of_other_user(self, company, platform_admin_user, make_user, store):
        ImpersonationService.start(platform_admin_user, company, store)
        other = make_user()
        PlatformAdmin.objects.create(user=other)

        assert ImpersonationService.validate(other, store) is None
        assert store.load() is None

    def test_validate_drops_state_after_capability_revoked(self, company, platform_admin_user, store):
        ImpersonationService.start(platform_admin_user, company, store)
        PlatformAdmin.objects.filter(user=platform_admin_user).update(is_active=False)

        assert ImpersonationService.validate(platform_admin_user, store) is None
        assert store.load() is None

    def test_impersonated_actor_is_company_admin(self, company, platform_admin_user, store):
        state = ImpersonationService.start(platform_admin_user, company, store)

        actor = IdentityProvider.actor_for(platform_admin_user, company, state)

        assert actor.role == 'company_admin'
        assert actor.user_id == platform_admin_user.pk
        assert can(actor, 'employees', 'read', state) is True
        assert can(actor, 'employees', 'update', state) is False


MUTATING_ENTRIES = [
    entry for entry in PermissionCatalog.entries()
    if PermissionCatalog.is_mutating(entry.action)
]
READ_ENTRIES = [
    entry for entry in PermissionCatalog.entries()
    if not PermissionCatalog.is_mutating(entry.action)
]


@pytest.mark.django_db
class TestImpersonationGateAcrossCatalog:
    """The default allowlist holds only reads, so every mutation is blocked."""

    @pytest.mark.parametrize('entry', MUTATING_ENTRIES, ids=lambda entry: entry.code)
    def test_every_mutation_blocked(self, company, admin_member, impersonating, entry):
        actor = IdentityProvider.actor_for_membership(admin_member)

        decision = explain(actor, entry.module, entry.action, impersonating)

        assert decision == Decision(False, PermissionSource.NONE, ImpersonationGate.READ_ONLY_EXPLANATION)

    @pytest.mark.parametrize('entry', READ_ENTRIES, ids=lambda entry: entry.code)
    def test_every_read_matches_resolver(self, company, admin_member, impersonating, entry):
        actor = IdentityProvider.actor_for_membership(admin_member)

        assert explain(actor, entry.module, entry.action, impersonating) == explain(actor, entry.module, entry.action)


@pytest.fixture
def frozen_company(company):
    company.is_frozen = True
    company.save()
    return company


@pytest.mark.django_db
class TestFrozenCompanyGate:
    """A frozen company is read-only for every role."""

    @pytest.mark.parametrize('entry', MUTATING_ENTRIES, ids=lambda entry: entry.code)
    def test_every_mutation_denied(self, frozen_company, admin_member, entry):
        actor = IdentityProvider.actor_for_membership(admin_member)

        decision = explain(actor, entry.module, entry.action)

        assert decision == Decision(False, PermissionSource.NONE, ImpersonationGate.FROZEN_EXPLANATION)

    @pytest.mark.parametrize('entry', READ_ENTRIES, ids=lambda entry: entry.code)
    def test_reads_resolve_normally(self, frozen_company, admin_member, entry):
        actor = IdentityProvider.actor_for_membership(admin_member)

        decision = explain(actor, entry.module, entry.action)

        assert decision.allowed is True
        assert decision.source == PermissionSource.ROLE

    def test_super_admin_is_frozen_too(self, frozen_company, super_admin_member):
        actor = IdentityProvider.actor_for_membership(super_admin_member)

        assert can(actor, 'payroll', 'read') is True
        assert can(actor, 'payroll', 'process') is False

    def test_explicit_allow_does_not_unfreeze(self, frozen_company, employee_member):
        UserOverrideTable.set(frozen_company, employee_member.user_id, 'payroll', 'process', True)
        actor = IdentityProvider.actor_for_membership(employee_member)

        assert explain(actor, 'payroll', 'process').explanation == ImpersonationGate.FROZEN_EXPLANATION

    @override_settings(RBAC_IMPERSONATION_SAFE_PERMISSIONS=['settings:update'])
    def test_allowlist_does_not_apply(self, frozen_company, admin_member, impersonating):
        actor = IdentityProvider.actor_for_membership(admin_member)

        decision = explain(actor, 'settings', 'update', impersonating)

        assert decision.explanation == ImpersonationGate.FROZEN_EXPLANATION

    def test_unfrozen_company_is_writable(self, company, admin_member):
        actor = IdentityProvider.actor_for_membership(admin_member)

        assert actor.company_frozen is False
        assert can(actor, 'payroll', 'process') is True

    def test_impersonated_actor_carries_flag(self, frozen_company, platform_admin_user, impersonating):
        actor = IdentityProvider.actor_for(platform_admin_user, frozen_company, impersonating)

        assert actor.company_frozen is True


@pytest.mark.django_db
class TestCanAccessModule:

    def test_any_allowed_action_grants_access(self, company, manager_member):
        actor = IdentityProvider.actor_for_membership(manager_member)

        assert can_access_module(actor, 'leave') is True
        assert can_access_module(actor, 'payroll') is False

    def test_single_override_opens_module(self, company, employee_member):
        UserOverrideTable.set(company, employee_member.user_id, 'payroll', 'read', True)
        actor = IdentityProvider.actor_for_membership(employee_member)

        assert can_access_module(actor, 'payroll') is True

    def test_super_admin_reaches_every_module(self, company, super_admin_member):
        actor = IdentityProvider.actor_for_membership(super_admin_member)

        assert all(can_access_module(actor, module) for module in PermissionCatalog.list_modules())

    def test_frozen_company_requires_read(self, frozen_company, employee_member):
        UserOverrideTable.set(frozen_company, employee_member.user_id, 'leave', 'read', False)
        actor = IdentityProvider.actor_for_membership(employee_member)

        assert can(actor, 'leave', 'create') is False
        assert can_access_module(actor, 'leave') is False
        assert can_access_module(actor, 'expenses') is True

    def test_impersonation_keeps_read_access(self, company, admin_member, impersonating):
        actor = IdentityProvider.actor_for_membership(admin_member)

        assert can_access_module(actor, 'payroll', impersonating) is True

    def test_unknown_module_and_missing_actor(self, company, manager_member):
        actor = IdentityProvider.actor_for_membership(manager_member)

        assert can_access_module(actor, 'spaceships') is False
        assert can_access_module(None, 'leave') is False
