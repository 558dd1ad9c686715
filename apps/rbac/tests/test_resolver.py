"""
Tests for permission resolution precedence.
"""
import pytest

from apps.rbac.catalog import PermissionCatalog
from apps.rbac.identity import IdentityProvider
from apps.rbac.models import Permission, UserPermission
from apps.rbac.resolver import Actor, Decision, PermissionResolver, PermissionSource, decide
from apps.rbac.services import can, explain
from apps.rbac.tables import RolePermissionTable, UserOverrideTable


class TestDecide:
    """The precedence function on already-loaded table data."""

    actor = Actor(user_id=1, role='manager', company_id='c1')

    def test_super_admin_bypasses_everything(self):
        actor = Actor(user_id=1, role='super_admin', is_super_admin=True)

        decision = decide(actor, 'payroll', 'process', {'payroll:process': False}, {})

        assert decision == Decision(True, PermissionSource.SUPER_ADMIN, "Allowed: super admin")

    @pytest.mark.parametrize('entry', PermissionCatalog.entries(), ids=lambda entry: entry.code)
    def test_super_admin_allowed_for_every_pair(self, entry):
        actor = Actor(user_id=1, role='super_admin', is_super_admin=True, company_id='c1')

        decision = decide(actor, entry.module, entry.action, {entry.code: False}, {entry.code: False})

        assert decision == Decision(True, PermissionSource.SUPER_ADMIN, "Allowed: super admin")

    def test_explicit_deny_beats_role_grant(self):
        decision = decide(self.actor, 'leave', 'approve', {'leave:approve': False}, {'leave:approve': True})

        assert decision.allowed is False
        assert decision.source == PermissionSource.EXPLICIT_DENY

    def test_explicit_allow_beats_missing_grant(self):
        decision = decide(self.actor, 'payroll', 'read', {'payroll:read': True}, {})

        assert decision.allowed is True
        assert decision.source == PermissionSource.EXPLICIT_ALLOW

    def test_role_grant(self):
        decision = decide(self.actor, 'leave', 'approve', {}, {'leave:approve': True})

        assert decision == Decision(True, PermissionSource.ROLE, "Allowed via role: manager")

    def test_role_denied_row(self):
        decision = decide(self.actor, 'leave', 'approve', {}, {'leave:approve': False})

        assert decision == Decision(False, PermissionSource.ROLE, "Denied via role: manager")

    def test_no_grant(self):
        decision = decide(self.actor, 'payroll', 'read', {}, {'leave:approve': True})

        assert decision == Decision(False, PermissionSource.NONE, "No grant")

    def test_unknown_pair_fails_closed(self):
        decision = decide(self.actor, 'payroll', 'fly', {'payroll:fly': True}, {'payroll:fly': True})

        assert decision == Decision(False, PermissionSource.NONE, "Unknown permission")

    def test_decision_is_truthy_when_allowed(self):
        assert Decision(True, PermissionSource.ROLE)
        assert not Decision(False, PermissionSource.NONE)

    def test_decision_to_dict(self):
        assert Decision(False, 'none', 'No grant').to_dict() == {
            'allowed': False,
            'source': 'none',
            'explanation': 'No grant',
        }


@pytest.mark.django_db
class TestPermissionResolver:
    """Resolution against the stored tables."""

    def test_manager_override_lifecycle(self, company, manager_member):
        actor = IdentityProvider.actor_for_membership(manager_member)

        decision = explain(actor, 'leave', 'approve')
        assert decision.allowed is True
        assert decision.source == PermissionSource.ROLE

        UserOverrideTable.set(company, manager_member.user_id, 'leave', 'approve', False)
        decision = explain(actor, 'leave', 'approve')
        assert decision.allowed is False
        assert decision.source == PermissionSource.EXPLICIT_DENY

        UserOverrideTable.set(company, manager_member.user_id, 'leave', 'approve', None)
        decision = explain(actor, 'leave', 'approve')
        assert decision.allowed is True
        assert decision.source == PermissionSource.ROLE

    def test_super_admin_member(self, company, super_admin_member):
        actor = IdentityProvider.actor_for_membership(super_admin_member)

        assert actor.is_super_admin is True
        assert can(actor, 'compliance', 'manage') is True
        assert explain(actor, 'payroll', 'process').source == PermissionSource.SUPER_ADMIN

    @pytest.mark.parametrize('entry', PermissionCatalog.entries(), ids=lambda entry: entry.code)
    def test_super_admin_ignores_stored_deny_override(self, company, super_admin_member, entry):
        UserPermission.objects.create(
            company=company,
            user_id=super_admin_member.user_id,
            permission=Permission.objects.for_pair(entry.module, entry.action),
            granted=False,
        )
        actor = IdentityProvider.actor_for_membership(super_admin_member)

        decision = explain(actor, entry.module, entry.action)

        assert decision == Decision(True, PermissionSource.SUPER_ADMIN, "Allowed: super admin")

    def test_role_change_visible_immediately(self, company, employee_member):
        actor = IdentityProvider.actor_for_membership(employee_member)
        assert can(actor, 'payroll', 'read') is False

        RolePermissionTable.set(company, 'employee', 'payroll', 'read', True)

        assert can(actor, 'payroll', 'read') is True

    def test_overrides_are_per_company(self, company, other_company, make_member, make_user):
        user = make_user()
        here = make_member(company, 'employee', user=user)
        there = make_member(other_company, 'employee', user=user)
        UserOverrideTable.set(company, user.pk, 'payroll', 'read', True)

        assert can(IdentityProvider.actor_for_membership(here), 'payroll', 'read') is True
        assert can(IdentityProvider.actor_for_membership(there), 'payroll', 'read') is False

    def test_unknown_role_denies(self, company):
        actor = Actor(user_id=99, role='contractor', company_id=company.id)

        decision = PermissionResolver.resolve(actor, 'leave', 'read')

        assert decision == Decision(False, PermissionSource.NONE, "No grant")

    def test_no_actor_denies(self):
        decision = explain(None, 'leave', 'read')

        assert decision.allowed is False
        assert decision.source == PermissionSource.NONE

    def test_resolve_all_matches_resolve(self, company, manager_member):
        actor = IdentityProvider.actor_for_membership(manager_member)
        UserOverrideTable.set(company, manager_member.user_id, 'payroll', 'read', True)

        permissions = PermissionResolver.resolve_all(actor)

        by_code = {p.code: p.decision for p in permissions}
        assert by_code['payroll:read'].source == PermissionSource.EXPLICIT_ALLOW
        assert by_code['leave:approve'].source == PermissionSource.ROLE
        assert by_code['payroll:process'].allowed is False
        for permission in permissions:
            assert permission.decision == PermissionResolver.resolve(actor, permission.module, permission.action)
