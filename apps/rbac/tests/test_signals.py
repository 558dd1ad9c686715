"""
Tests for RBAC signal handlers and management commands.
"""
from io import StringIO

import pytest
from django.core.management import CommandError, call_command

from apps.companies.models import Company
from apps.rbac.catalog import PermissionCatalog
from apps.rbac.defaults import EDITABLE_ROLES, default_grants_for
from apps.rbac.models import Permission, RolePermission
from apps.rbac.tables import RolePermissionTable


@pytest.mark.django_db
class TestCompanyCreationSignal:
    """Creating a company seeds its role grant matrix."""

    def test_defaults_seeded_for_every_editable_role(self):
        company = Company.objects.create(name='Initech', slug='initech')

        for role in EDITABLE_ROLES:
            assert RolePermission.objects.for_role(company, role).count() == len(default_grants_for(role))

    def test_super_admin_gets_no_rows(self, company):
        assert not RolePermission.objects.for_role(company, 'super_admin').exists()

    def test_update_does_not_reseed(self, company):
        RolePermissionTable.set(company, 'employee', 'leave', 'create', False)

        company.name = 'Acme Holdings'
        company.save()

        assert RolePermissionTable.get(company, 'employee')['leave:create'] is False


@pytest.mark.django_db
class TestSeedPermissionsCommand:

    def test_catalog_rows_exist_after_migrate(self):
        assert Permission.objects.count() == len(PermissionCatalog.entries())

    def test_recreates_missing_rows(self):
        Permission.objects.filter(code='compliance:manage').delete()
        out = StringIO()

        call_command('seed_permissions', stdout=out)

        assert Permission.objects.filter(code='compliance:manage').exists()
        assert '1 created' in out.getvalue()


@pytest.mark.django_db
class TestResetRolePermissionsCommand:

    def test_reset_single_role(self, company):
        RolePermissionTable.set(company, 'manager', 'leave', 'approve', False)
        out = StringIO()

        call_command('reset_role_permissions', company.slug, '--role', 'manager', stdout=out)

        assert RolePermissionTable.get(company, 'manager')['leave:approve'] is True
        assert 'manager' in out.getvalue()

    def test_reset_by_id(self, company):
        RolePermissionTable.set(company, 'employee', 'payroll', 'read', True)

        call_command('reset_role_permissions', str(company.id), stdout=StringIO())

        assert 'payroll:read' not in RolePermissionTable.get(company, 'employee')

    def test_unknown_company(self):
        with pytest.raises(CommandError):
            call_command('reset_role_permissions', 'no-such-company', stdout=StringIO())
