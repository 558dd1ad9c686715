"""
Management command to reset a company's role grants to factory defaults.

Operator tool: it writes through RolePermissionTable directly, with no
acting user, and is still audited.
"""
from uuid import UUID

from django.core.management.base import BaseCommand, CommandError

from apps.companies.models import Company
from apps.rbac.catalog import Role
from apps.rbac.defaults import EDITABLE_ROLES
from apps.rbac.tables import RolePermissionTable


class Command(BaseCommand):
    help = "Reset a company's role grants to the factory defaults"

    def add_arguments(self, parser):
        parser.add_argument(
            'company',
            type=str,
            help='Company slug or ID',
        )
        parser.add_argument(
            '--role',
            type=str,
            choices=[role.value for role in EDITABLE_ROLES],
            help='Reset only this role (default: every editable role)',
        )

    def handle(self, *args, **options):
        company_ref = options['company']

        # Try to find company by slug first, then by ID
        company = Company.objects.by_slug(company_ref)
        if not company:
            try:
                company = Company.objects.filter(id=UUID(company_ref)).first()
            except ValueError:
                pass

        if not company:
            raise CommandError(f'Company not found: {company_ref}')

        roles = [Role(options['role'])] if options.get('role') else list(EDITABLE_ROLES)

        self.stdout.write(f'Resetting role grants for company: {company.name}\n')
        for role in roles:
            count = RolePermissionTable.reset_to_defaults(company, role)
            self.stdout.write(
                self.style.SUCCESS(f'  ✓ {role.value}: {count} grants')
            )

        self.stdout.write(self.style.SUCCESS(f'\n✓ Reset complete for {len(roles)} role(s)'))
