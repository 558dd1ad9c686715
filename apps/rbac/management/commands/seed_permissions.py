"""
Management command to seed the permission catalog.

Creates the global Permission rows for every valid module:action pair.
Existing rows are left untouched, so this is idempotent and safe to
re-run after a deploy that extends the catalog.
"""
from django.core.management.base import BaseCommand

from apps.rbac.catalog import PermissionCatalog
from apps.rbac.models import Permission


class Command(BaseCommand):
    help = 'Seed the permission catalog (idempotent)'

    def handle(self, *args, **options):
        self.stdout.write('Seeding permission catalog...\n')

        created_count = Permission.objects.sync_catalog()
        total = len(PermissionCatalog.entries())

        self.stdout.write(
            self.style.SUCCESS(
                f'\n✓ Seeding complete: {created_count} created, '
                f'{total - created_count} unchanged'
            )
        )

        # Display summary by module
        self.stdout.write('\n' + '=' * 70)
        self.stdout.write('Permissions Summary by Module:')
        self.stdout.write('=' * 70)

        for module in PermissionCatalog.list_modules():
            perms = Permission.objects.filter(module=module).order_by('action')
            self.stdout.write(f'\n{module.label.upper()}:')
            for perm in perms:
                self.stdout.write(f'  • {perm.code:<30} {perm.name}')

        self.stdout.write(f'\nTotal permissions: {Permission.objects.count()}')
