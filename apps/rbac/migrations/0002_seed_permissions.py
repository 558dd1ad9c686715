from django.db import migrations


def seed_permissions(apps, schema_editor):
    from apps.rbac.catalog import PermissionCatalog

    Permission = apps.get_model('rbac', 'Permission')
    existing = set(Permission.objects.values_list('code', flat=True))
    Permission.objects.bulk_create([
        Permission(
            module=entry.module.value,
            action=entry.action.value,
            code=entry.code,
            name=entry.name,
            description=entry.description,
        )
        for entry in PermissionCatalog.entries()
        if entry.code not in existing
    ])


class Migration(migrations.Migration):

    dependencies = [
        ('rbac', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(seed_permissions, migrations.RunPython.noop),
    ]
