import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


ROLE_CHOICES = [
    ('super_admin', 'Super Admin'),
    ('company_admin', 'Company Admin'),
    ('hr_manager', 'HR Manager'),
    ('manager', 'Manager'),
    ('employee', 'Employee'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Company',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, db_index=True, help_text='Timestamp when the record was last updated')),
                ('name', models.CharField(help_text='Company display name', max_length=255)),
                ('slug', models.SlugField(help_text='URL-safe unique identifier', max_length=100, unique=True)),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Inactive companies reject tenant requests')),
            ],
            options={
                'db_table': 'companies',
                'ordering': ['name'],
                'verbose_name_plural': 'companies',
            },
        ),
        migrations.CreateModel(
            name='PlatformAdmin',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, db_index=True, help_text='Timestamp when the record was last updated')),
                ('role', models.CharField(choices=[('owner', 'Owner'), ('admin', 'Admin'), ('support', 'Support')], default='admin', help_text='Platform admin role', max_length=20)),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Inactive admins lose the capability immediately')),
                ('user', models.OneToOneField(help_text='User holding the platform-admin capability', on_delete=django.db.models.deletion.CASCADE, related_name='platform_admin', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'platform_admins',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='CompanyUser',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, db_index=True, help_text='Timestamp when the record was last updated')),
                ('role', models.CharField(choices=ROLE_CHOICES, db_index=True, default='employee', help_text='Tenant role of the user in this company', max_length=20)),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Whether membership is active')),
                ('company', models.ForeignKey(help_text='Company this membership belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='members', to='companies.company')),
                ('user', models.ForeignKey(help_text='User who is a member', on_delete=django.db.models.deletion.CASCADE, related_name='company_memberships', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'company_users',
                'ordering': ['-created_at'],
                'unique_together': {('company', 'user')},
                'indexes': [
                    models.Index(fields=['company', 'user', 'is_active'], name='cu_company_user_active_idx'),
                    models.Index(fields=['company', 'role'], name='cu_company_role_idx'),
                ],
            },
        ),
    ]
