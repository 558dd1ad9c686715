import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


MODULE_CHOICES = [
    ('dashboard', 'Dashboard'),
    ('employees', 'Employees'),
    ('departments', 'Departments'),
    ('leave', 'Leave Management'),
    ('time_tracking', 'Time Tracking'),
    ('documents', 'Documents'),
    ('recruitment', 'Recruitment'),
    ('performance', 'Performance'),
    ('payroll', 'Payroll'),
    ('expenses', 'Expenses'),
    ('compliance', 'Compliance'),
    ('audit', 'Audit Logs'),
    ('integrations', 'Integrations'),
    ('settings', 'Settings'),
    ('users', 'Users'),
    ('shifts', 'Shift Management'),
    ('attendance', 'Attendance'),
    ('my_team', 'My Team'),
]

ACTION_CHOICES = [
    ('read', 'View'),
    ('create', 'Create'),
    ('update', 'Update'),
    ('delete', 'Delete'),
    ('approve', 'Approve'),
    ('process', 'Process'),
    ('verify', 'Verify'),
    ('export', 'Export'),
    ('manage', 'Manage'),
    ('lock', 'Lock'),
]

ROLE_CHOICES = [
    ('super_admin', 'Super Admin'),
    ('company_admin', 'Company Admin'),
    ('hr_manager', 'HR Manager'),
    ('manager', 'Manager'),
    ('employee', 'Employee'),
]


def _base_fields():
    return [
        ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
        ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
        ('updated_at', models.DateTimeField(auto_now=True, db_index=True, help_text='Timestamp when the record was last updated')),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('companies', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Permission',
            fields=_base_fields() + [
                ('module', models.CharField(choices=MODULE_CHOICES, db_index=True, help_text="Functional area (e.g., 'leave')", max_length=50)),
                ('action', models.CharField(choices=ACTION_CHOICES, help_text="Operation kind (e.g., 'approve')", max_length=20)),
                ('code', models.CharField(help_text="Unique permission code (e.g., 'leave:approve')", max_length=100, unique=True)),
                ('name', models.CharField(help_text="Human-readable label (e.g., 'Approve Leave')", max_length=255)),
                ('description', models.TextField(blank=True, help_text='Detailed description of what this permission grants')),
            ],
            options={
                'db_table': 'permissions',
                'ordering': ['module', 'action'],
                'unique_together': {('module', 'action')},
            },
        ),
        migrations.CreateModel(
            name='RolePermission',
            fields=_base_fields() + [
                ('role', models.CharField(choices=ROLE_CHOICES, db_index=True, help_text='Role receiving the grant', max_length=20)),
                ('is_granted', models.BooleanField(default=True, help_text='Whether the role holds this permission')),
                ('company', models.ForeignKey(help_text='Company this grant belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='role_permissions', to='companies.company')),
                ('permission', models.ForeignKey(help_text='Permission being granted', on_delete=django.db.models.deletion.PROTECT, related_name='role_permissions', to='rbac.permission')),
            ],
            options={
                'db_table': 'role_permissions',
                'ordering': ['company', 'role', 'permission'],
                'unique_together': {('company', 'role', 'permission')},
                'indexes': [
                    models.Index(fields=['company', 'role'], name='rp_company_role_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='UserPermission',
            fields=_base_fields() + [
                ('granted', models.BooleanField(help_text='True = explicit allow, False = explicit deny')),
                ('reason', models.TextField(blank=True, help_text='Reason for this override')),
                ('company', models.ForeignKey(help_text='Company this override applies in', on_delete=django.db.models.deletion.CASCADE, related_name='user_permissions', to='companies.company')),
                ('granted_by', models.ForeignKey(blank=True, help_text='User who created this override', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='permission_overrides_made', to=settings.AUTH_USER_MODEL)),
                ('permission', models.ForeignKey(help_text='Permission being allowed or denied', on_delete=django.db.models.deletion.PROTECT, related_name='user_permissions', to='rbac.permission')),
                ('user', models.ForeignKey(help_text='User this override applies to', on_delete=django.db.models.deletion.CASCADE, related_name='permission_overrides', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'user_permissions',
                'ordering': ['company', 'user', 'permission'],
                'unique_together': {('company', 'user', 'permission')},
                'indexes': [
                    models.Index(fields=['company', 'user'], name='up_company_user_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=_base_fields() + [
                ('action', models.CharField(db_index=True, help_text="Event type (e.g., 'role_permission_changed')", max_length=100)),
                ('target_type', models.CharField(blank=True, help_text="Type of target entity (e.g., 'RolePermission')", max_length=50)),
                ('target_id', models.CharField(blank=True, help_text='ID of target entity', max_length=64)),
                ('diff', models.JSONField(blank=True, default=dict, help_text='Event payload')),
                ('ip_address', models.GenericIPAddressField(blank=True, help_text='IP address of the request', null=True)),
                ('user_agent', models.TextField(blank=True, help_text='User agent string')),
                ('request_id', models.CharField(blank=True, help_text='Request ID for tracing', max_length=64)),
                ('metadata', models.JSONField(blank=True, default=dict, help_text='Additional context metadata')),
                ('company', models.ForeignKey(blank=True, help_text='Company this event belongs to (null for platform-level)', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='audit_logs', to='companies.company')),
                ('user', models.ForeignKey(blank=True, help_text='User who performed the action (null for system actions)', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='audit_logs', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'audit_logs',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['company', 'created_at'], name='audit_company_created_idx'),
                    models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ImpersonationLog',
            fields=_base_fields() + [
                ('company_name', models.CharField(help_text='Company name at the time of impersonation', max_length=255)),
                ('action', models.CharField(choices=[('start', 'Start'), ('end', 'End')], db_index=True, max_length=10)),
                ('session_id', models.CharField(db_index=True, help_text='Links the start and end records of one session', max_length=64)),
                ('user_agent', models.TextField(blank=True)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('duration_seconds', models.PositiveIntegerField(blank=True, help_text='Session length, set on the end record', null=True)),
                ('admin_user', models.ForeignKey(help_text='Platform administrator', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='impersonation_logs', to=settings.AUTH_USER_MODEL)),
                ('company', models.ForeignKey(help_text='Impersonated company', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='impersonation_logs', to='companies.company')),
            ],
            options={
                'db_table': 'impersonation_logs',
                'ordering': ['-created_at'],
            },
        ),
    ]
