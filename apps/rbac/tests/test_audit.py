"""
Tests for audit sinks.
"""
from unittest.mock import patch

import pytest
from django.contrib.auth.models import AnonymousUser
from django.test import RequestFactory, override_settings

from apps.rbac.audit import DatabaseAuditSink, LoggingAuditSink, get_audit_sink, get_client_ip
from apps.rbac.models import AuditLog


class TestGetClientIp:

    def test_remote_addr(self):
        request = RequestFactory().get('/', REMOTE_ADDR='10.0.0.7')
        assert get_client_ip(request) == '10.0.0.7'

    def test_forwarded_for_wins(self):
        request = RequestFactory().get(
            '/', REMOTE_ADDR='10.0.0.7', HTTP_X_FORWARDED_FOR='203.0.113.5, 10.0.0.1'
        )
        assert get_client_ip(request) == '203.0.113.5'


class TestGetAuditSink:

    def test_default_is_database(self):
        assert isinstance(get_audit_sink(), DatabaseAuditSink)

    @override_settings(RBAC_AUDIT_SINK='apps.rbac.audit.LoggingAuditSink')
    def test_configured_sink(self):
        assert isinstance(get_audit_sink(), LoggingAuditSink)


@pytest.mark.django_db
class TestDatabaseAuditSink:

    def test_records_request_metadata(self, company, platform_admin_user):
        request = RequestFactory().post(
            '/', REMOTE_ADDR='192.0.2.10', HTTP_USER_AGENT='pytest-agent'
        )
        request.request_id = 'req-42'

        DatabaseAuditSink().emit(
            'role_permission_changed',
            {'role': 'manager'},
            company=company,
            user=platform_admin_user,
            target_type='RolePermission',
            target_id='abc',
            request=request
        )

        log = AuditLog.objects.get()
        assert log.company == company
        assert log.user == platform_admin_user
        assert log.diff == {'role': 'manager'}
        assert log.target_id == 'abc'
        assert log.ip_address == '192.0.2.10'
        assert log.user_agent == 'pytest-agent'
        assert log.request_id == 'req-42'

    def test_anonymous_user_stored_as_null(self, company):
        DatabaseAuditSink().emit('role_permissions_reset', {}, company=company, user=AnonymousUser())

        assert AuditLog.objects.get().user is None

    def test_emit_swallows_failures(self, company):
        with patch.object(AuditLog.objects, 'create', side_effect=RuntimeError('db down')), \
                patch('apps.rbac.audit.sentry_sdk') as mock_sentry:
            DatabaseAuditSink().emit('role_permission_changed', {}, company=company)

        mock_sentry.capture_exception.assert_called_once()
        assert not AuditLog.objects.exists()
