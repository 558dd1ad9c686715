"""
Tests for startup configuration validation.
"""
import pytest
from django.apps import apps
from django.core.exceptions import ImproperlyConfigured
from django.test import override_settings


@pytest.fixture
def core_config():
    return apps.get_app_config('core')


class TestRbacConfigurationValidation:

    def test_default_configuration_is_valid(self, core_config):
        core_config._validate_rbac_configuration()

    @override_settings(RBAC_IMPERSONATION_SAFE_PERMISSIONS=['payroll:launch'])
    def test_invalid_allowlist_entry(self, core_config):
        with pytest.raises(ImproperlyConfigured):
            core_config._validate_rbac_configuration()

    @override_settings(RBAC_AUDIT_SINK='apps.rbac.audit.MissingSink')
    def test_unimportable_audit_sink(self, core_config):
        with pytest.raises(ImproperlyConfigured):
            core_config._validate_rbac_configuration()


class TestSecuritySettingsValidation:

    @override_settings(DEBUG=False, SECRET_KEY='django-insecure-' + 'x' * 60)
    def test_weak_secret_rejected_in_production(self, core_config):
        with pytest.raises(ImproperlyConfigured):
            core_config._validate_security_settings()

    @override_settings(DEBUG=True, SECRET_KEY='s' * 60)
    def test_strong_secret_accepted(self, core_config):
        core_config._validate_security_settings()
