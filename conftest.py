"""
Pytest configuration and fixtures.
"""
import itertools

import pytest
from django.conf import settings
import django
from django.core.management import call_command


def pytest_configure(config):
    """Configure Django settings for tests."""
    settings.DATABASES['default'] = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
    settings.CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'hr-permissions-tests',
        }
    }
    settings.SECURE_SSL_REDIRECT = False
    settings.RBAC_AUDIT_SINK = 'apps.rbac.audit.DatabaseAuditSink'
    settings.RBAC_IMPERSONATION_SAFE_PERMISSIONS = ['settings:read', 'users:read']
    django.setup()


@pytest.fixture(scope='session')
def django_db_setup(django_db_setup, django_db_blocker):
    """Set up test database with migrations."""
    with django_db_blocker.unblock():
        call_command('migrate', '--run-syncdb', verbosity=0)


@pytest.fixture(autouse=True)
def clear_cache():
    """Permission caches must not leak between tests."""
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


_usernames = itertools.count(1)


@pytest.fixture
def make_user(db):
    """Factory for auth users with unique usernames."""
    from django.contrib.auth import get_user_model

    User = get_user_model()

    def _make_user(username=None, **kwargs):
        username = username or f'user{next(_usernames)}'
        return User.objects.create_user(
            username=username,
            email=f'{username}@example.com',
            password='testpass123',
            **kwargs
        )

    return _make_user


@pytest.fixture
def company(db):
    """Create a test company. Default role grants are seeded on creation."""
    from apps.companies.models import Company
    return Company.objects.create(name='Acme Corp', slug='acme')


@pytest.fixture
def other_company(db):
    """Create another test company for isolation tests."""
    from apps.companies.models import Company
    return Company.objects.create(name='Globex', slug='globex')


@pytest.fixture
def make_member(make_user):
    """Factory for company memberships: make_member(company, role)."""
    from apps.companies.models import CompanyUser

    def _make_member(company, role, user=None, is_active=True):
        user = user or make_user()
        return CompanyUser.objects.create(
            company=company,
            user=user,
            role=role,
            is_active=is_active
        )

    return _make_member


@pytest.fixture
def admin_member(company, make_member):
    return make_member(company, 'company_admin')


@pytest.fixture
def hr_member(company, make_member):
    return make_member(company, 'hr_manager')


@pytest.fixture
def manager_member(company, make_member):
    return make_member(company, 'manager')


@pytest.fixture
def employee_member(company, make_member):
    return make_member(company, 'employee')


@pytest.fixture
def super_admin_member(company, make_member):
    return make_member(company, 'super_admin')


@pytest.fixture
def platform_admin_user(make_user):
    """A user holding the platform-admin capability and no membership."""
    from apps.companies.models import PlatformAdmin
    user = make_user(username='platform-admin')
    PlatformAdmin.objects.create(user=user, role='admin')
    return user
