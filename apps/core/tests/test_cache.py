"""
Tests for caching utilities.
"""
import uuid
import pytest
from unittest.mock import patch

from django.core.cache import cache
from apps.core.cache import (
    CacheService, CacheKeys, CacheTTL, PermissionCacheInvalidator
)


class TestCacheService:
    """Test CacheService basic operations."""

    def test_get_set(self):
        """Test basic get and set operations."""
        key = "test:key"
        value = {"leave:approve": True}

        assert CacheService.set(key, value, ttl=60) is True
        assert CacheService.get(key) == value

    def test_get_default(self):
        assert CacheService.get("nonexistent:key", default="fallback") == "fallback"

    def test_delete(self):
        CacheService.set("test:key", "value")

        assert CacheService.delete("test:key") is True
        assert CacheService.get("test:key") is None

    def test_get_or_set(self):
        key = "test:key"

        assert CacheService.get_or_set(key, lambda: "computed", ttl=60) == "computed"
        # Second call should use cache
        assert CacheService.get_or_set(key, lambda: "different", ttl=60) == "computed"

    def test_get_or_set_caches_empty_dict(self):
        calls = []

        def load():
            calls.append(1)
            return {}

        CacheService.get_or_set("empty:key", load)
        CacheService.get_or_set("empty:key", load)

        assert len(calls) == 1

    def test_backend_errors_fall_back_to_default(self):
        with patch('apps.core.cache.cache') as mock_cache:
            mock_cache.get.side_effect = ConnectionError("redis down")

            assert CacheService.get("any:key", default="fallback") == "fallback"


class TestCacheKeys:
    """Test cache key formatting."""

    def test_role_grants_key_carries_generation(self):
        key = CacheKeys.role_grants('c1', 'manager')

        generation = cache.get("rbac:role_grants:c1:manager:generation")
        assert key == f"rbac:role_grants:c1:manager:v{generation}"

    def test_user_overrides_key_carries_generation(self):
        key = CacheKeys.user_overrides('c1', 7)

        generation = cache.get("rbac:user_overrides:c1:7:generation")
        assert key == f"rbac:user_overrides:c1:7:v{generation}"

    def test_key_is_stable_between_writes(self):
        assert CacheKeys.role_grants('c1', 'manager') == CacheKeys.role_grants('c1', 'manager')

    def test_no_key_when_cache_unavailable(self):
        with patch('apps.core.cache.cache') as mock_cache:
            mock_cache.get.side_effect = ConnectionError("redis down")

            assert CacheKeys.role_grants('c1', 'manager') is None

    def test_ttl(self):
        assert CacheTTL.RBAC_GRANTS == 300


class TestGenerations:

    def test_bump_advances(self):
        key = "rbac:role_grants:c1:employee:generation"
        first = CacheService.get_generation(key)

        assert CacheService.bump_generation(key) == first + 1

    def test_bump_of_missing_counter_seeds_it(self):
        key = "rbac:role_grants:c2:employee:generation"

        generation = CacheService.bump_generation(key)

        assert generation is not None
        assert cache.get(key) == generation

    def test_bump_errors_are_logged_not_raised(self):
        with patch('apps.core.cache.cache') as mock_cache:
            mock_cache.incr.side_effect = ConnectionError("redis down")

            assert CacheService.bump_generation("any:generation") is None

    def test_get_or_set_without_key_skips_cache(self):
        assert CacheService.get_or_set(None, lambda: {'leave:read': True}) == {'leave:read': True}


@pytest.mark.django_db
class TestPermissionCacheInvalidator:

    def test_invalidate_role_grants(self):
        company_id = uuid.uuid4()
        key = CacheKeys.role_grants(company_id, 'employee')
        cache.set(key, {'leave:create': True})

        PermissionCacheInvalidator.invalidate_role_grants(company_id, 'employee')

        assert CacheKeys.role_grants(company_id, 'employee') != key

    def test_invalidate_user_overrides(self):
        company_id = uuid.uuid4()
        key = CacheKeys.user_overrides(company_id, 3)
        other = CacheKeys.user_overrides(company_id, 4)

        PermissionCacheInvalidator.invalidate_user_overrides(company_id, 3)

        assert CacheKeys.user_overrides(company_id, 3) != key
        assert CacheKeys.user_overrides(company_id, 4) == other

    def test_bumps_again_on_commit(self):
        company_id = uuid.uuid4()
        generation_key = f"rbac:role_grants:{company_id}:employee:generation"
        start = CacheService.get_generation(generation_key)

        with patch('apps.core.cache.transaction.on_commit') as on_commit:
            PermissionCacheInvalidator.invalidate_role_grants(company_id, 'employee')
            assert cache.get(generation_key) == start + 1

            on_commit.call_args[0][0]()

        assert cache.get(generation_key) == start + 2
