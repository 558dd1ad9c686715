"""
Caching utilities for permission lookups.

Provides centralized cache keys, TTLs and a thin wrapper around the
Django cache with consistent logging.

Permission data keys carry a generation number. Writers bump the
generation instead of deleting data, so a reader that loaded rows under
an older generation can only ever store them under a key nobody reads.
"""
import logging
import time
from typing import Any, Callable, Optional
from django.core.cache import cache
from django.db import transaction

logger = logging.getLogger(__name__)


class CacheKeys:
    """Centralized cache key definitions with consistent naming."""

    # Role grant matrix per company (TTL: 5 minutes)
    ROLE_GRANTS = "rbac:role_grants:{company_id}:{role}:v{generation}"
    ROLE_GRANTS_GENERATION = "rbac:role_grants:{company_id}:{role}:generation"

    # Per-user overrides per company (TTL: 5 minutes)
    USER_OVERRIDES = "rbac:user_overrides:{company_id}:{user_id}:v{generation}"
    USER_OVERRIDES_GENERATION = "rbac:user_overrides:{company_id}:{user_id}:generation"

    @classmethod
    def format(cls, key_template: str, **kwargs) -> str:
        """Format a cache key with provided parameters."""
        return key_template.format(**kwargs)

    @classmethod
    def role_grants(cls, company_id, role: str) -> Optional[str]:
        """Current data key for a role grant matrix, or None if the cache is unavailable."""
        generation = CacheService.get_generation(
            cls.format(cls.ROLE_GRANTS_GENERATION, company_id=company_id, role=role)
        )
        if generation is None:
            return None
        return cls.format(cls.ROLE_GRANTS, company_id=company_id, role=role, generation=generation)

    @classmethod
    def user_overrides(cls, company_id, user_id) -> Optional[str]:
        """Current data key for a user's overrides, or None if the cache is unavailable."""
        generation = CacheService.get_generation(
            cls.format(cls.USER_OVERRIDES_GENERATION, company_id=company_id, user_id=user_id)
        )
        if generation is None:
            return None
        return cls.format(cls.USER_OVERRIDES, company_id=company_id, user_id=user_id, generation=generation)


class CacheTTL:
    """Cache TTL (Time To Live) constants in seconds."""

    RBAC_GRANTS = 300  # 5 minutes


def _generation_seed() -> int:
    # A lost counter restarts above every number it could have reached.
    return time.time_ns()


class CacheService:
    """Service for managing cached data with consistent patterns."""

    @staticmethod
    def get(key: str, default: Any = None) -> Any:
        """
        Get value from cache.

        Args:
            key: Cache key
            default: Default value if key not found

        Returns:
            Cached value or default
        """
        try:
            value = cache.get(key, default)
            if value is not None:
                logger.debug(f"Cache HIT: {key}")
            else:
                logger.debug(f"Cache MISS: {key}")
            return value
        except Exception as e:
            logger.error(f"Cache get error for key {key}: {str(e)}")
            return default

    @staticmethod
    def set(key: str, value: Any, ttl: int = None) -> bool:
        """Set value in cache. Returns True if successful."""
        try:
            cache.set(key, value, timeout=ttl)
            logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"Cache set error for key {key}: {str(e)}")
            return False

    @staticmethod
    def delete(key: str) -> bool:
        """Delete value from cache. Returns True if successful."""
        try:
            cache.delete(key)
            logger.debug(f"Cache DELETE: {key}")
            return True
        except Exception as e:
            logger.error(f"Cache delete error for key {key}: {str(e)}")
            return False

    @staticmethod
    def get_or_set(key: Optional[str], default_func: Callable, ttl: int = None) -> Any:
        """
        Get value from cache or set it using default_func if not found.

        Args:
            key: Cache key; None bypasses the cache
            default_func: Function to call if cache miss
            ttl: Time to live in seconds (optional)

        Returns:
            Cached or computed value
        """
        if key is None:
            return default_func()
        value = CacheService.get(key)
        if value is None:
            value = default_func()
            if value is not None:
                CacheService.set(key, value, ttl)
        return value

    @staticmethod
    def get_generation(key: str) -> Optional[int]:
        """
        Current value of a generation counter, seeding it when absent.

        Returns:
            The generation, or None when the cache backend fails
        """
        try:
            generation = cache.get(key)
            if generation is None:
                cache.add(key, _generation_seed(), timeout=None)
                generation = cache.get(key)
            return generation
        except Exception as e:
            logger.error(f"Cache generation read error for key {key}: {str(e)}")
            return None

    @staticmethod
    def bump_generation(key: str) -> Optional[int]:
        """Advance a generation counter. Returns the new generation, or None on failure."""
        try:
            try:
                generation = cache.incr(key)
            except ValueError:
                if cache.add(key, _generation_seed(), timeout=None):
                    generation = cache.get(key)
                else:
                    generation = cache.incr(key)
            logger.debug(f"Cache GENERATION: {key} -> {generation}")
            return generation
        except Exception as e:
            logger.error(f"Cache generation bump error for key {key}: {str(e)}")
            return None


class PermissionCacheInvalidator:
    """Invalidates permission caches on every write that touches them."""

    @staticmethod
    def _invalidate(generation_key: str):
        # Bump now so the writing transaction reads its own changes, and
        # again after commit so nothing loaded before the commit stays live.
        CacheService.bump_generation(generation_key)
        transaction.on_commit(lambda: CacheService.bump_generation(generation_key))

    @staticmethod
    def invalidate_role_grants(company_id, role: str):
        """Invalidate the cached grant matrix for one role of one company."""
        PermissionCacheInvalidator._invalidate(CacheKeys.format(
            CacheKeys.ROLE_GRANTS_GENERATION,
            company_id=company_id,
            role=role
        ))
        logger.info(f"Invalidated role grants cache for role {role} in company {company_id}")

    @staticmethod
    def invalidate_user_overrides(company_id, user_id):
        """Invalidate the cached overrides of one user in one company."""
        PermissionCacheInvalidator._invalidate(CacheKeys.format(
            CacheKeys.USER_OVERRIDES_GENERATION,
            company_id=company_id,
            user_id=user_id
        ))
        logger.info(f"Invalidated user overrides cache for user {user_id} in company {company_id}")
