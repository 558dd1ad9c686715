"""
RBAC signals for automatic grant seeding.

Seeds the factory role matrix when a new company is created.
"""
import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender='companies.Company')
def seed_role_permissions_on_company_creation(sender, instance, created, raw=False, **kwargs):
    """Seed default grants for every editable role of a new company."""
    if not created or raw:
        # Only run for new companies, and never while loading fixtures
        return

    from apps.rbac.tables import RolePermissionTable

    count = RolePermissionTable.initialize_company(instance)
    logger.info(
        f"Seeded {count} default role grants for new company {instance.slug}",
        extra={'company_id': instance.id}
    )
