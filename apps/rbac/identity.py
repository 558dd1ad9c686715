"""
Builds the Actor a permission check runs for.
"""
from typing import Optional

from apps.companies.models import CompanyUser
from apps.rbac.catalog import Role
from apps.rbac.resolver import Actor


class IdentityProvider:

    @classmethod
    def actor_for(cls, user, company, impersonation=None) -> Optional[Actor]:
        """
        Actor for an authenticated user acting in a company.

        While impersonating, the platform admin acts as company_admin of
        the impersonated company. Without an active membership there is
        no actor and every check denies. The actor carries the company's
        frozen flag for the read-only gate.
        """
        if user is None or not getattr(user, 'is_authenticated', False) or company is None:
            return None

        if (
            impersonation is not None
            and impersonation.is_impersonating
            and impersonation.acting_as_company_id == str(company.id)
        ):
            return Actor(
                user_id=user.pk,
                role=Role.COMPANY_ADMIN.value,
                is_super_admin=False,
                company_id=company.id,
                company_frozen=company.is_frozen,
            )

        membership = CompanyUser.objects.get_membership(company, user.pk)
        if membership is None:
            return None

        return cls.actor_for_membership(membership)

    @classmethod
    def actor_for_membership(cls, membership) -> Actor:
        return Actor(
            user_id=membership.user_id,
            role=membership.role,
            is_super_admin=membership.role == Role.SUPER_ADMIN,
            company_id=membership.company_id,
            company_frozen=membership.company.is_frozen,
        )
