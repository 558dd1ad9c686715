"""
Permission resolution.

Precedence, first match wins:

1. super_admin bypass
2. per-user override (explicit allow / explicit deny)
3. role grant
4. deny

``decide`` is the pure precedence function; ``PermissionResolver`` loads
the two tables and feeds it.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from apps.companies.models import Company
from apps.rbac.catalog import Action, Module, PermissionCatalog, Role, permission_code
from apps.rbac.tables import RolePermissionTable, UserOverrideTable

logger = logging.getLogger(__name__)


class PermissionSource:
    SUPER_ADMIN = 'super_admin'
    EXPLICIT_ALLOW = 'explicit_allow'
    EXPLICIT_DENY = 'explicit_deny'
    ROLE = 'role'
    NONE = 'none'


@dataclass(frozen=True)
class Actor:
    """The identity a permission check runs for."""
    user_id: Optional[int]
    role: str
    is_super_admin: bool = False
    company_id: Optional[str] = None
    company_frozen: bool = False


@dataclass(frozen=True)
class Decision:
    allowed: bool
    source: str
    explanation: str = ''

    def __bool__(self):
        return self.allowed

    def to_dict(self):
        return {
            'allowed': self.allowed,
            'source': self.source,
            'explanation': self.explanation,
        }


@dataclass(frozen=True)
class EffectivePermission:
    module: Module
    action: Action
    decision: Decision

    @property
    def code(self) -> str:
        return permission_code(self.module, self.action)


def decide(actor: Actor, module, action, overrides: Dict[str, bool],
           role_grants: Dict[str, bool]) -> Decision:
    """
    Apply the precedence rules to already-loaded table data.

    Never raises: an unknown pair fails closed.
    """
    if actor.is_super_admin:
        return Decision(True, PermissionSource.SUPER_ADMIN, "Allowed: super admin")

    if not PermissionCatalog.is_valid(module, action):
        logger.warning(
            f"Permission check for unknown pair {module}:{action}",
            extra={'actor_id': actor.user_id, 'company_id': actor.company_id}
        )
        return Decision(False, PermissionSource.NONE, "Unknown permission")

    code = permission_code(module, action)

    override = overrides.get(code)
    if override is True:
        return Decision(True, PermissionSource.EXPLICIT_ALLOW, "Allowed by explicit override")
    if override is False:
        return Decision(False, PermissionSource.EXPLICIT_DENY, "Denied by explicit override")

    grant = role_grants.get(code)
    if grant is True:
        return Decision(True, PermissionSource.ROLE, f"Allowed via role: {actor.role}")
    if grant is False:
        return Decision(False, PermissionSource.ROLE, f"Denied via role: {actor.role}")

    return Decision(False, PermissionSource.NONE, "No grant")


class PermissionResolver:
    """Loads role grants and overrides for an actor and resolves decisions."""

    @classmethod
    def _load(cls, actor: Actor):
        if actor.company_id is None:
            return {}, {}
        company = Company(id=actor.company_id)
        overrides = UserOverrideTable.get(company, actor.user_id) if actor.user_id is not None else {}
        # Actors without a known role fall through to "No grant".
        role_grants = RolePermissionTable.get(company, actor.role) if actor.role in Role.values else {}
        return overrides, role_grants

    @classmethod
    def resolve(cls, actor: Actor, module, action) -> Decision:
        if actor.is_super_admin:
            return decide(actor, module, action, {}, {})
        overrides, role_grants = cls._load(actor)
        return decide(actor, module, action, overrides, role_grants)

    @classmethod
    def resolve_all(cls, actor: Actor) -> List[EffectivePermission]:
        """Decision for every catalog entry, loading each table once."""
        if actor.is_super_admin:
            overrides, role_grants = {}, {}
        else:
            overrides, role_grants = cls._load(actor)
        return [
            EffectivePermission(
                entry.module,
                entry.action,
                decide(actor, entry.module, entry.action, overrides, role_grants)
            )
            for entry in PermissionCatalog.entries()
        ]
