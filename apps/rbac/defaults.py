"""
Factory grant matrix applied to every new company and by reset-to-defaults.

company_admin is broad, employee is narrow self-service. super_admin has
no rows at all: it bypasses the tables.
"""
from typing import Dict, FrozenSet, Tuple

from apps.rbac.catalog import Action, Module, PermissionCatalog, Role


def _pairs(modules, actions) -> FrozenSet[Tuple[Module, Action]]:
    """Cross product of modules and actions, restricted to catalog pairs."""
    return frozenset(
        (module, action)
        for module in modules
        for action in actions
        if PermissionCatalog.is_valid(module, action)
    )


_COMPANY_ADMIN = frozenset(
    (entry.module, entry.action)
    for entry in PermissionCatalog.entries()
    if (entry.module, entry.action) != (Module.COMPLIANCE, Action.MANAGE)
)

_HR_MANAGER = _pairs(
    [
        Module.DASHBOARD, Module.EMPLOYEES, Module.DEPARTMENTS, Module.LEAVE,
        Module.TIME_TRACKING, Module.DOCUMENTS, Module.RECRUITMENT,
        Module.PERFORMANCE, Module.EXPENSES,
    ],
    [Action.READ, Action.CREATE, Action.UPDATE, Action.APPROVE, Action.VERIFY],
)

_MANAGER = (
    _pairs([Module.DASHBOARD, Module.EMPLOYEES, Module.DEPARTMENTS], [Action.READ])
    | _pairs([Module.LEAVE, Module.TIME_TRACKING, Module.EXPENSES], [Action.READ, Action.APPROVE])
    | _pairs([Module.PERFORMANCE], [Action.READ, Action.CREATE, Action.UPDATE])
)

_EMPLOYEE = (
    _pairs(
        [Module.DASHBOARD, Module.EMPLOYEES, Module.DEPARTMENTS, Module.DOCUMENTS, Module.PERFORMANCE],
        [Action.READ],
    )
    | _pairs([Module.LEAVE, Module.EXPENSES], [Action.READ, Action.CREATE, Action.UPDATE, Action.DELETE])
    | _pairs([Module.TIME_TRACKING], [Action.READ, Action.CREATE])
)

DEFAULT_ROLE_PERMISSIONS: Dict[Role, FrozenSet[Tuple[Module, Action]]] = {
    Role.COMPANY_ADMIN: _COMPANY_ADMIN,
    Role.HR_MANAGER: _HR_MANAGER,
    Role.MANAGER: _MANAGER,
    Role.EMPLOYEE: _EMPLOYEE,
}

# Roles whose grants live in the tables.
EDITABLE_ROLES = tuple(DEFAULT_ROLE_PERMISSIONS)


def default_grants_for(role) -> FrozenSet[Tuple[Module, Action]]:
    """Factory grant set for a role. Empty for super_admin."""
    return DEFAULT_ROLE_PERMISSIONS.get(Role(role), frozenset())
