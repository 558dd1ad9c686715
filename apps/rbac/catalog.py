"""
Permission catalog: the closed set of valid (module, action) pairs.

Every other RBAC component validates against this registry before it
touches storage. The catalog is built at import time and never changes
while the process runs.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Tuple

from django.conf import settings
from django.db import models

from apps.core.exceptions import InvalidPermissionError


class Module(models.TextChoices):
    DASHBOARD = 'dashboard', 'Dashboard'
    EMPLOYEES = 'employees', 'Employees'
    DEPARTMENTS = 'departments', 'Departments'
    LEAVE = 'leave', 'Leave Management'
    TIME_TRACKING = 'time_tracking', 'Time Tracking'
    DOCUMENTS = 'documents', 'Documents'
    RECRUITMENT = 'recruitment', 'Recruitment'
    PERFORMANCE = 'performance', 'Performance'
    PAYROLL = 'payroll', 'Payroll'
    EXPENSES = 'expenses', 'Expenses'
    COMPLIANCE = 'compliance', 'Compliance'
    AUDIT = 'audit', 'Audit Logs'
    INTEGRATIONS = 'integrations', 'Integrations'
    SETTINGS = 'settings', 'Settings'
    USERS = 'users', 'Users'
    SHIFTS = 'shifts', 'Shift Management'
    ATTENDANCE = 'attendance', 'Attendance'
    MY_TEAM = 'my_team', 'My Team'


class Action(models.TextChoices):
    READ = 'read', 'View'
    CREATE = 'create', 'Create'
    UPDATE = 'update', 'Update'
    DELETE = 'delete', 'Delete'
    APPROVE = 'approve', 'Approve'
    PROCESS = 'process', 'Process'
    VERIFY = 'verify', 'Verify'
    EXPORT = 'export', 'Export'
    MANAGE = 'manage', 'Manage'
    LOCK = 'lock', 'Lock'


class Role(models.TextChoices):
    SUPER_ADMIN = 'super_admin', 'Super Admin'
    COMPANY_ADMIN = 'company_admin', 'Company Admin'
    HR_MANAGER = 'hr_manager', 'HR Manager'
    MANAGER = 'manager', 'Manager'
    EMPLOYEE = 'employee', 'Employee'


# Actions that only read data. Everything else changes tenant state.
READ_ONLY_ACTIONS = frozenset({Action.READ, Action.EXPORT})

DEFAULT_IMPERSONATION_SAFE_PERMISSIONS = (
    'settings:read',
    'users:read',
)


@dataclass(frozen=True)
class CatalogEntry:
    module: Module
    action: Action
    name: str
    description: str

    @property
    def code(self) -> str:
        return permission_code(self.module, self.action)


def permission_code(module, action) -> str:
    """Build the canonical 'module:action' code."""
    return f"{Module(module).value}:{Action(action).value}"


# (module, action, name, description)
_CATALOG_DEFINITION = [
    (Module.DASHBOARD, Action.READ, 'View Dashboard', 'Access personal dashboard'),

    (Module.EMPLOYEES, Action.READ, 'View Employees', 'View employee records'),
    (Module.EMPLOYEES, Action.CREATE, 'Create Employees', 'Add new employees'),
    (Module.EMPLOYEES, Action.UPDATE, 'Update Employees', 'Edit employee information'),
    (Module.EMPLOYEES, Action.DELETE, 'Delete Employees', 'Remove employee records'),
    (Module.EMPLOYEES, Action.EXPORT, 'Export Employees', 'Export employee data to CSV/Excel'),

    (Module.DEPARTMENTS, Action.READ, 'View Departments', 'View department structure'),
    (Module.DEPARTMENTS, Action.CREATE, 'Create Departments', 'Add new departments'),
    (Module.DEPARTMENTS, Action.UPDATE, 'Update Departments', 'Edit department info'),
    (Module.DEPARTMENTS, Action.DELETE, 'Delete Departments', 'Remove departments'),

    (Module.LEAVE, Action.READ, 'View Leave', 'View leave requests'),
    (Module.LEAVE, Action.CREATE, 'Request Leave', 'Submit leave requests'),
    (Module.LEAVE, Action.UPDATE, 'Update Leave', 'Modify leave requests'),
    (Module.LEAVE, Action.DELETE, 'Cancel Leave', 'Cancel leave requests'),
    (Module.LEAVE, Action.APPROVE, 'Approve Leave', 'Approve/reject leave requests'),

    (Module.TIME_TRACKING, Action.READ, 'View Time', 'View time entries'),
    (Module.TIME_TRACKING, Action.CREATE, 'Clock In/Out', 'Create time entries'),
    (Module.TIME_TRACKING, Action.UPDATE, 'Update Time', 'Edit time entries'),
    (Module.TIME_TRACKING, Action.DELETE, 'Delete Time', 'Remove time entries'),
    (Module.TIME_TRACKING, Action.APPROVE, 'Approve Time', 'Approve time corrections'),

    (Module.DOCUMENTS, Action.READ, 'View Documents', 'View employee documents'),
    (Module.DOCUMENTS, Action.CREATE, 'Upload Documents', 'Upload new documents'),
    (Module.DOCUMENTS, Action.UPDATE, 'Update Documents', 'Edit document info'),
    (Module.DOCUMENTS, Action.DELETE, 'Delete Documents', 'Remove documents'),
    (Module.DOCUMENTS, Action.VERIFY, 'Verify Documents', 'Verify document authenticity'),
    (Module.DOCUMENTS, Action.PROCESS, 'Process Documents', 'Run OCR and automated processing on documents'),

    (Module.RECRUITMENT, Action.READ, 'View Recruitment', 'View jobs and candidates'),
    (Module.RECRUITMENT, Action.CREATE, 'Create Jobs', 'Post new job openings'),
    (Module.RECRUITMENT, Action.UPDATE, 'Update Recruitment', 'Edit jobs and candidates'),
    (Module.RECRUITMENT, Action.DELETE, 'Delete Recruitment', 'Remove jobs and candidates'),
    (Module.RECRUITMENT, Action.APPROVE, 'Manage Offers', 'Create and send offers'),

    (Module.PERFORMANCE, Action.READ, 'View Performance', 'View performance reviews'),
    (Module.PERFORMANCE, Action.CREATE, 'Create Reviews', 'Create performance reviews'),
    (Module.PERFORMANCE, Action.UPDATE, 'Update Reviews', 'Edit performance reviews'),
    (Module.PERFORMANCE, Action.DELETE, 'Delete Reviews', 'Remove performance reviews'),
    (Module.PERFORMANCE, Action.APPROVE, 'Finalize Reviews', 'Complete performance reviews'),

    (Module.PAYROLL, Action.READ, 'View Payroll', 'View payroll runs'),
    (Module.PAYROLL, Action.CREATE, 'Create Payroll', 'Create payroll runs'),
    (Module.PAYROLL, Action.UPDATE, 'Update Payroll', 'Edit payroll entries'),
    (Module.PAYROLL, Action.DELETE, 'Delete Payroll', 'Remove payroll runs'),
    (Module.PAYROLL, Action.PROCESS, 'Process Payroll', 'Run and finalize payroll'),
    (Module.PAYROLL, Action.APPROVE, 'Approve Payroll', 'Approve payroll for processing'),
    (Module.PAYROLL, Action.EXPORT, 'Export Payroll', 'Export payroll data and reports'),

    (Module.EXPENSES, Action.READ, 'View Expenses', 'View expense claims'),
    (Module.EXPENSES, Action.CREATE, 'Submit Expenses', 'Submit expense claims'),
    (Module.EXPENSES, Action.UPDATE, 'Update Expenses', 'Edit expense claims'),
    (Module.EXPENSES, Action.DELETE, 'Delete Expenses', 'Remove expense claims'),
    (Module.EXPENSES, Action.APPROVE, 'Approve Expenses', 'Approve/reject expenses'),

    (Module.COMPLIANCE, Action.READ, 'View Compliance', 'View compliance status'),
    (Module.COMPLIANCE, Action.MANAGE, 'Manage Compliance', 'Configure compliance settings'),

    (Module.AUDIT, Action.READ, 'View Audit Logs', 'Access audit trails'),
    (Module.AUDIT, Action.EXPORT, 'Export Audit Logs', 'Export audit logs and security events'),

    (Module.INTEGRATIONS, Action.READ, 'View Integrations', 'View connected services'),
    (Module.INTEGRATIONS, Action.MANAGE, 'Manage Integrations', 'Configure integrations'),

    (Module.SETTINGS, Action.READ, 'View Settings', 'View company settings'),
    (Module.SETTINGS, Action.UPDATE, 'Update Settings', 'Modify company settings'),

    (Module.USERS, Action.READ, 'View Users', 'View user accounts'),
    (Module.USERS, Action.CREATE, 'Invite Users', 'Invite new users'),
    (Module.USERS, Action.UPDATE, 'Update Users', 'Edit user roles and permissions'),
    (Module.USERS, Action.DELETE, 'Remove Users', 'Remove user access'),

    (Module.SHIFTS, Action.READ, 'View Shifts', 'View shift configurations'),
    (Module.SHIFTS, Action.CREATE, 'Create Shifts', 'Create new shift templates'),
    (Module.SHIFTS, Action.UPDATE, 'Update Shifts', 'Modify shift configurations'),
    (Module.SHIFTS, Action.DELETE, 'Delete Shifts', 'Remove shift templates'),
    (Module.SHIFTS, Action.MANAGE, 'Manage Shift Assignments', 'Assign/reassign employee shifts'),

    (Module.ATTENDANCE, Action.READ, 'View Attendance', 'View attendance summaries'),
    (Module.ATTENDANCE, Action.CREATE, 'Generate Attendance', 'Generate attendance summaries'),
    (Module.ATTENDANCE, Action.UPDATE, 'Update Attendance', 'Modify attendance records'),
    (Module.ATTENDANCE, Action.LOCK, 'Lock Attendance', 'Lock attendance for payroll'),
    (Module.ATTENDANCE, Action.EXPORT, 'Export Attendance', 'Export attendance reports'),

    (Module.MY_TEAM, Action.READ, 'View Team', 'View team members and their status'),
    (Module.MY_TEAM, Action.APPROVE, 'Approve Team Requests', 'Approve leave requests and expenses from team'),
    (Module.MY_TEAM, Action.MANAGE, 'Manage Team', 'Manage team assignments and settings'),
]


_ENTRIES: Tuple[CatalogEntry, ...] = tuple(
    CatalogEntry(module, action, name, description)
    for module, action, name, description in _CATALOG_DEFINITION
)
_BY_PAIR: Dict[Tuple[Module, Action], CatalogEntry] = {
    (entry.module, entry.action): entry for entry in _ENTRIES
}
_ACTIONS_BY_MODULE: Dict[Module, FrozenSet[Action]] = {
    module: frozenset(entry.action for entry in _ENTRIES if entry.module == module)
    for module in Module
}


class PermissionCatalog:
    """
    Static registry of valid (module, action) pairs.

    Modules and actions arriving from requests are raw strings; ``coerce``
    turns them into the closed enums or raises ``InvalidPermissionError``.
    """

    _entries = _ENTRIES
    _by_pair = _BY_PAIR
    _actions_by_module = _ACTIONS_BY_MODULE

    @classmethod
    def entries(cls) -> Tuple[CatalogEntry, ...]:
        """All catalog entries in declaration order."""
        return cls._entries

    @classmethod
    def list_modules(cls) -> Tuple[Module, ...]:
        return tuple(Module)

    @classmethod
    def list_actions(cls, module) -> FrozenSet[Action]:
        try:
            return cls._actions_by_module[Module(module)]
        except ValueError:
            raise InvalidPermissionError(
                f"Unknown module '{module}'",
                details={'module': str(module)}
            )

    @classmethod
    def is_valid(cls, module, action) -> bool:
        try:
            return (Module(module), Action(action)) in cls._by_pair
        except ValueError:
            return False

    @classmethod
    def coerce(cls, module, action) -> Tuple[Module, Action]:
        """
        Convert raw values to catalog enums.

        Raises:
            InvalidPermissionError: if the module, the action, or the pair
                is not in the catalog.
        """
        try:
            pair = (Module(module), Action(action))
        except ValueError:
            pair = None
        if pair is None or pair not in cls._by_pair:
            raise InvalidPermissionError(
                f"Permission '{module}:{action}' is not a valid catalog permission",
                details={'module': str(module), 'action': str(action)}
            )
        return pair

    @classmethod
    def require_valid(cls, module, action) -> str:
        """Validate a pair and return its permission code."""
        module, action = cls.coerce(module, action)
        return permission_code(module, action)

    @classmethod
    def get(cls, module, action) -> CatalogEntry:
        return cls._by_pair[cls.coerce(module, action)]

    @classmethod
    def is_mutating(cls, action) -> bool:
        """True for every action that changes tenant data."""
        return Action(action) not in READ_ONLY_ACTIONS

    @classmethod
    def impersonation_safe_permissions(cls) -> FrozenSet[Tuple[Module, Action]]:
        """Pairs that stay available while a session impersonates a company."""
        codes: Iterable[str] = getattr(
            settings,
            'RBAC_IMPERSONATION_SAFE_PERMISSIONS',
            DEFAULT_IMPERSONATION_SAFE_PERMISSIONS
        )
        pairs = set()
        for code in codes:
            module, _, action = code.partition(':')
            pairs.add(cls.coerce(module, action))
        return frozenset(pairs)
