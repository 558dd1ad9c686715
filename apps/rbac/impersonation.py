"""
Platform administrator impersonation.

A platform admin can view a company as its company_admin. While the
session is impersonating, mutating actions are denied unless the pair is
on the impersonation-safe allowlist. Stored grants are never touched.

The same gate keeps frozen companies read-only, for every role and with
no allowlist.
"""
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional

import sentry_sdk
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from apps.companies.models import Company, PlatformAdmin
from apps.core.exceptions import ImpersonationStateError, NotPlatformAdministratorError, ValidationError
from apps.core.logging import SecurityLogger
from apps.rbac.audit import get_client_ip
from apps.rbac.catalog import Action, Module, PermissionCatalog
from apps.rbac.models import ImpersonationLog
from apps.rbac.resolver import Actor, Decision, PermissionResolver, PermissionSource

logger = logging.getLogger(__name__)


@dataclass
class ImpersonationState:
    is_impersonating: bool = False
    acting_as_company_id: Optional[str] = None
    started_at: Optional[datetime] = None
    session_id: Optional[str] = None
    admin_user_id: Optional[int] = None
    company_name: str = ''

    def to_dict(self):
        data = asdict(self)
        data['started_at'] = self.started_at.isoformat() if self.started_at else None
        return data

    @classmethod
    def from_dict(cls, data):
        data = dict(data)
        started_at = data.get('started_at')
        if isinstance(started_at, str):
            data['started_at'] = parse_datetime(started_at)
        fields = cls.__dataclass_fields__
        return cls(**{key: value for key, value in data.items() if key in fields})

    @property
    def duration_seconds(self):
        if not self.started_at:
            return None
        return int((timezone.now() - self.started_at).total_seconds())


class ImpersonationSessionStore:
    """Keeps ImpersonationState in the Django session."""

    SESSION_KEY = 'impersonation'

    def __init__(self, session):
        self.session = session

    def load(self) -> Optional[ImpersonationState]:
        data = self.session.get(self.SESSION_KEY)
        if not data:
            return None
        return ImpersonationState.from_dict(data)

    def save(self, state: ImpersonationState):
        self.session[self.SESSION_KEY] = state.to_dict()
        self.session.modified = True

    def clear(self):
        if self.SESSION_KEY in self.session:
            del self.session[self.SESSION_KEY]
            self.session.modified = True


class ImpersonationGate:
    """Read-only enforcement in front of the resolver."""

    READ_ONLY_EXPLANATION = "Read-only while impersonating"
    FROZEN_EXPLANATION = "Read-only while the company is frozen"

    @classmethod
    def _is_mutating(cls, action) -> bool:
        # Unknown actions are left for the resolver to fail closed.
        try:
            return PermissionCatalog.is_mutating(action)
        except ValueError:
            return False

    @classmethod
    def _is_allowlisted(cls, module, action) -> bool:
        try:
            pair = (Module(module), Action(action))
        except ValueError:
            return False
        return pair in PermissionCatalog.impersonation_safe_permissions()

    @classmethod
    def check_and_resolve(cls, session: Optional[ImpersonationState], actor: Actor,
                          module, action) -> Decision:
        """
        Resolve a permission for an actor under the given session state.

        Args:
            session: The caller's ImpersonationState, or None
            actor: Identity to resolve for
            module: Module being accessed
            action: Action being performed

        Returns:
            Decision; the resolver is not consulted for blocked writes.
        """
        mutating = cls._is_mutating(action)
        if actor.company_frozen and mutating:
            return Decision(False, PermissionSource.NONE, cls.FROZEN_EXPLANATION)
        if (
            session is not None
            and session.is_impersonating
            and mutating
            and not cls._is_allowlisted(module, action)
        ):
            return Decision(False, PermissionSource.NONE, cls.READ_ONLY_EXPLANATION)
        return PermissionResolver.resolve(actor, module, action)


class ImpersonationService:
    """Starts and stops impersonation sessions."""

    @classmethod
    def start(cls, user, company, store: ImpersonationSessionStore, request=None) -> ImpersonationState:
        """
        Begin impersonating a company.

        Raises:
            NotPlatformAdministratorError: if user is not an active platform admin
            ImpersonationStateError: if the session is already impersonating
            ValidationError: if the company is inactive
        """
        if not PlatformAdmin.objects.is_platform_admin(user):
            SecurityLogger.log_administration_rejected(
                getattr(user, 'pk', None), 'impersonation_start', 'not_platform_admin'
            )
            raise NotPlatformAdministratorError("Only platform administrators can impersonate companies")

        current = store.load()
        if current is not None and current.is_impersonating:
            raise ImpersonationStateError(
                "Session is already impersonating a company; stop it first",
                details={'company_id': current.acting_as_company_id}
            )

        if not company.is_active:
            raise ValidationError(
                "Cannot impersonate an inactive company",
                details={'company_id': str(company.id)}
            )

        state = ImpersonationState(
            is_impersonating=True,
            acting_as_company_id=str(company.id),
            started_at=timezone.now(),
            session_id=str(uuid.uuid4()),
            admin_user_id=user.pk,
            company_name=company.name,
        )
        store.save(state)

        cls._write_log(
            user, company, 'start', state,
            request=request,
            metadata={'company_slug': company.slug}
        )
        SecurityLogger.log_impersonation('started', user.pk, company.id, state.session_id)
        return state

    @classmethod
    def stop(cls, user, store: ImpersonationSessionStore, request=None) -> Optional[ImpersonationState]:
        """
        End the current impersonation session.

        Returns:
            The ended state, or None if the session was not impersonating.
        """
        state = store.load()
        store.clear()
        if state is None or not state.is_impersonating:
            return None

        duration = state.duration_seconds
        company = Company.objects.filter(id=state.acting_as_company_id).first()
        cls._write_log(
            user, company, 'end', state,
            request=request,
            duration_seconds=duration,
            metadata={'company_slug': company.slug if company else None}
        )
        SecurityLogger.log_impersonation(
            'stopped', user.pk, state.acting_as_company_id, state.session_id,
            duration_seconds=duration
        )
        return state

    @classmethod
    def validate(cls, user, store: ImpersonationSessionStore) -> Optional[ImpersonationState]:
        """
        Current state, cleared if it no longer belongs to this user.

        A session is dropped when the user changed or lost the
        platform-admin capability.
        """
        state = store.load()
        if state is None or not state.is_impersonating:
            return None
        if (
            not getattr(user, 'is_authenticated', False)
            or state.admin_user_id != user.pk
            or not PlatformAdmin.objects.is_platform_admin(user)
        ):
            logger.warning(
                "Dropping stale impersonation state",
                extra={'session_id': state.session_id, 'admin_user_id': state.admin_user_id}
            )
            store.clear()
            return None
        return state

    @classmethod
    def _write_log(cls, user, company, action, state, request=None, duration_seconds=None, metadata=None):
        try:
            with transaction.atomic():
                ImpersonationLog.objects.create(
                    admin_user=user,
                    company=company,
                    company_name=state.company_name,
                    action=action,
                    session_id=state.session_id,
                    user_agent=request.META.get('HTTP_USER_AGENT', '') if request else '',
                    ip_address=get_client_ip(request) if request else None,
                    duration_seconds=duration_seconds,
                    metadata=metadata or {},
                )
        except Exception as e:
            logger.error(
                f"Failed to log impersonation {action}: {str(e)}",
                extra={'session_id': state.session_id},
                exc_info=True
            )
            sentry_sdk.capture_exception(e)
