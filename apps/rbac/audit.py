"""
Audit sinks for permission administration events.

A sink receives one call per committed change. Sink failures never block
the change that produced them.
"""
import logging

import sentry_sdk
from django.conf import settings
from django.db import transaction
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_SINK = 'apps.rbac.audit.DatabaseAuditSink'


def get_client_ip(request):
    """Extract client IP from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


class AuditSink:
    """Interface for audit event consumers."""

    def record(self, event_type, payload, *, company=None, user=None,
               target_type='', target_id='', request=None):
        raise NotImplementedError

    def emit(self, event_type, payload, **kwargs):
        """
        Record an event without ever raising.

        Failures are logged at error level and reported to Sentry.
        """
        try:
            self.record(event_type, payload, **kwargs)
        except Exception as e:
            company = kwargs.get('company')
            logger.error(
                f"Failed to record audit event {event_type}: {str(e)}",
                extra={
                    'event_type': event_type,
                    'company_id': str(company.id) if company else None,
                },
                exc_info=True
            )
            sentry_sdk.capture_exception(e)


class DatabaseAuditSink(AuditSink):
    """Writes events to AuditLog."""

    def record(self, event_type, payload, *, company=None, user=None,
               target_type='', target_id='', request=None):
        from apps.rbac.models import AuditLog

        if user is not None and not user.is_authenticated:
            user = None

        log_data = {
            'action': event_type,
            'company': company,
            'user': user,
            'target_type': target_type,
            'target_id': str(target_id) if target_id else '',
            'diff': payload or {},
        }

        if request is not None:
            log_data['ip_address'] = get_client_ip(request)
            log_data['user_agent'] = request.META.get('HTTP_USER_AGENT', '')
            log_data['request_id'] = getattr(request, 'request_id', None) or ''

        # Savepoint keeps the outer mutation usable if the insert fails.
        with transaction.atomic():
            return AuditLog.objects.create(**log_data)


class LoggingAuditSink(AuditSink):
    """Writes events to the ``apps.rbac.audit`` logger only."""

    def record(self, event_type, payload, *, company=None, user=None,
               target_type='', target_id='', request=None):
        logger.info(
            f"Audit event: {event_type}",
            extra={
                'event_type': event_type,
                'company_id': str(company.id) if company else None,
                'actor_id': user.pk if user is not None else None,
                'target_type': target_type,
                'target_id': str(target_id) if target_id else None,
                'payload': payload,
            }
        )


def get_audit_sink():
    """Instantiate the sink named by the RBAC_AUDIT_SINK setting."""
    path = getattr(settings, 'RBAC_AUDIT_SINK', DEFAULT_AUDIT_SINK)
    return import_string(path)()
