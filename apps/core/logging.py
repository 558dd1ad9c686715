"""
Custom logging formatters for structured JSON logging.
"""
import json
import logging
import re
import traceback
from datetime import datetime, timezone as dt_timezone
from django.utils import timezone
import sentry_sdk


class PIIMasker:
    """
    Utility class to mask sensitive PII data in logs.
    """

    # Patterns for sensitive data
    PHONE_PATTERN = re.compile(r'\+?\d{10,15}')
    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b')
    API_KEY_PATTERN = re.compile(r'(api[_-]?key|token|secret|password|auth)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)', re.IGNORECASE)
    BANK_ACCOUNT_PATTERN = re.compile(r'\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b')

    # Sensitive field names that should be masked
    SENSITIVE_FIELDS = {
        'phone', 'phone_number', 'mobile',
        'email', 'email_address',
        'password', 'passwd',
        'api_key', 'access_token', 'refresh_token', 'session_key',
        'secret', 'secret_key',
        'national_id', 'tax_id', 'ssn',
        'bank_account', 'iban', 'salary',
    }

    @classmethod
    def mask_phone(cls, text):
        """Mask phone numbers in text."""
        if not isinstance(text, str):
            return text
        return cls.PHONE_PATTERN.sub(lambda m: m.group(0)[:3] + '*' * (len(m.group(0)) - 3), text)

    @classmethod
    def mask_email(cls, text):
        """Mask email addresses in text."""
        if not isinstance(text, str):
            return text

        def mask_email_match(match):
            email = match.group(0)
            parts = email.split('@')
            if len(parts) == 2:
                username, domain = parts
                masked_username = username[0] + '*' * (len(username) - 1) if len(username) > 1 else username
                return f"{masked_username}@{domain}"
            return email
        return cls.EMAIL_PATTERN.sub(mask_email_match, text)

    @classmethod
    def mask_api_keys(cls, text):
        """Mask API keys, tokens, and secrets in text."""
        if not isinstance(text, str):
            return text
        return cls.API_KEY_PATTERN.sub(r'\1: ********', text)

    @classmethod
    def mask_bank_accounts(cls, text):
        """Mask card and account numbers, keeping the last four digits."""
        if not isinstance(text, str):
            return text
        return cls.BANK_ACCOUNT_PATTERN.sub(lambda m: '*' * (len(m.group(0)) - 4) + m.group(0)[-4:], text)

    @classmethod
    def mask_text(cls, text):
        """Apply all masking patterns to text."""
        if not isinstance(text, str):
            return text
        text = cls.mask_bank_accounts(text)
        text = cls.mask_phone(text)
        text = cls.mask_email(text)
        text = cls.mask_api_keys(text)
        return text

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive data in dictionaries."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if any(sensitive in key.lower() for sensitive in cls.SENSITIVE_FIELDS):
                if value and not isinstance(value, (dict, list)):
                    masked[key] = '********'
                else:
                    masked[key] = value
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, list):
                masked[key] = [
                    cls.mask_dict(item) if isinstance(item, dict)
                    else cls.mask_text(item) if isinstance(item, str)
                    else item
                    for item in value
                ]
            elif isinstance(value, str):
                masked[key] = cls.mask_text(value)
            else:
                masked[key] = value

        return masked


class PIIMaskingFilter(logging.Filter):
    """
    Logging filter that masks PII in the message before formatting.

    Used by the plain-text handlers; JSONFormatter masks on its own.
    """

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = PIIMasker.mask_text(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = PIIMasker.mask_dict(record.args)
            else:
                record.args = tuple(
                    PIIMasker.mask_text(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )
        return True


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.
    Includes request_id and company_id from extra fields if available.
    Automatically masks sensitive PII data.
    """

    RESERVED_ATTRS = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs', 'message',
        'pathname', 'process', 'processName', 'relativeCreated',
        'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
        'taskName', 'request_id', 'company_id',
    }

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(dt_timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if hasattr(record, 'request_id'):
            log_data['request_id'] = record.request_id

        if hasattr(record, 'company_id'):
            log_data['company_id'] = str(record.company_id)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': [PIIMasker.mask_text(line) for line in traceback.format_exception(*record.exc_info)],
            }

        # Add any extra fields
        for key, value in record.__dict__.items():
            if key in self.RESERVED_ATTRS or key.startswith('_'):
                continue
            try:
                if isinstance(value, dict):
                    masked_value = PIIMasker.mask_dict(value)
                elif isinstance(value, str):
                    masked_value = PIIMasker.mask_text(value)
                else:
                    masked_value = value

                json.dumps(masked_value)  # Test if serializable
                log_data[key] = masked_value
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class SecurityLogger:
    """
    Centralized logging for authorization-relevant security events.

    Events go to the ``security`` logger with structured data. Critical
    events are also sent to Sentry for alerting.
    """

    # Define which event types are critical and should alert via Sentry
    CRITICAL_EVENTS = {
        'administration_while_impersonating',
        'non_admin_administration_attempt',
        'audit_sink_failure',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event with structured data.

        Args:
            event_type: Type of security event (e.g., 'permission_denied')
            level: Log level ('info', 'warning', 'error', 'critical')
            **context: Additional context data (user_id, company_id, etc.)

        Example:
            >>> SecurityLogger.log_event(
            ...     'impersonation_started',
            ...     level='info',
            ...     admin_user_id=7,
            ...     company_id='6c1d...'
            ... )
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'timestamp': timezone.now().isoformat(),
        }
        log_data.update(context)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(
            f"Security event: {event_type}",
            extra=log_data
        )

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
            )

    @staticmethod
    def log_permission_denied(user_id, company_id, module: str, action: str,
                              source: str, ip_address: str = None):
        """
        Log a denied permission check at an enforcement point.

        Args:
            user_id: ID of the acting user
            company_id: Company the check ran against
            module: Module that was checked
            action: Action that was checked
            source: Provenance of the denial (explicit_deny, none, ...)
            ip_address: IP address of the request
        """
        SecurityLogger.log_event(
            'permission_denied',
            level='warning',
            user_id=str(user_id) if user_id is not None else None,
            company_id=str(company_id) if company_id else None,
            permission=f"{module}:{action}",
            source=source,
            ip_address=ip_address
        )

    @staticmethod
    def log_administration_rejected(user_id, operation: str, reason: str):
        """
        Log a rejected call into the permission administration surface.

        Args:
            user_id: ID of the caller
            operation: Administration operation attempted
            reason: 'not_platform_admin' or 'impersonating'
        """
        event_type = (
            'administration_while_impersonating' if reason == 'impersonating'
            else 'non_admin_administration_attempt'
        )
        SecurityLogger.log_event(
            event_type,
            level='error',
            user_id=str(user_id) if user_id is not None else None,
            operation=operation,
            reason=reason
        )

    @staticmethod
    def log_impersonation(event: str, admin_user_id, company_id, session_id: str,
                          duration_seconds: int = None):
        """
        Log impersonation start or stop.

        Args:
            event: 'started' or 'stopped'
            admin_user_id: Platform administrator performing the impersonation
            company_id: Company being impersonated
            session_id: Impersonation session identifier
            duration_seconds: Session length, on stop
        """
        SecurityLogger.log_event(
            f'impersonation_{event}',
            level='info',
            admin_user_id=str(admin_user_id),
            company_id=str(company_id),
            session_id=session_id,
            duration_seconds=duration_seconds
        )
