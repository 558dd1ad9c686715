from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging

logger = logging.getLogger(__name__)


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Perform startup validation checks when Django initializes.

        This ensures permission and security configuration is valid
        before the application starts accepting requests.
        """
        self._validate_rbac_configuration()

        import sys
        if (len(sys.argv) > 1 and sys.argv[1] == 'runserver') or 'gunicorn' in sys.argv[0]:
            self._validate_security_settings()

    def _validate_rbac_configuration(self):
        """Validate the impersonation allowlist and the audit sink path."""
        from django.utils.module_loading import import_string
        from apps.core.exceptions import InvalidPermissionError
        from apps.rbac.catalog import PermissionCatalog

        try:
            PermissionCatalog.impersonation_safe_permissions()
        except InvalidPermissionError as e:
            raise ImproperlyConfigured(
                f"RBAC_IMPERSONATION_SAFE_PERMISSIONS contains an invalid permission: {e.message}"
            )

        sink_path = getattr(settings, 'RBAC_AUDIT_SINK', None)
        if sink_path:
            try:
                import_string(sink_path)
            except ImportError as e:
                raise ImproperlyConfigured(f"RBAC_AUDIT_SINK cannot be imported: {e}")

    def _validate_security_settings(self):
        """Validate general security settings."""
        debug = getattr(settings, 'DEBUG', False)
        secret_key = getattr(settings, 'SECRET_KEY', None)

        # SECRET_KEY must be set
        if not secret_key:
            raise ImproperlyConfigured(
                "SECRET_KEY must be set in environment variables. "
                "Generate with: "
                "python -c \"import secrets; print(secrets.token_urlsafe(50))\""
            )

        # Warn about weak SECRET_KEY
        if len(secret_key) < 50:
            logger.warning(
                f"⚠ SECRET_KEY is shorter than recommended (current: {len(secret_key)}, recommended: 50+)."
            )

        # Reject default/weak keys in production
        if not debug:
            weak_patterns = [
                'your-secret-key',
                'change-me',
                'insecure',
                'django-insecure',
                '12345',
                'password',
            ]

            secret_lower = secret_key.lower()
            for pattern in weak_patterns:
                if pattern in secret_lower:
                    raise ImproperlyConfigured(
                        f"SECRET_KEY appears to be a default or weak value (contains '{pattern}'). "
                        f"Generate a strong key with: "
                        f"python -c \"import secrets; print(secrets.token_urlsafe(50))\""
                    )

            if not getattr(settings, 'SESSION_COOKIE_SECURE', False):
                logger.warning(
                    "⚠ SESSION_COOKIE_SECURE is not enabled in production. "
                    "Session cookies carry impersonation state and should only be sent over HTTPS."
                )

        logger.info("✓ Security settings validated")
