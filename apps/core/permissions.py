"""
DRF permission classes and decorators for module permission enforcement.

This module provides:
- HasModulePermission: DRF permission class that asks ``can`` for the
  view's required (module, action)
- @requires_permission: Decorator to declare the required permission on
  views
"""
import logging
from functools import wraps
from rest_framework.permissions import BasePermission

from apps.core.logging import SecurityLogger

logger = logging.getLogger(__name__)


class HasModulePermission(BasePermission):
    """
    DRF permission class that enforces module permissions on API endpoints.

    This permission class:
    1. Reads the required (module, action) from the view
    2. Resolves it through ``explain`` with request.actor and
       request.impersonation (set by CompanyContextMiddleware)
    3. Returns 403 when the decision denies
    4. Verifies objects belong to request.company

    Usage in views:
        class PayrollRunView(APIView):
            permission_classes = [HasModulePermission]
            required_permission = ('payroll', 'read')

    Or use with decorator:
        @requires_permission('payroll', 'read')
        class PayrollRunView(APIView):
            pass
    """

    message = 'You do not have permission to perform this action.'

    def has_permission(self, request, view):
        from apps.rbac.services import explain

        required = getattr(view, 'required_permission', None)

        # If no permission required, allow access
        if not required:
            return True

        module, action = required
        actor = getattr(request, 'actor', None)
        session = getattr(request, 'impersonation', None)
        decision = explain(actor, module, action, session)

        if not decision.allowed:
            company = getattr(request, 'company', None)
            SecurityLogger.log_permission_denied(
                user_id=getattr(request.user, 'pk', None),
                company_id=company.id if company else None,
                module=module,
                action=action,
                source=decision.source,
                ip_address=request.META.get('REMOTE_ADDR')
            )
            logger.warning(
                f"Permission denied: {module}:{action} ({decision.explanation})",
                extra={
                    'view': view.__class__.__name__,
                    'method': request.method,
                    'path': request.path,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            self.message = decision.explanation or self.message
            return False

        return True

    def has_object_permission(self, request, view, obj):
        """Verify that the object belongs to the request's company."""
        request_company = getattr(request, 'company', None)
        if request_company is None:
            return False

        object_company_id = getattr(obj, 'company_id', None)
        if object_company_id is None:
            # Not a company-scoped object; the module check already passed
            return True

        if object_company_id != request_company.id:
            logger.warning(
                "Object permission denied: Object belongs to different company",
                extra={
                    'request_company_id': str(request_company.id),
                    'object_company_id': str(object_company_id),
                    'object_type': obj.__class__.__name__,
                    'view': view.__class__.__name__,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            return False

        return True


def requires_permission(module, action):
    """
    Decorator to declare the required permission on view classes or methods.

    Usage:
        @requires_permission('audit', 'read')
        class AuditLogListView(APIView):
            permission_classes = [HasModulePermission]

    Or on individual methods:
        class LeaveRequestView(APIView):
            permission_classes = [HasModulePermission]

            @requires_permission('leave', 'read')
            def get(self, request):
                pass

    Method-level declarations are enforced when the method runs, since
    DRF checks permissions before dispatching to the handler.
    """
    required = (module, action)

    def decorator(view_or_method):
        if isinstance(view_or_method, type):
            view_or_method.required_permission = required
            return view_or_method

        @wraps(view_or_method)
        def wrapped(self, request, *args, **kwargs):
            self.required_permission = required
            self.check_permissions(request)
            return view_or_method(self, request, *args, **kwargs)

        wrapped.required_permission = required
        return wrapped

    return decorator
