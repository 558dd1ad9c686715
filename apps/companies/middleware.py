"""
Company context middleware for multi-tenant isolation.

Resolves the company a request acts in and the Actor permission checks
run for.
"""
import logging
import uuid

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

from .models import Company, CompanyUser

logger = logging.getLogger(__name__)


class CompanyContextMiddleware(MiddlewareMixin):
    """
    Attach company, actor and impersonation state to the request.

    This middleware:
    1. Loads the session's impersonation state (dropping stale state)
    2. Picks the company: the impersonated one, else the X-COMPANY-ID
       header, else the user's only active membership
    3. Builds request.actor through IdentityProvider

    Must run after SessionMiddleware and AuthenticationMiddleware.
    """

    HEADER = 'X-COMPANY-ID'

    def process_request(self, request):
        from apps.rbac.identity import IdentityProvider
        from apps.rbac.impersonation import ImpersonationService, ImpersonationSessionStore

        request.company = None
        request.actor = None
        request.impersonation = None

        user = getattr(request, 'user', None)
        if user is None or not user.is_authenticated:
            return None

        state = ImpersonationService.validate(user, ImpersonationSessionStore(request.session))
        request.impersonation = state

        if state is not None:
            company = Company.objects.active().filter(id=state.acting_as_company_id).first()
        else:
            company_id = request.headers.get(self.HEADER)
            if company_id:
                try:
                    company = Company.objects.filter(id=uuid.UUID(company_id)).first()
                except ValueError:
                    return self._error_response('INVALID_COMPANY', 'Invalid company ID', status=400)

                if company is None:
                    logger.warning(
                        f"Unknown company ID: {company_id}",
                        extra={'request_id': getattr(request, 'request_id', None)}
                    )
                    return self._error_response('INVALID_COMPANY', 'Invalid company ID', status=404)

                if not company.is_active:
                    return self._error_response('COMPANY_INACTIVE', 'This company is inactive', status=403)
            else:
                company = self._default_company(user)

        request.company = company
        request.actor = IdentityProvider.actor_for(user, company, state)

        logger.debug(
            f"Company context set: {company.slug if company else None}",
            extra={
                'request_id': getattr(request, 'request_id', None),
                'company_id': str(company.id) if company else None,
            }
        )
        return None

    def _default_company(self, user):
        """The user's company when they belong to exactly one."""
        memberships = list(
            CompanyUser.objects.for_user(user)
            .filter(is_active=True, company__is_active=True)
            .select_related('company')[:2]
        )
        if len(memberships) == 1:
            return memberships[0].company
        return None

    def _error_response(self, code, message, status=400, details=None):
        """Generate standardized error response."""
        error_data = {
            'error': {
                'code': code,
                'message': message,
            }
        }

        if details:
            error_data['error']['details'] = details

        return JsonResponse(error_data, status=status)


class RequestIDMiddleware(MiddlewareMixin):
    """
    Inject unique request ID for tracing.

    Generates a unique ID for each request to enable request tracing
    across logs, error tracking, and audit records.
    """

    def process_request(self, request):
        """Generate and inject request ID if not already set."""
        if not hasattr(request, 'request_id'):
            request_id = request.headers.get('X-Request-ID', str(uuid.uuid4()))
            request.request_id = request_id

        return None

    def process_response(self, request, response):
        """Add request ID to response headers."""
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        return response
