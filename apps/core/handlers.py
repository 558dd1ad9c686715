"""
DRF exception handler producing the platform error envelope.
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from rest_framework import exceptions as drf_exceptions
from django.http import Http404
from django.core.exceptions import PermissionDenied as DjangoPermissionDenied

from apps.core.exceptions import PlatformException

logger = logging.getLogger(__name__)


def _error_body(code, message, details=None, request_id=None):
    body = {
        'error': {
            'code': code,
            'message': message,
        }
    }
    if details:
        body['error']['details'] = details
    if request_id:
        body['request_id'] = request_id
    return body


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.

    Authorization failures (403) are kept distinct from not-found (404)
    and validation failures (400).
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, PlatformException):
        logger.warning(
            f"API error: {exc.__class__.__name__}: {exc.message}",
            extra={
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
                'code': exc.code,
            }
        )
        return Response(
            _error_body(exc.code, exc.message, exc.details, request_id),
            status=exc.status_code
        )

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"API Exception: {exc.__class__.__name__}",
            extra={
                'exception': str(exc),
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            },
            exc_info=True
        )
        return Response(
            _error_body('INTERNAL_ERROR', 'An unexpected error occurred', request_id=request_id),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    if isinstance(exc, (drf_exceptions.PermissionDenied, DjangoPermissionDenied)):
        code = 'PERMISSION_DENIED'
    elif isinstance(exc, (drf_exceptions.NotFound, Http404)):
        code = 'NOT_FOUND'
    elif isinstance(exc, drf_exceptions.ValidationError):
        code = 'VALIDATION_ERROR'
    elif isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
        code = 'NOT_AUTHENTICATED'
    else:
        code = getattr(exc, 'default_code', 'ERROR').upper()

    if isinstance(exc, drf_exceptions.ValidationError):
        message = 'Invalid request'
        details = response.data
    else:
        message = str(getattr(exc, 'detail', exc))
        details = None

    logger.info(
        f"API Exception: {exc.__class__.__name__}",
        extra={
            'request_id': request_id,
            'path': request.path if request else None,
            'status_code': response.status_code,
        }
    )

    response.data = _error_body(code, message, details, request_id)
    return response
