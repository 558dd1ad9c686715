"""
Tests for the platform exception taxonomy and the DRF exception handler.
"""
from django.http import Http404
from django.test import RequestFactory
from rest_framework import exceptions as drf_exceptions

from apps.core.exceptions import (
    CannotOverrideSuperAdminError,
    ConflictError,
    ImmutableRoleError,
    ImpersonationStateError,
    ImpersonationWriteForbiddenError,
    InvalidPermissionError,
    LastAdministratorLockoutError,
    MembershipNotFoundError,
    NotPlatformAdministratorError,
    PermissionDeniedError,
    ValidationError,
)
from apps.core.handlers import custom_exception_handler


def _context():
    request = RequestFactory().get('/v1/permissions')
    request.request_id = 'req-9'
    return {'request': request}


class TestExceptionTaxonomy:

    def test_status_codes(self):
        assert InvalidPermissionError('x').status_code == 400
        assert ImmutableRoleError('x').status_code == 400
        assert CannotOverrideSuperAdminError('x').status_code == 400
        assert NotPlatformAdministratorError('x').status_code == 403
        assert ImpersonationWriteForbiddenError('x').status_code == 403
        assert MembershipNotFoundError('x').status_code == 404
        assert LastAdministratorLockoutError('x').status_code == 409
        assert ImpersonationStateError('x').status_code == 409

    def test_hierarchy(self):
        assert issubclass(InvalidPermissionError, ValidationError)
        assert issubclass(NotPlatformAdministratorError, PermissionDeniedError)
        assert issubclass(LastAdministratorLockoutError, ConflictError)

    def test_details_default_to_empty(self):
        assert MembershipNotFoundError('missing').details == {}


class TestCustomExceptionHandler:

    def test_platform_exception(self):
        exc = InvalidPermissionError("Bad pair", details={'module': 'x'})

        response = custom_exception_handler(exc, _context())

        assert response.status_code == 400
        assert response.data == {
            'error': {
                'code': 'INVALID_PERMISSION',
                'message': 'Bad pair',
                'details': {'module': 'x'},
            },
            'request_id': 'req-9',
        }

    def test_drf_validation_error(self):
        exc = drf_exceptions.ValidationError({'module': ['This field is required.']})

        response = custom_exception_handler(exc, _context())

        assert response.status_code == 400
        assert response.data['error']['code'] == 'VALIDATION_ERROR'
        assert response.data['error']['details'] == {'module': ['This field is required.']}

    def test_drf_permission_denied(self):
        response = custom_exception_handler(drf_exceptions.PermissionDenied('No grant'), _context())

        assert response.status_code == 403
        assert response.data['error'] == {'code': 'PERMISSION_DENIED', 'message': 'No grant'}

    def test_not_found(self):
        response = custom_exception_handler(Http404(), _context())

        assert response.status_code == 404
        assert response.data['error']['code'] == 'NOT_FOUND'

    def test_unexpected_exception(self):
        response = custom_exception_handler(RuntimeError('boom'), _context())

        assert response.status_code == 500
        assert response.data['error']['code'] == 'INTERNAL_ERROR'
        assert 'boom' not in response.data['error']['message']
