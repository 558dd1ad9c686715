"""
Platform exception taxonomy.

Every error carries an HTTP status and a stable code; the DRF handler in
apps.core.handlers renders them.
"""


class PlatformException(Exception):
    """Base exception for platform-specific errors."""

    status_code = 400
    code = 'ERROR'

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class PermissionDeniedError(PlatformException):
    """Raised when the caller lacks the required permission."""
    status_code = 403
    code = 'PERMISSION_DENIED'


class ValidationError(PlatformException):
    """Raised when input validation fails."""
    status_code = 400
    code = 'VALIDATION_ERROR'


class NotFoundError(PlatformException):
    """Raised when a referenced entity does not exist."""
    status_code = 404
    code = 'NOT_FOUND'


class ConflictError(PlatformException):
    """Raised when a request conflicts with current state."""
    status_code = 409
    code = 'CONFLICT'


# ===== PERMISSION ADMINISTRATION ERRORS =====

class InvalidPermissionError(ValidationError):
    """Unknown (module, action) pair."""
    code = 'INVALID_PERMISSION'


class ImmutableRoleError(ValidationError):
    """Attempt to edit grants of the super_admin role."""
    code = 'IMMUTABLE_ROLE'


class CannotOverrideSuperAdminError(ValidationError):
    """Attempt to place an override on a super_admin user."""
    code = 'CANNOT_OVERRIDE_SUPER_ADMIN'


class NotPlatformAdministratorError(PermissionDeniedError):
    """Administration called by someone without the platform-admin capability."""
    code = 'NOT_PLATFORM_ADMINISTRATOR'


class ImpersonationWriteForbiddenError(PermissionDeniedError):
    """Administration attempted from an impersonating session."""
    code = 'IMPERSONATION_WRITE_FORBIDDEN'


class MembershipNotFoundError(NotFoundError):
    """Target user is not an active member of the company."""
    code = 'MEMBERSHIP_NOT_FOUND'


class LastAdministratorLockoutError(ConflictError):
    """Change would leave the company without anyone able to manage users."""
    code = 'LAST_ADMINISTRATOR_LOCKOUT'


class ImpersonationStateError(ConflictError):
    """Impersonation start/stop called in the wrong session state."""
    code = 'IMPERSONATION_STATE'
