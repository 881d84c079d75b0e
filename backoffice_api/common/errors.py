# backoffice_api/common/errors.py
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from backoffice_api.common.http import fail


class APIError(Exception):
    """Custom API Error class."""
    status_code = 400
    default_code = "BAD_REQUEST"

    def __init__(self, message, code=None, status_code=None, payload=None):
        super().__init__(message)
        self.code = code or self.default_code
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload


class ValidationError(APIError):
    """Malformed or missing input, or an unknown status literal."""
    status_code = 400
    default_code = "VALIDATION_ERROR"


class UnauthenticatedError(APIError):
    status_code = 401
    default_code = "UNAUTHENTICATED"


class ForbiddenError(APIError):
    status_code = 403
    default_code = "FORBIDDEN"


class RoleForbiddenError(ForbiddenError):
    """The caller's roles do not allow the requested action."""
    default_code = "ROLE_FORBIDDEN"


class TenantMismatchError(ForbiddenError):
    default_code = "TENANT_MISMATCH"


class InvalidStateError(ForbiddenError):
    """The record's current status does not allow the requested action."""
    default_code = "INVALID_STATE"


class RecordLockedError(InvalidStateError):
    default_code = "RECORD_LOCKED"


class TransitionNotAllowedError(InvalidStateError):
    default_code = "TRANSITION_NOT_ALLOWED"


class NotFoundError(APIError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(APIError):
    status_code = 409
    default_code = "CONFLICT"


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def _api_error(e: APIError):
        if e.status_code >= 500:
            app.logger.error("API error %s: %s", e.code, e.message)
        return fail(e.message, status=e.status_code, code=e.code, detail=e.payload)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return fail(e.description or e.name, status=e.code or 500)

    @app.errorhandler(IntegrityError)
    def _dup(e: IntegrityError):
        return fail("Duplicate or FK constraint failed", status=409, code="CONSTRAINT_ERROR")

    @app.errorhandler(Exception)
    def _500(e: Exception):
        app.logger.exception(e)
        return fail("Internal server error", status=500)
