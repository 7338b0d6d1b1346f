from typing import Any


class AppException(Exception):
    """Base for workflow errors; rendered by the handler registered in main."""

    status_code = 400
    error_code = "BUSINESS_ERROR"

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        self.message = message
        self.errors = errors
        super().__init__(message)


class ValidationError(AppException):
    status_code = 400
    error_code = "VALIDATION_ERROR"


class InvalidStateError(AppException):
    status_code = 409
    error_code = "INVALID_STATE"


class TemplateLockedError(InvalidStateError):
    error_code = "TEMPLATE_LOCKED"

    def __init__(self, message: str = "Goal template is locked; goals can no longer be edited"):
        super().__init__(message)


class AuthorizationError(AppException):
    status_code = 403
    error_code = "FORBIDDEN"


class NotFoundError(AppException):
    status_code = 404
    error_code = "NOT_FOUND"
