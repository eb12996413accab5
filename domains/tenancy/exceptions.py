"""Tenancy and authorization exceptions."""


class TenancyError(Exception):
    """Base error carrying a stable API error code."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "", *, code: str | None = None) -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        if code:
            self.code = code


class InvalidToken(TenancyError):
    code = "INVALID_TOKEN"


class Unauthorized(TenancyError):
    code = "AUTH_ERROR"


class Forbidden(TenancyError):
    code = "FORBIDDEN"


class ProvisioningFailed(TenancyError):
    code = "PROVISIONING_FAILED"


class AssignmentError(TenancyError):
    code = "ASSIGNMENT_ERROR"


class NotFound(TenancyError):
    code = "NOT_FOUND"


class IllegalTransition(TenancyError):
    code = "ILLEGAL_TRANSITION"


class ConfigurationError(TenancyError):
    code = "INTERNAL_ERROR"
