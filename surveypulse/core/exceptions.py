"""Custom exceptions for the application."""

from typing import Any


class AppException(Exception):
    """Base exception for all application exceptions."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or "INTERNAL_ERROR"
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Error envelope returned to API clients."""
        return {
            "error": {"code": self.error_code, "message": self.message, "details": self.details}
        }


# Authentication Exceptions
class AuthenticationError(AppException):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed", details: dict | None = None):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTHENTICATION_ERROR",
            details=details,
        )


class TokenExpiredError(AuthenticationError):
    """Raised when token has expired."""

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message=message)
        self.error_code = "TOKEN_EXPIRED"


class InvalidTokenError(AuthenticationError):
    """Raised when token is invalid."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message=message)
        self.error_code = "INVALID_TOKEN"


# Authorization Exceptions
class AuthorizationError(AppException):
    """Raised when authorization fails."""

    def __init__(self, message: str = "Access denied", details: dict | None = None):
        super().__init__(
            message=message,
            status_code=403,
            error_code="AUTHORIZATION_ERROR",
            details=details,
        )


class ForbiddenError(AuthorizationError):
    """Raised when access is forbidden."""

    def __init__(self, message: str = "Access forbidden", details: dict | None = None):
        super().__init__(message=message, details=details)
        self.error_code = "FORBIDDEN"


class InsufficientPermissionsError(AuthorizationError):
    """Raised when user doesn't have required permissions."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message=message)
        self.error_code = "INSUFFICIENT_PERMISSIONS"


# Resource Exceptions
class NotFoundError(AppException):
    """Raised when resource is not found."""

    def __init__(
        self, resource: str = "Resource", identifier: str | None = None
    ):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
            details={"resource": resource, "identifier": identifier},
        )


class ConflictError(AppException):
    """Raised when resource conflicts."""

    def __init__(self, message: str = "Resource already exists", details: dict | None = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT",
            details=details,
        )


class DuplicateError(ConflictError):
    """Raised when duplicate resource is detected."""

    def __init__(self, field: str, value: str):
        super().__init__(
            message=f"Resource with {field}='{value}' already exists",
            details={"field": field, "value": value},
        )
        self.error_code = "DUPLICATE_ERROR"


class GoneError(AppException):
    """Raised when a resource existed but can no longer be used."""

    def __init__(self, message: str = "Resource is no longer available", details: dict | None = None):
        super().__init__(
            message=message,
            status_code=410,
            error_code="GONE",
            details=details,
        )


# Invite / response intake
class InvalidInviteTokenError(NotFoundError):
    """Raised when an invite token does not resolve to an invite."""

    def __init__(self):
        super().__init__("Invite")
        self.message = "Invalid or unknown invite token"
        self.error_code = "INVALID_INVITE_TOKEN"


class SurveyAlreadySubmittedError(ConflictError):
    """Raised when an invite has already been used to respond."""

    def __init__(self):
        super().__init__(message="Survey already submitted for this invite")
        self.error_code = "SURVEY_ALREADY_SUBMITTED"


class InviteExpiredError(GoneError):
    """Raised when an invite expired or its survey closed."""

    def __init__(self, message: str = "Invite has expired"):
        super().__init__(message=message)
        self.error_code = "EXPIRED"


class MaxAttemptsExceededError(ForbiddenError):
    """Raised when an invite ran out of submission attempts."""

    def __init__(self, max_attempts: int):
        super().__init__(
            message="Maximum submission attempts exceeded",
            details={"max_attempts": max_attempts},
        )
        self.error_code = "MAX_ATTEMPTS_EXCEEDED"


class SurveyNotActiveError(ForbiddenError):
    """Raised when a survey is not accepting responses."""

    def __init__(self, message: str = "Survey is not accepting responses"):
        super().__init__(message=message)
        self.error_code = "SURVEY_NOT_ACTIVE"


class SurveyUnavailableError(NotFoundError):
    """Raised when an anonymous submission targets a survey that is not open."""

    def __init__(self, survey_id: str):
        super().__init__("Survey", survey_id)
        self.message = "Survey is not accepting responses"
        self.error_code = "SURVEY_NOT_ACTIVE"


# Validation Exceptions
class ValidationError(AppException):
    """Raised when validation fails."""

    def __init__(self, message: str = "Validation failed", details: dict | None = None):
        super().__init__(
            message=message,
            status_code=400,
            error_code="VALIDATION_ERROR",
            details=details,
        )


class UnknownQuestionError(ValidationError):
    """Raised when an answer references a question the survey does not have."""

    def __init__(self, question_id: str):
        super().__init__(
            message=f"Answer references unknown question '{question_id}'",
            details={"question_id": question_id},
        )
        self.error_code = "UNKNOWN_QUESTION"


class SegmentFilterError(ValidationError):
    """Raised when a segment filter uses a key or value outside the whitelist."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message=message, details={"key": key})
        self.error_code = "INVALID_SEGMENT_FILTER"


# Rate Limiting
class RateLimitExceededError(AppException):
    """Raised when rate limit is exceeded."""

    def __init__(self, retry_after: int = 60):
        super().__init__(
            message="Too many requests. Please try again later.",
            status_code=429,
            error_code="RATE_LIMIT_EXCEEDED",
            details={"retry_after": retry_after},
        )


# Pipeline Exceptions
class TransientExternalError(AppException):
    """Raised when an external dependency is temporarily unavailable.

    The job queue retries jobs failing with this error.
    """

    def __init__(self, message: str = "External service unavailable", details: dict | None = None):
        super().__init__(
            message=message,
            status_code=503,
            error_code="TRANSIENT_EXTERNAL_ERROR",
            details=details,
        )


class IntegrityError(AppException):
    """Raised when an aggregate could not be updated atomically."""

    def __init__(self, message: str = "Integrity violation", details: dict | None = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code="INTEGRITY_ERROR",
            details=details,
        )
