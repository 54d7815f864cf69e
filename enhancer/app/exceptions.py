"""Custom exceptions for the enhancer application."""


class EnhancerException(Exception):
    """Base class for enhancer exceptions with HTTP status code.

    Subclasses define their status_code and error code for consistent
    HTTP response handling.
    """
    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str = "Enhancer error"):
        self.message = message
        super().__init__(message)

    def to_response(self) -> dict:
        return {"error": self.error_code, "message": self.message}


class ConfigError(EnhancerException):
    """Raised when a component is constructed with invalid configuration.

    This is a programmer error; callers must not proceed.
    """
    error_code = "config_error"


class PromptValidationError(EnhancerException):
    """Raised when a prompt request violates an input constraint.

    Maps to HTTP 422 Unprocessable Entity.
    """
    status_code = 422
    error_code = "validation_error"


class RateLimitExceededError(EnhancerException):
    """Raised when a caller has used up its request allowance.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(self, message: str, retry_after: int, reset_time: int | None = None):
        self.retry_after = retry_after
        self.reset_time = reset_time
        super().__init__(message)

    def to_response(self) -> dict:
        response = super().to_response()
        response["retry_after"] = self.retry_after
        return response


class CompletionServiceError(EnhancerException):
    """Raised when the completion API fails or returns an unusable reply.

    Maps to HTTP 502 Bad Gateway.
    """
    status_code = 502
    error_code = "completion_failed"


class CompletionTimeoutError(CompletionServiceError):
    """Raised when the completion API does not answer in time.

    Maps to HTTP 504 Gateway Timeout.
    """
    status_code = 504
    error_code = "completion_timeout"


class StorageError(EnhancerException):
    """Raised when history or analytics data cannot be written."""
    error_code = "storage_error"


class HistoryItemNotFoundError(EnhancerException):
    """Raised when a history id is unknown.

    Maps to HTTP 404 Not Found.
    """
    status_code = 404
    error_code = "not_found"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"History item '{item_id}' not found")


class SettingsValidationError(PromptValidationError):
    """Raised when stored preferences would violate a constraint."""
    error_code = "invalid_settings"


class BackupValidationError(PromptValidationError):
    """Raised when an imported backup is not usable.

    Nothing is written when this is raised.
    """
    error_code = "invalid_backup"
