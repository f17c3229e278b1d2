"""Custom exceptions for the contentgate application.

Expected terminal states (quota exhausted, premium lock, OTP lockout,
cooldown, wrong code) are returned as structured results by the services
and never raised. The exceptions below cover faults only.
"""


class ContentGateException(Exception):
    """Root of the application errors; the handler in main renders
    ``status_code`` with a body of ``{"error": error_code, "message": message}``.
    """
    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str = "Internal server error"):
        self.message = message
        super().__init__(message)


class ServiceUnavailableError(ContentGateException):
    """Raised when a required dependency is missing for this request.

    Maps to HTTP 503 Service Unavailable.
    """
    status_code = 503
    error_code = "service_unavailable"

    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(message)


class ViewLimitsUnavailableError(ServiceUnavailableError):
    """View limits are enforced but no shared store is configured."""

    def __init__(self) -> None:
        super().__init__("Service unavailable (Redis not configured for view limits)")


class OTPServiceUnavailableError(ServiceUnavailableError):
    """OTP flow requires a shared store for TTLs and rate limits."""

    def __init__(self) -> None:
        super().__init__("OTP service temporarily unavailable (Redis not configured)")


class ArticleNotFoundError(ContentGateException):
    """Raised when an article does not exist or must not be disclosed.

    Drafts hidden from the caller use the same error so their existence
    does not leak. Maps to HTTP 404 Not Found.
    """
    status_code = 404
    error_code = "not_found"

    def __init__(self) -> None:
        super().__init__("Article not found")


class AuthenticationError(ContentGateException):
    """Raised when a login token or session cannot be validated.

    Maps to HTTP 401 Unauthorized.
    """
    status_code = 401
    error_code = "authentication_failed"

    def __init__(self, detail: str = "Invalid or expired login token"):
        self.detail = detail
        super().__init__(detail)


class EmailDeliveryError(ContentGateException):
    """Raised when the one-time code e-mail could not be sent.

    The message is deliberately generic. Maps to HTTP 500.
    """
    status_code = 500
    error_code = "email_delivery_failed"

    def __init__(self) -> None:
        super().__init__("Failed to send code. Please try again.")
