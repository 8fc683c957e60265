from typing import Any


class AdoError(Exception):
    """Base exception class for Azure DevOps errors with structured error information."""

    def __init__(
        self,
        message: str,
        error_code: str,
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        """
        Initialize structured Azure DevOps error.

        Args:
            message: Human-readable error message
            error_code: Structured error code for programmatic handling
            context: Additional context information about the error
            original_exception: The original exception that caused this error
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.original_exception = original_exception


class AdoValidationError(AdoError):
    """Exception for missing or malformed tool parameters."""

    def __init__(
        self,
        message: str = "Invalid parameters",
        fields: list[str] | None = None,
        context: dict[str, Any] | None = None,
    ):
        context = context or {}
        if fields:
            context["fields"] = fields

        super().__init__(
            message=message,
            error_code="AZDO_VALIDATION_ERROR",
            context=context,
        )
        self.fields = fields or []


class AdoAuthenticationError(AdoError):
    """Exception for Azure DevOps authentication failures."""

    def __init__(
        self,
        message: str = "Authentication failed",
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            error_code="AZDO_AUTH_FAILED",
            context=context,
            original_exception=original_exception,
        )


class AdoApiError(AdoError):
    """Exception for non-2xx responses returned by the Azure DevOps REST API."""

    def __init__(
        self,
        message: str = "Azure DevOps API request failed",
        status_code: int | None = None,
        error_code: str = "AZDO_API_ERROR",
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        context = context or {}
        if status_code is not None:
            context["status_code"] = status_code

        super().__init__(
            message=message,
            error_code=error_code,
            context=context,
            original_exception=original_exception,
        )
        self.status_code = status_code


class AdoNotFoundError(AdoApiError):
    """Exception for resources that do not exist (404 errors)."""

    def __init__(
        self,
        message: str = "Resource not found",
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            status_code=404,
            error_code="AZDO_NOT_FOUND",
            context=context,
            original_exception=original_exception,
        )


class AdoRateLimitError(AdoError):
    """Exception for Azure DevOps API rate limiting (429 errors)."""

    def __init__(
        self,
        message: str = "API rate limit exceeded",
        retry_after: int | None = None,
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        context = context or {}
        if retry_after:
            context["retry_after"] = retry_after

        super().__init__(
            message=message,
            error_code="AZDO_RATE_LIMIT",
            context=context,
            original_exception=original_exception,
        )
        self.retry_after = retry_after


class AdoTimeoutError(AdoError):
    """Exception for Azure DevOps request timeouts."""

    def __init__(
        self,
        message: str = "Operation timed out",
        timeout_seconds: int | None = None,
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        context = context or {}
        if timeout_seconds:
            context["timeout_seconds"] = timeout_seconds

        super().__init__(
            message=message,
            error_code="AZDO_TIMEOUT",
            context=context,
            original_exception=original_exception,
        )
        self.timeout_seconds = timeout_seconds


class AdoNetworkError(AdoError):
    """Exception for network-related failures and server errors."""

    def __init__(
        self,
        message: str = "Network error occurred",
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            error_code="AZDO_NETWORK_ERROR",
            context=context,
            original_exception=original_exception,
        )


class AdoConfigurationError(AdoError):
    """Exception for configuration-related errors."""

    def __init__(
        self,
        message: str = "Configuration error",
        context: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            error_code="AZDO_CONFIG_ERROR",
            context=context,
            original_exception=original_exception,
        )
