"""
Error Definitions

Defines the exception taxonomy used by the gateway for unified error handling.
"""

from typing import Any, Optional


class AppError(Exception):
    """
    Application Base Exception

    Base class for all custom exceptions, containing error message, type, and code.
    """

    def __init__(
        self,
        message: str,
        error_type: str = "app_error",
        code: str = "internal_error",
        details: Optional[dict[str, Any]] = None,
        status_code: int = 500,
    ):
        """
        Initialize exception

        Args:
            message: Error message
            error_type: Error type
            code: Error code
            details: Extra error details
            status_code: HTTP status code
        """
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.code = code
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self, include_details: bool = True) -> dict[str, Any]:
        """
        Convert to dictionary format (for API response)

        Args:
            include_details: Whether to include the details object

        Returns:
            dict: Error information dictionary
        """
        result = {
            "error": {
                "message": self.message,
                "type": self.error_type,
                "code": self.code,
            }
        }
        if include_details and self.details:
            result["error"]["details"] = self.details
        return result


class InputError(AppError):
    """
    Input Error

    Raised when the request payload is missing or lacks a model name.
    """

    def __init__(
        self,
        message: str = "Invalid request",
        code: str = "invalid_request",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            error_type="invalid_request_error",
            code=code,
            details=details,
            status_code=400,
        )


class ConversionError(AppError):
    """
    Conversion Error

    Raised when a request or response cannot be encoded or decoded while
    translating between dialects. The original exception is chained.
    """

    def __init__(
        self,
        message: str = "Dialect conversion failed",
        code: str = "conversion_error",
        details: Optional[dict[str, Any]] = None,
        source_dialect: Optional[str] = None,
        target_dialect: Optional[str] = None,
    ):
        details = dict(details or {})
        if source_dialect:
            details.setdefault("source_dialect", source_dialect)
        if target_dialect:
            details.setdefault("target_dialect", target_dialect)
        super().__init__(
            message=message,
            error_type="conversion_error",
            code=code,
            details=details,
            status_code=400,
        )
        self.source_dialect = source_dialect
        self.target_dialect = target_dialect


class EncodingError(AppError):
    """
    Encoding Error

    Raised when structured content carries text that cannot be made valid
    without altering its schema.
    """

    def __init__(
        self,
        message: str = "Content contains invalid characters",
        code: str = "invalid_encoding",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            error_type="invalid_request_error",
            code=code,
            details=details,
            status_code=400,
        )


class UpstreamError(AppError):
    """
    Upstream Service Error

    Raised when the backend returns a structured error object or a non-success
    status. The backend status code is preserved.
    """

    def __init__(
        self,
        message: str = "Upstream service error",
        code: str = "upstream_error",
        details: Optional[dict[str, Any]] = None,
        status_code: int = 502,
    ):
        super().__init__(
            message=message,
            error_type="upstream_error",
            code=code,
            details=details,
            status_code=status_code,
        )


class TransportError(AppError):
    """
    Transport Error

    Raised when the backend cannot be reached or its body cannot be read.
    """

    def __init__(
        self,
        message: str = "Upstream transport error",
        code: str = "transport_error",
        details: Optional[dict[str, Any]] = None,
        status_code: int = 502,
    ):
        super().__init__(
            message=message,
            error_type="transport_error",
            code=code,
            details=details,
            status_code=status_code,
        )
