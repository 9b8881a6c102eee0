"""Custom exception hierarchy for statsmcp.

Every failure that reaches a tool boundary is converted into one of three
machine-parseable payloads by :func:`get_error_response`:

- ``{"error": "ValidationError", "message", "field"}``
- ``{"error": "ApiError", "source", "message", "details"}``
- ``{"error": "Error", "message"}``

Exception Hierarchy:
    StatsMcpError (base)
    ├── ConfigurationError
    ├── ValidationError
    └── ApiError
        └── ResponseFormatError
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from .utils.logging_security import SecureLogger


class StatsMcpError(Exception):
    """Base exception for all statsmcp errors.

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": "Error",
            "message": self.message,
        }


class ConfigurationError(StatsMcpError):
    """Raised when there's a configuration problem.

    Examples:
        - e-Stat enabled without an application id
        - A tool targeting a data source that is disabled
    """
    pass


class ValidationError(StatsMcpError):
    """Raised when a caller-supplied argument violates a documented constraint."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.field = field
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, code, details)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "ValidationError",
            "message": self.message,
            "field": self.field,
        }


class ApiError(StatsMcpError):
    """Raised when an upstream statistics API call fails.

    Attributes:
        source: Display name of the upstream source (e.g. ``"World Bank"``)
        status_code: HTTP status, when a response was received
        status_text: HTTP reason phrase
        response_data: Decoded response body, when available
        request_url: Request URL with credentials redacted
        request_method: HTTP method
    """

    def __init__(
        self,
        source: str,
        message: str,
        status_code: Optional[int] = None,
        status_text: Optional[str] = None,
        response_data: Any = None,
        request_url: Optional[str] = None,
        request_method: Optional[str] = None,
    ):
        self.source = source
        self.status_code = status_code
        self.status_text = status_text
        self.response_data = response_data
        self.request_url = SecureLogger.redact_url(request_url) if request_url else None
        self.request_method = request_method
        super().__init__(message, details=self._details())

    def _details(self) -> Dict[str, Any]:
        details = {
            "statusCode": self.status_code,
            "statusText": self.status_text,
            "responseData": self.response_data,
            "requestUrl": self.request_url,
            "requestMethod": self.request_method,
        }
        return {key: value for key, value in details.items() if value is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "ApiError",
            "source": self.source,
            "message": self.message,
            "details": self._details(),
        }


class ResponseFormatError(ApiError):
    """Raised when an upstream payload does not have the expected shape.

    Retrying cannot fix a malformed payload, so the retry policy never
    recovers this error.
    """
    pass


def _upstream_message(response: httpx.Response) -> tuple[Any, str]:
    """Return the decoded body and the upstream error text, if any."""
    try:
        data = response.json()
    except ValueError:
        text = response.text
        return (text or None), ""

    if isinstance(data, dict):
        for key in ("error", "message"):
            value = data.get(key)
            # Eurostat nests the text: {"error": [{"status": 404, "label": "..."}]}
            if isinstance(value, list) and value:
                value = value[0]
            if isinstance(value, dict):
                value = value.get("label") or value.get("message") or value.get("value")
            if isinstance(value, str) and value:
                return data, value
    return data, ""


def create_api_error(source: str, error: Exception) -> ApiError:
    """Wrap an ``httpx`` failure (or anything else) in an :class:`ApiError`."""
    if isinstance(error, ApiError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        data, upstream = _upstream_message(response)
        status_text = response.reason_phrase or ""
        message = f"{source} API error: {response.status_code} {status_text}".rstrip()
        if upstream:
            message = f"{message} - {upstream}"
        return ApiError(
            source,
            message,
            status_code=response.status_code,
            status_text=status_text or None,
            response_data=data,
            request_url=str(error.request.url),
            request_method=error.request.method,
        )

    if isinstance(error, httpx.RequestError):
        request_url = None
        request_method = None
        try:
            request_url = str(error.request.url)
            request_method = error.request.method
        except RuntimeError:
            # The request property is unset when the error was raised before sending.
            pass
        return ApiError(
            source,
            f"{source} API error: No response received",
            request_url=request_url,
            request_method=request_method,
        )

    return ApiError(source, f"{source} API error: {error}")


def get_error_response(error: Exception) -> Dict[str, Any]:
    """Convert any exception to a tool-boundary error payload.

    Args:
        error: The exception to convert

    Returns:
        Dictionary suitable for an API error response
    """
    if isinstance(error, StatsMcpError):
        return error.to_dict()

    return {
        "error": "Error",
        "message": str(error) or error.__class__.__name__,
    }
