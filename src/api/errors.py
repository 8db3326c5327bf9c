"""
ModBoard - API Error System
===========================

Centralized error codes and exceptions for consistent API responses.

Every error body has the same envelope:
    {"success": false, "error": "...", "error_code": "...", "details": null}
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_429_TOO_MANY_REQUESTS,
    HTTP_500_INTERNAL_SERVER_ERROR,
)


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCode(str, Enum):
    """
    Error codes for the API.

    Format: CATEGORY_SPECIFIC_ERROR
    """

    # Authentication errors (401)
    AUTH_MISSING_TOKEN = "AUTH_MISSING_TOKEN"
    AUTH_INVALID_TOKEN = "AUTH_INVALID_TOKEN"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_MISSING_USER_ID = "AUTH_MISSING_USER_ID"
    AUTH_OAUTH_FAILED = "AUTH_OAUTH_FAILED"

    # Authorization errors (403)
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_INSUFFICIENT_PERMISSIONS"
    AUTH_NO_DASHBOARD_ACCESS = "AUTH_NO_DASHBOARD_ACCESS"
    AUTH_NOT_ADMIN = "AUTH_NOT_ADMIN"

    # Resource errors (404)
    USER_NOT_FOUND = "USER_NOT_FOUND"
    GUILD_NOT_FOUND = "GUILD_NOT_FOUND"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    VALIDATION_MISSING_FIELD = "VALIDATION_MISSING_FIELD"
    VALIDATION_INVALID_PERMISSION = "VALIDATION_INVALID_PERMISSION"
    AUTH_CODE_REUSED = "AUTH_CODE_REUSED"

    # Rate limit errors (429)
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Server errors (500)
    SERVER_ERROR = "SERVER_ERROR"
    SERVER_DATABASE_ERROR = "SERVER_DATABASE_ERROR"


# =============================================================================
# Error Messages
# =============================================================================

ERROR_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.AUTH_MISSING_TOKEN: "Authentication token is required",
    ErrorCode.AUTH_INVALID_TOKEN: "Invalid token format",
    ErrorCode.AUTH_TOKEN_EXPIRED: "Token expired",
    ErrorCode.AUTH_MISSING_USER_ID: "User ID required for dashboard access",
    ErrorCode.AUTH_OAUTH_FAILED: "Discord OAuth authentication failed",

    ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS: "Insufficient permissions for this action",
    ErrorCode.AUTH_NO_DASHBOARD_ACCESS: "No dashboard permissions found for any server",
    ErrorCode.AUTH_NOT_ADMIN: "This action requires admin privileges",

    ErrorCode.USER_NOT_FOUND: "User not found",
    ErrorCode.GUILD_NOT_FOUND: "Server not found",

    ErrorCode.VALIDATION_ERROR: "Request validation failed",
    ErrorCode.VALIDATION_MISSING_FIELD: "Required field is missing",
    ErrorCode.VALIDATION_INVALID_PERMISSION: "Unknown permission token",
    ErrorCode.AUTH_CODE_REUSED: "Authorization code already used",

    ErrorCode.RATE_LIMIT_EXCEEDED: "Too many requests, please slow down",

    ErrorCode.SERVER_ERROR: "An internal server error occurred",
    ErrorCode.SERVER_DATABASE_ERROR: "An internal server error occurred",
}


# =============================================================================
# Default Status Codes
# =============================================================================

ERROR_STATUS_CODES: Dict[ErrorCode, int] = {
    ErrorCode.AUTH_MISSING_TOKEN: HTTP_401_UNAUTHORIZED,
    ErrorCode.AUTH_INVALID_TOKEN: HTTP_401_UNAUTHORIZED,
    ErrorCode.AUTH_TOKEN_EXPIRED: HTTP_401_UNAUTHORIZED,
    ErrorCode.AUTH_MISSING_USER_ID: HTTP_401_UNAUTHORIZED,
    ErrorCode.AUTH_OAUTH_FAILED: HTTP_401_UNAUTHORIZED,

    ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS: HTTP_403_FORBIDDEN,
    ErrorCode.AUTH_NO_DASHBOARD_ACCESS: HTTP_403_FORBIDDEN,
    ErrorCode.AUTH_NOT_ADMIN: HTTP_403_FORBIDDEN,

    ErrorCode.USER_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.GUILD_NOT_FOUND: HTTP_404_NOT_FOUND,

    ErrorCode.VALIDATION_ERROR: HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_MISSING_FIELD: HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_INVALID_PERMISSION: HTTP_400_BAD_REQUEST,
    ErrorCode.AUTH_CODE_REUSED: HTTP_400_BAD_REQUEST,

    ErrorCode.RATE_LIMIT_EXCEEDED: HTTP_429_TOO_MANY_REQUESTS,

    ErrorCode.SERVER_ERROR: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.SERVER_DATABASE_ERROR: HTTP_500_INTERNAL_SERVER_ERROR,
}


# =============================================================================
# API Error Exception
# =============================================================================

def _error_body(
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    return {
        "success": False,
        "error": message,
        "error_code": code.value,
        "details": details,
    }


class APIError(HTTPException):
    """
    API exception carrying an error code.

    Usage:
        raise APIError(ErrorCode.AUTH_NOT_ADMIN)
        raise APIError(ErrorCode.VALIDATION_MISSING_FIELD, details={"field": "page"})
        raise APIError(ErrorCode.AUTH_MISSING_TOKEN, headers={"WWW-Authenticate": "Bearer"})
    """

    def __init__(
        self,
        code: ErrorCode,
        status_code: Optional[int] = None,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.error_code = code
        self.error_message = message or ERROR_MESSAGES.get(code, "An error occurred")
        self.error_details = details

        if status_code is None:
            status_code = ERROR_STATUS_CODES.get(code, HTTP_400_BAD_REQUEST)

        super().__init__(
            status_code=status_code,
            detail=_error_body(code, self.error_message, details),
            headers=headers,
        )


# =============================================================================
# Helper Functions
# =============================================================================

def error_response(
    code: ErrorCode,
    status_code: Optional[int] = None,
    message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Build a JSON error response without raising."""
    if status_code is None:
        status_code = ERROR_STATUS_CODES.get(code, HTTP_400_BAD_REQUEST)

    return JSONResponse(
        status_code=status_code,
        content=_error_body(code, message or ERROR_MESSAGES.get(code, "An error occurred"), details),
        headers=headers,
    )


def unauthorized(code: ErrorCode = ErrorCode.AUTH_MISSING_TOKEN, message: Optional[str] = None) -> APIError:
    """Shorthand for 401 errors. Always asks for a bearer token."""
    return APIError(code, message=message, headers={"WWW-Authenticate": "Bearer"})


def forbidden(message: Optional[str] = None, code: ErrorCode = ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS) -> APIError:
    """Shorthand for 403 errors."""
    return APIError(code, message=message)


def not_found(code: ErrorCode = ErrorCode.USER_NOT_FOUND, message: Optional[str] = None) -> APIError:
    """Shorthand for 404 errors."""
    return APIError(code, message=message)


def bad_request(
    code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> APIError:
    """Shorthand for 400 errors."""
    return APIError(code, message=message, details=details)


__all__ = [
    "ErrorCode",
    "ERROR_MESSAGES",
    "ERROR_STATUS_CODES",
    "APIError",
    "error_response",
    "unauthorized",
    "forbidden",
    "not_found",
    "bad_request",
]
