"""Standardized response helpers.

Every error leaving the API uses the same envelope::

    {"error": {"code": "...", "message": "...", "details": {...}}}
"""

from fastapi import status
from fastapi.responses import JSONResponse


def error_response(
    code: str,
    message: str,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    details: dict | None = None,
    headers: dict | None = None,
) -> JSONResponse:
    """Create a standardized error response.

    Args:
        code: Machine-readable error code (e.g. 'INSUFFICIENT_BALANCE')
        message: Human-readable error message
        status_code: HTTP status code
        details: Additional error details
        headers: Extra response headers (e.g. Retry-After)
    """
    content = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if details:
        content["error"]["details"] = details

    return JSONResponse(status_code=status_code, content=content, headers=headers)


def validation_error(message: str, details: dict | None = None) -> JSONResponse:
    """Request body/query validation failure (422)."""
    return error_response(
        code="VALIDATION_ERROR",
        message=message,
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details=details,
    )


def internal_error(message: str = "An unexpected error occurred") -> JSONResponse:
    return error_response(
        code="INTERNAL_ERROR",
        message=message,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
