"""Pydantic schemas for request/response validation"""

from app.schemas.common import (
    ErrorResponse,
    MessageResponse,
    PaginationMeta,
)

__all__ = [
    "ErrorResponse",
    "MessageResponse",
    "PaginationMeta",
]
