"""Common schemas for pagination, errors, and responses"""

import math
from typing import Any

from pydantic import BaseModel


class PaginationMeta(BaseModel):
    """Pagination metadata in response"""
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit) if total else 0)


class ErrorDetail(BaseModel):
    """Error detail structure"""
    code: str
    message: str
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Standard error response"""
    error: ErrorDetail


class MessageResponse(BaseModel):
    """Simple message response"""
    message: str
