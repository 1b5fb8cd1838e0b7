"""Pydantic schemas for API requests/responses."""

from passgate.schemas.common import (
    ErrorResponse,
    PaginatedResponse,
    PaginationParams,
    SuccessResponse,
)

__all__ = [
    "ErrorResponse",
    "PaginatedResponse",
    "PaginationParams",
    "SuccessResponse",
]
