"""Common schemas used across the API."""

import math

from pydantic import BaseModel, Field, computed_field


class PaginationParams(BaseModel):
    """Pagination query parameters."""

    page: int = Field(default=1, ge=1, description="Page number, starting at 1")
    limit: int = Field(default=10, ge=1, le=50, description="Number of items per page")

    @property
    def offset(self) -> int:
        """Number of items to skip."""
        return (self.page - 1) * self.limit


class PaginatedResponse[T](BaseModel):
    """Paginated response wrapper."""

    items: list[T]
    total: int
    page: int
    limit: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_pages(self) -> int:
        """Number of pages at the current page size."""
        return math.ceil(self.total / self.limit) if self.limit else 0


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str | None = None


class SuccessResponse(BaseModel):
    """Standard success response."""

    message: str
