"""Shared Pydantic response models for the subtrack API.

Provides generic wrappers (ApiResponse, PaginatedResponse), the error
envelope, and pagination metadata used across all endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Base response wrappers
# ---------------------------------------------------------------------------


class ApiMeta(BaseModel):
    """Extensible metadata bag attached to every API response."""

    model_config = {"extra": "allow"}


class ApiResponse[T](BaseModel):
    """Generic API response wrapper.

    All successful responses follow ``{"data": T, "meta": {...}}``.
    """

    data: T
    meta: ApiMeta = Field(default_factory=ApiMeta)


class ErrorDetail(BaseModel):
    """Structured error payload.

    ``details`` carries the per-field message map for validation failures.
    """

    code: str
    message: str
    details: dict | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    error: ErrorDetail


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


class PaginationMeta(BaseModel):
    """Pagination metadata for list endpoints."""

    total: int
    offset: int
    limit: int

    @property
    def has_more(self) -> bool:
        """True when more items exist beyond the current page."""
        return self.offset + self.limit < self.total

    model_config = {"json_schema_extra": {"properties": {"has_more": {"type": "boolean"}}}}


class PaginatedResponse[T](BaseModel):
    """API response wrapper for paginated list endpoints.

    ``{"data": [T, ...], "meta": PaginationMeta}``
    """

    data: list[T]
    meta: PaginationMeta
