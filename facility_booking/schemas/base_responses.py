"""
Base response schemas for standardized API responses.

These schemas keep list endpoints and error bodies in one shape across the API.
"""

from typing import Any, Dict, Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard paginated response for all list endpoints."""

    items: List[T] = Field(description="List of items")
    total: int = Field(description="Total number of items")
    page: int = Field(default=1, description="Current page number", ge=1)
    per_page: int = Field(default=20, description="Items per page", ge=1, le=50)
    has_next: bool = Field(description="Whether there's a next page")
    has_prev: bool = Field(description="Whether there's a previous page")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"items": ["..."], "total": 100, "page": 1, "per_page": 20, "has_next": True, "has_prev": False}
        }
    )


class ErrorResponse(BaseModel):
    """Body returned for every domain error."""

    message: str = Field(description="Human-readable error message")
    code: str = Field(description="Error code for programmatic handling")
    kind: str = Field(description="Error category, e.g. conflict or policy_violation")
    retryable: bool = Field(default=False, description="Whether repeating the request may succeed")
    details: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": "Selected time slot is not available",
                "code": "SLOT_CONFLICT",
                "kind": "conflict",
                "retryable": False,
                "details": {"conflicting_booking_ids": ["01J..."]},
            }
        }
    )
