"""Base Pydantic schemas with common patterns.

This module defines base schemas and common patterns used across the API.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Required at runtime for Pydantic
from typing import Any
from uuid import UUID  # noqa: TC003 - Required at runtime for Pydantic

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """Base schema with common configuration for all schemas.

    Configures Pydantic v2 settings for consistent behavior across all schemas.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        use_enum_values=True,
    )


class BaseResponse(BaseSchema):
    """Base response schema with the id and creation timestamp."""

    id: UUID = Field(
        ...,
        description="Unique identifier (UUID v4)",
        examples=["550e8400-e29b-41d4-a716-446655440000"],
    )
    created_at: datetime = Field(
        ...,
        description="Timestamp when the resource was created",
        examples=["2024-01-15T10:30:00Z"],
    )


class ErrorResponse(BaseSchema):
    """Standard error body, as produced by ``AppError.to_dict``."""

    code: str = Field(
        ...,
        description="Machine-readable error code",
        examples=["CYCLE_DETECTED"],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Cycle detected: trigger-0 -> a -> trigger-0"],
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional error details",
        examples=[{"node_id": "a"}],
    )


class MessageResponse(BaseSchema):
    """Simple message response schema."""

    message: str = Field(
        ...,
        description="Response message",
        examples=["Automation deleted"],
    )


__all__ = [
    "BaseResponse",
    "BaseSchema",
    "ErrorResponse",
    "MessageResponse",
]
