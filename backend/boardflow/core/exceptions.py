"""Common exception classes.

Every error raised by the service layer derives from ``AppError`` so that
routers can map it to an HTTP response without knowing the concrete module
that raised it.
"""

from __future__ import annotations

from typing import Any

# =============================================================================
# Base
# =============================================================================


class AppError(Exception):
    """Application base exception.

    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code for API responses.
        details: Additional error context.
    """

    error_code: str = "APP_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an API error body."""
        return {
            "code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Lookup / integrity errors
# =============================================================================


class ResourceNotFoundError(AppError):
    """A requested resource does not exist (or is soft-deleted).

    Example:
        >>> raise ResourceNotFoundError("automation", "123e4567-...")
    """

    error_code = "NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: Any) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type.capitalize()} {resource_id} not found",
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
        )


class ImmutableRecordError(AppError):
    """An update was attempted on an append-only or frozen record.

    Attributes:
        resource_type: Model name of the record.
        fields: Names of the fields that were modified.
    """

    error_code = "IMMUTABLE_RECORD"

    def __init__(self, resource_type: str, fields: list[str]) -> None:
        self.resource_type = resource_type
        self.fields = fields
        super().__init__(
            f"{resource_type} records are immutable; "
            f"refusing to update {', '.join(sorted(fields))}",
            details={"resource_type": resource_type, "fields": sorted(fields)},
        )


__all__ = [
    "AppError",
    "ImmutableRecordError",
    "ResourceNotFoundError",
]
