"""Shared enums for the shortlink service.

This module defines all status and ordering enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "RequestStatus", "SortOrder"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    EXISTING = "existing"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    ERROR = "error"


class SortOrder(StrEnum):
    """Ordering of analytics summaries by last click."""

    ASC = "asc"
    DESC = "desc"

    @classmethod
    def from_str(cls, value: str | None) -> "SortOrder":
        """Case-insensitive parse; anything other than "asc" means DESC."""
        if value is not None and value.strip().lower() == cls.ASC:
            return cls.ASC
        return cls.DESC
