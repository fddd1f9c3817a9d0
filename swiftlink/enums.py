"""Shared enums for the SwiftLink application.

This module defines all status and mode enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "RequestStatus", "CacheStatus", "ServiceMode", "StoreBackend", "ClickOutcome"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"

    @classmethod
    def from_str(cls, value: str) -> "HealthStatus":
        """Safely parse from string, falling back to UNHEALTHY for unknown values."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNHEALTHY


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    ERROR = "error"
    NOT_FOUND = "not_found"
    OFFLINE = "offline"


class CacheStatus(StrEnum):
    """Cache status values for metrics."""

    HIT = "true"
    MISS = "false"


class ClickOutcome(StrEnum):
    """Outcome labels for click increments."""

    RECORDED = "recorded"
    FAILED = "failed"


class ServiceMode(StrEnum):
    """How shorten/resolve reach the durable store."""

    DIRECT = "direct"
    BACKEND = "backend"


class StoreBackend(StrEnum):
    """Durable store implementations."""

    SQL = "sql"
    REDIS = "redis"
    MEMORY = "memory"
