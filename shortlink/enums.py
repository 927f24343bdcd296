"""Shared enums for the shortlink service.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["CacheStatus", "HealthStatus", "RequestStatus", "ResolutionOutcome"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"
    ERROR = "error"


class CacheStatus(StrEnum):
    """Cache status values for metrics."""

    HIT = "true"
    MISS = "false"


class ResolutionOutcome(StrEnum):
    """Terminal states of a redirect resolution."""

    REDIRECT = "redirect"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    RESERVED = "reserved"
