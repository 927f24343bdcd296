"""Pydantic schemas for request/response serialization in the shortlink API.

Schema Hierarchy
=================
::
    LinkCreate (Input)
    ├─ original_url: str
    ├─ custom_code: str | None
    └─ expires_at: str | None (RFC 3339, parsed by the service)

    LinkResponse (Output, 201)
    ├─ code: str
    ├─ short_url: str
    ├─ original_url: str
    ├─ created_at: datetime
    └─ expires_at: datetime | None (omitted when absent)

    LinkStatsResponse (Output)
    ├─ code, original_url, click_count, created_at

    HealthResponse (Output, 200/503)
    ├─ status, database, cache_size, total_links
    └─ uptime_seconds, version, timestamp

Key Behaviours
===============
- Input models only check shape; URL, code and expiry rules live in the
  service so their failures map to 400 rather than 422.
- Output models read straight from the service dataclasses.
"""

import datetime

from pydantic import BaseModel

from shortlink.enums import HealthStatus

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "LinkCreate",
    "LinkResponse",
    "LinkStatsResponse",
]


class LinkCreate(BaseModel):
    original_url: str
    custom_code: str | None = None
    expires_at: str | None = None


class LinkResponse(BaseModel):
    code: str
    short_url: str
    original_url: str
    created_at: datetime.datetime
    expires_at: datetime.datetime | None = None

    model_config = {"from_attributes": True}


class LinkStatsResponse(BaseModel):
    code: str
    original_url: str
    click_count: int
    created_at: datetime.datetime

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: HealthStatus
    database: str
    cache_size: int
    total_links: int
    uptime_seconds: float
    version: str
    timestamp: int

    model_config = {"from_attributes": True}


class ErrorResponse(BaseModel):
    detail: str
