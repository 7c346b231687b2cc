"""Pydantic schemas for request/response validation in the shortlink service.

This module defines Pydantic models for API input validation and output serialization,
ensuring type safety and automatic OpenAPI documentation generation.

Schema Hierarchy
=================
::
    URLCreate (Input)
    ├─ url: str (validated absolute URL)
    └─ custom_id: str | None (optional, validated)

    ShortURLResponse (Output)
    ├─ short_url: str (origin + "/" + id)
    ├─ existing: bool
    └─ created: datetime | None

    AnalyticsPage (Output)
    ├─ page, limit, sort, total
    └─ data: list[AnalyticsSummary]

    AnalyticsDetail (Output)
    ├─ id, original_url, click_count
    └─ analytics: list[ClickRecord]

    PurgeRequest (Input)  → PurgeResponse (Output)

    HealthResponse (Output)

How to Use
===========
**Step 1 — Input validation**::
    @router.post("/create")
    async def create(payload: URLCreate):
        # payload.url is already a well-formed absolute URL
        ...

**Step 2 — Response serialization**::
    return ShortURLResponse(short_url=short_url, existing=False, created=record.created_at)

Key Behaviours
===============
- URL validation uses the validators library for RFC compliance.
- An empty custom_id is treated as absent.
- Custom ids may not shadow the service's own route segments.
- Validation errors surface as 400 responses (see shortlink.main).

Classes:
    URLCreate:  Input schema for short URL creation.
    ShortURLResponse:  Output schema for created/deduplicated URLs.
    ClickMetadata:  Client metadata captured for a redirect.
    AnalyticsSummary:  One per-id row of the analytics listing.
    AnalyticsPage:  Paginated analytics listing.
    ClickRecord:  One click event in the per-id detail view.
    AnalyticsDetail:  Per-id analytics detail.
    PurgeRequest / PurgeResponse:  Bulk purge input and output.
    HealthResponse:  Output schema for health checks.
"""

import datetime
import re

import validators
from pydantic import BaseModel, field_validator

from shortlink.enums import HealthStatus, SortOrder

__all__ = [
    "AnalyticsDetail",
    "AnalyticsPage",
    "AnalyticsSummary",
    "ClickMetadata",
    "ClickRecord",
    "HealthResponse",
    "PurgeRequest",
    "PurgeResponse",
    "RESERVED_IDS",
    "ShortURLResponse",
    "URLCreate",
]

CUSTOM_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
RESERVED_IDS = frozenset({"analytics", "create", "docs", "redoc", "health", "metrics", "openapi.json"})


class URLCreate(BaseModel):
    url: str
    custom_id: str | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v or not validators.url(v, simple_host=True):
            raise ValueError("Invalid URL provided")
        return v

    @field_validator("custom_id")
    @classmethod
    def validate_custom_id(cls, v: str | None) -> str | None:
        if not v:
            return None
        if not CUSTOM_ID_PATTERN.match(v):
            raise ValueError("Custom id must be 1-64 characters of letters, digits, '-' or '_'")
        if v.lower() in RESERVED_IDS:
            raise ValueError(f"Custom id '{v}' is reserved")
        return v


class ShortURLResponse(BaseModel):
    short_url: str
    existing: bool
    created: datetime.datetime | None = None


class ClickMetadata(BaseModel):
    ip: str = ""
    user_agent: str = ""
    referrer: str = ""
    country_code: str = ""


class AnalyticsSummary(BaseModel):
    short_id: str
    click_count: int
    first_clicked: datetime.datetime
    last_clicked: datetime.datetime
    latest_referrer: str | None = None
    country_code: str | None = None
    original_url: str | None = None


class AnalyticsPage(BaseModel):
    page: int
    limit: int
    sort: SortOrder
    total: int
    data: list[AnalyticsSummary]


class ClickRecord(BaseModel):
    timestamp: datetime.datetime
    ip: str | None = None
    user_agent: str | None = None
    referrer: str | None = None
    country_code: str | None = None


class AnalyticsDetail(BaseModel):
    id: str
    original_url: str | None = None
    click_count: int
    analytics: list[ClickRecord]


class PurgeRequest(BaseModel):
    ids: list[str]


class PurgeResponse(BaseModel):
    success: bool
    ids: list[str]


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
