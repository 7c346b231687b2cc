"""FastAPI route definitions for the shortlink REST API.

This module provides all HTTP endpoints with dependency injection, error
handling, and response serialization for the shortlink service.

API Endpoint Overview
=====================
::
    GET    /health
        └─ HealthResponse (200)

    POST   /create
        ├─ URLCreate (request body)
        └─ ShortURLResponse (200) or 400/409/500

    GET    /analytics?page=&limit=&sort=        [x-api-key | Bearer]
        └─ AnalyticsPage (200) or 401

    DELETE /analytics                           [x-api-key | Bearer]
        ├─ PurgeRequest (request body)
        └─ PurgeResponse (200) or 400/401

    GET    /analytics/:id                       [x-api-key | Bearer]
        └─ AnalyticsDetail (200) or 401

    GET    /:id
        └─ 302 Redirect or 404

Request Flow Diagram
====================
::
    ┌─────────────┐
    │  HTTP       │
    │  Request    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Validate &  │
    │ Parse       │
    │ (Pydantic)  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check API   │
    │ key (admin) │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Call Service│
    │ Layer       │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serialize   │
    │ Response    │
    └─────────────┘

Key Behaviours
===============
- Static paths are registered before the ``/{short_id}`` catch-all.
- Service errors (ShortlinkError) are rendered by the handler in
  shortlink.main, so routes only log and delegate.
- Redirects use 302 and are only returned after the click is committed.
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy import text

from shortlink.analytics_service import AnalyticsService
from shortlink.dependencies import (
    RequestContext,
    get_analytics_service,
    get_request_context,
    get_url_service,
    require_api_key,
)
from shortlink.enums import HealthStatus
from shortlink.schemas import (
    AnalyticsDetail,
    AnalyticsPage,
    HealthResponse,
    PurgeRequest,
    PurgeResponse,
    ShortURLResponse,
    URLCreate,
)
from shortlink.url_service import URLShorteningService

__all__ = ["router"]

router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    try:
        await ctx.database.execute(text("SELECT 1"))
    except Exception as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    return HealthResponse(status=db_status, database=db_status)


@router.post("/create", response_model=ShortURLResponse, tags=["urls"])
async def create_short_url(
    payload: URLCreate,
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> ShortURLResponse:
    ctx.add_tag("url_creation")
    ctx.logger.info(
        f"Short URL requested: {payload.url}",
        extra={"operation": "create_short_url", "target_url": payload.url, "custom_id": payload.custom_id},
    )

    created = await service.create_short_url(payload)

    ctx.logger.info(
        f"Short URL served: {created.short_url} (existing={created.existing})",
        extra={"operation": "create_short_url", "duration_ms": ctx.get_duration()},
    )
    return created


@router.get("/analytics", response_model=AnalyticsPage, tags=["analytics"], dependencies=[Depends(require_api_key)])
async def list_analytics(
    page: int | None = Query(None, description="Page number, 1-based (default 1)"),
    limit: int | None = Query(None, description="Rows per page, clamped to [1, 500] (default 50)"),
    sort: str | None = Query(None, description="Order by last click: asc or desc (default desc)"),
    service: AnalyticsService = Depends(get_analytics_service),
) -> AnalyticsPage:
    return await service.list_summaries(page=page, limit=limit, sort=sort)


@router.delete("/analytics", response_model=PurgeResponse, tags=["analytics"], dependencies=[Depends(require_api_key)])
async def purge_analytics(
    payload: PurgeRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: AnalyticsService = Depends(get_analytics_service),
) -> PurgeResponse:
    ctx.add_tag("purge")
    ctx.logger.info(f"Purge requested for {len(payload.ids)} id(s)", extra={"operation": "purge"})
    return await service.purge(payload.ids)


@router.get(
    "/analytics/{short_id}",
    response_model=AnalyticsDetail,
    tags=["analytics"],
    dependencies=[Depends(require_api_key)],
)
async def get_analytics_detail(
    short_id: str,
    service: AnalyticsService = Depends(get_analytics_service),
) -> AnalyticsDetail:
    return await service.get_detail(short_id)


@router.get("/{short_id}", tags=["redirect"])
async def redirect_to_url(
    short_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> RedirectResponse:
    ctx.add_tag("redirect")
    destination = await service.record_click(short_id, ctx.click_metadata)

    ctx.logger.info(
        f"Redirect: {short_id} -> {destination}",
        extra={"operation": "redirect", "short_id": short_id, "duration_ms": ctx.get_duration()},
    )
    return RedirectResponse(url=destination, status_code=302)
