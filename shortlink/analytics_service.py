"""Analytics Service Layer - Aggregation, Detail and Bulk Purge

This module reads the append-only click events back out as per-id reports
and removes ids together with their events.

Aggregation Layout
==================
::
    analytics a1                       one row per short_id
    ┌──────────────────────────┐      ┌─────────────────────────────────┐
    │ short_id | timestamp |…  │ ───▶ │ click_count     COUNT(*)        │
    │ abc1234  | 10:00:01  |   │      │ first_clicked   MIN(timestamp)  │
    │ abc1234  | 10:05:09  |   │      │ last_clicked    MAX(timestamp)  │
    │ zz9z9z9  | 09:59:59  |   │      │ latest_referrer MAX(referrer)   │
    └──────────────────────────┘      │   among rows at the id's MAX    │
                                      │   timestamp (correlated a2)     │
            LEFT JOIN urls ──────────▶│ country_code    MAX(country)    │
                                      │ original_url    urls row or NULL│
                                      └─────────────────────────────────┘
                                         ORDER BY last_clicked ASC|DESC
                                         LIMIT limit OFFSET (page-1)*limit

Reporting Quirks
================

These aggregates are kept exactly as downstream consumers have always seen
them:

- ``latest_referrer`` comes from the event(s) stamped with the id's latest
  timestamp. When several events share that exact timestamp, the
  lexically largest referrer among them wins. No other tie-break applies.
- ``country_code`` is the lexically largest country code over *all* of the
  id's events, not the most recent one.
- The detail view's ``click_count`` is the number of events returned, so it
  stops at ANALYTICS_DETAIL_LIMIT even when more events exist.
- ``total`` and the listed rows are separate reads. A concurrent purge can
  make them disagree for one response.

Purge Flow
==========
::
    ┌────────────────┐
    │ DELETE         │
    │ /analytics     │
    └───────┬────────┘
            ▼
    ┌────────────────┐
    │ ids empty?     │──── yes ──▶ InvalidInputError (no store access)
    └───────┬────────┘
            ▼
    ┌────────────────┐
    │ DELETE events  │
    │ DELETE urls    │  one transaction
    │ COMMIT         │  failure → ROLLBACK both
    └───────┬────────┘
            ▼
    ┌────────────────┐
    │ {success, ids} │
    └────────────────┘
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from prometheus_client import Counter, Histogram
from sqlalchemy import case, delete, distinct, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from shortlink.config import Settings
from shortlink.enums import RequestStatus, SortOrder
from shortlink.errors import InternalError, InvalidInputError
from shortlink.models import ClickEvent, UrlRecord
from shortlink.schemas import (
    AnalyticsDetail,
    AnalyticsPage,
    AnalyticsSummary,
    ClickRecord,
    PurgeResponse,
)

__all__ = ["AnalyticsService"]


ANALYTICS_REQUESTS_TOTAL = Counter(
    "shortlink_analytics_requests_total",
    "Total analytics operations",
    ["operation", "status"],
)
ANALYTICS_QUERY_DURATION = Histogram(
    "shortlink_analytics_query_duration_seconds",
    "Time taken by analytics operations",
    ["operation"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
PURGED_IDS_TOTAL = Counter(
    "shortlink_purged_ids_total",
    "Total short ids submitted for purge",
)


class AnalyticsService:
    """Read-side reports over click events, plus bulk purge."""

    def __init__(self, db: AsyncSession, settings: Settings, logger: logging.Logger | logging.LoggerAdapter):
        self._db = db
        self._settings = settings
        self._logger = logger

    @classmethod
    def from_context(cls, ctx: "RequestContext") -> "AnalyticsService":
        return cls(db=ctx.database, settings=ctx.settings, logger=ctx.logger)

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    def normalize_paging(self, page: int | None, limit: int | None, sort: str | None) -> tuple[int, int, SortOrder]:
        """Clamp paging input into range instead of rejecting it.

        Args:
            page: Requested page, 1-based
            limit: Requested page size
            sort: "asc" or "desc", case-insensitive

        Returns:
            tuple: (page >= 1, limit within [1, ANALYTICS_MAX_LIMIT], SortOrder)
        """
        page = max(1, page if page is not None else 1)
        if limit is None:
            limit = self._settings.ANALYTICS_DEFAULT_LIMIT
        limit = max(1, min(limit, self._settings.ANALYTICS_MAX_LIMIT))
        return page, limit, SortOrder.from_str(sort)

    async def list_summaries(
        self,
        page: int | None = None,
        limit: int | None = None,
        sort: str | None = None,
    ) -> AnalyticsPage:
        """Per-id click summaries, ordered by last click and paginated.

        ``total`` counts distinct ids over all events, independent of the
        page being returned. A page starting past ``total`` is answered
        without running the summary query. ``total`` and the rows are read
        by two statements without a shared snapshot, so a purge landing
        between them can leave ``total`` off by the purged ids.

        Raises:
            InternalError: Storage failure
        """
        page, limit, order = self.normalize_paging(page, limit, sort)
        offset = (page - 1) * limit

        async with self._timed("list"):
            total = (await self._db.execute(select(func.count(distinct(ClickEvent.short_id))))).scalar_one()
            rows = []
            if offset < total:
                rows = (await self._db.execute(self._summary_query(order, limit, offset))).mappings().all()

        self._logger.info(f"Analytics listing served: page={page} limit={limit} sort={order} total={total}")
        return AnalyticsPage(
            page=page,
            limit=limit,
            sort=order,
            total=total,
            data=[AnalyticsSummary.model_validate(dict(row)) for row in rows],
        )

    async def get_detail(self, short_id: str) -> AnalyticsDetail:
        """Most recent click events for one id, newest first.

        Unknown ids produce an empty report rather than an error.

        Raises:
            InternalError: Storage failure
        """
        async with self._timed("detail"):
            result = await self._db.execute(
                select(
                    ClickEvent.timestamp,
                    ClickEvent.ip,
                    ClickEvent.user_agent,
                    ClickEvent.referrer,
                    ClickEvent.country_code,
                )
                .where(ClickEvent.short_id == short_id)
                .order_by(ClickEvent.timestamp.desc(), ClickEvent.id.desc())
                .limit(self._settings.ANALYTICS_DETAIL_LIMIT)
            )
            events = [ClickRecord.model_validate(dict(row)) for row in result.mappings().all()]
            original_url = (
                await self._db.execute(select(UrlRecord.original_url).where(UrlRecord.id == short_id))
            ).scalar_one_or_none()

        return AnalyticsDetail(
            id=short_id,
            original_url=original_url,
            click_count=len(events),
            analytics=events,
        )

    async def purge(self, ids: list[str]) -> PurgeResponse:
        """Delete the ids' click events and URL rows in one transaction.

        Ids that do not exist are ignored. The input list is echoed back
        without checking what was actually removed.

        Raises:
            InvalidInputError: Empty id list
            InternalError: Storage failure; neither deletion is applied
        """
        if not ids:
            ANALYTICS_REQUESTS_TOTAL.labels(operation="purge", status=RequestStatus.VALIDATION_ERROR).inc()
            raise InvalidInputError("ids must be a non-empty list")

        targets = list(dict.fromkeys(ids))
        async with self._timed("purge"):
            await self._db.execute(delete(ClickEvent).where(ClickEvent.short_id.in_(targets)))
            await self._db.execute(delete(UrlRecord).where(UrlRecord.id.in_(targets)))
            await self._db.commit()

        PURGED_IDS_TOTAL.inc(len(targets))
        self._logger.info(f"Purged {len(targets)} short id(s)")
        return PurgeResponse(success=True, ids=ids)

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    def _summary_query(self, order: SortOrder, limit: int, offset: int):
        a1 = aliased(ClickEvent, name="a1")
        a2 = aliased(ClickEvent, name="a2")

        # Correlated on a1.short_id: the latest timestamp for the row's id.
        latest_timestamp = select(func.max(a2.timestamp)).where(a2.short_id == a1.short_id).scalar_subquery()

        last_clicked = func.max(a1.timestamp).label("last_clicked")
        ordering = last_clicked.asc() if order is SortOrder.ASC else last_clicked.desc()

        return (
            select(
                a1.short_id.label("short_id"),
                func.count().label("click_count"),
                last_clicked,
                func.min(a1.timestamp).label("first_clicked"),
                func.max(case((a1.timestamp == latest_timestamp, a1.referrer), else_=None)).label("latest_referrer"),
                func.max(a1.country_code).label("country_code"),
                UrlRecord.original_url.label("original_url"),
            )
            .select_from(a1)
            .outerjoin(UrlRecord, UrlRecord.id == a1.short_id)
            .group_by(a1.short_id, UrlRecord.original_url)
            .order_by(ordering, a1.short_id.asc())
            .limit(limit)
            .offset(offset)
        )

    @asynccontextmanager
    async def _timed(self, operation: str) -> AsyncIterator[None]:
        """Record duration and outcome of one operation.

        Storage errors roll the session back and surface as InternalError.
        """
        start_time = time.perf_counter()
        try:
            yield
        except SQLAlchemyError as exc:
            ANALYTICS_REQUESTS_TOTAL.labels(operation=operation, status=RequestStatus.ERROR).inc()
            await self._db.rollback()
            self._logger.error(f"Analytics {operation} failed: {exc}")
            raise InternalError() from exc
        else:
            ANALYTICS_REQUESTS_TOTAL.labels(operation=operation, status=RequestStatus.SUCCESS).inc()
        finally:
            ANALYTICS_QUERY_DURATION.labels(operation=operation).observe(time.perf_counter() - start_time)
