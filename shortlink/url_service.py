"""URL Shortening Service Layer - Identifier Allocation and Click Recording

This module holds the write path of the service: turning a destination URL
into a short id (with dedup and conflict rules) and appending one click event
per successful redirect.

Architecture Overview
==================
::
    ┌──────────────────────────────────────────────────────┐
    │                 URLShorteningService                 │
    │  ┌───────────────────────┐  ┌──────────────────────┐ │
    │  │  Identifier Allocator │  │    Click Recorder    │ │
    │  │                       │  │                      │ │
    │  │ • Custom id conflict  │  │ • Resolve short id   │ │
    │  │ • Dedup by URL        │  │ • Append ClickEvent  │ │
    │  │ • Random id (nanoid)  │  │ • Return destination │ │
    │  └───────────────────────┘  └──────────────────────┘ │
    └──────────────────────────────────────────────────────┘
                │                            │
                ▼                            ▼
    ┌─────────────────┐          ┌─────────────────────┐
    │   urls table    │          │   analytics table   │
    └─────────────────┘          └─────────────────────┘

Request Flow Diagrams
=====================

URL Creation Flow
-----------------
::
    ┌─────────────┐
    │ POST /create│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Validate URL │
    │ (Pydantic)   │
    └──────┬──────┘
    custom_id?   │
    ┌─────┴──────────┐
    │ YES             │ NO
    ▼                 ▼
┌──────────┐   ┌──────────────┐
│ Id taken?│   │ Same URL     │
│ → 409    │   │ stored?      │
└────┬─────┘   │ → existing   │
     │         └──────┬───────┘
     │                ▼
     │         ┌──────────────┐
     │         │ Generate id  │
     │         └──────┬───────┘
     └──────┬─────────┘
            ▼
    ┌─────────────┐
    │ INSERT urls │
    │ PK clash →  │
    │ 409         │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ short_url,  │
    │ existing,   │
    │ created     │
    └─────────────┘

Click Tracking Flow
------------------
::
    ┌─────────────┐
    │  GET /:id   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Lookup urls │──── missing ──▶ 404, nothing written
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ INSERT      │
    │ analytics   │
    │ + COMMIT    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ 302 to      │
    │ destination │
    └─────────────┘

Consistency Notes
=================

- The dedup lookup and the insert are separate statements. Two concurrent
  creates of the same URL without a custom id can both miss the lookup and
  store two rows; that gap is accepted rather than serialized.
- Two concurrent creates with the same custom id are settled by the primary
  key: the loser's commit raises IntegrityError and is reported as a conflict.
- Nothing is retried. Store failures surface as InternalError.

Usage Examples
=============

```python
@router.post("/create")
async def create_short_url(
    payload: URLCreate,
    service: URLShorteningService = Depends(get_url_service),
) -> ShortURLResponse:
    return await service.create_short_url(payload)
```
"""

import logging
import time
from collections.abc import Callable

from prometheus_client import Counter, Histogram
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.config import Settings
from shortlink.enums import RequestStatus
from shortlink.errors import ConflictError, InternalError, NotFoundError
from shortlink.models import ClickEvent, UrlRecord
from shortlink.schemas import RESERVED_IDS, ClickMetadata, ShortURLResponse, URLCreate

__all__ = ["URLShorteningService"]


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

URL_CREATION_REQUESTS_TOTAL = Counter(
    "shortlink_creation_requests_total",
    "Total short URL creation requests",
    ["status"],
)
URL_REDIRECT_REQUESTS_TOTAL = Counter(
    "shortlink_redirect_requests_total",
    "Total redirect requests",
    ["status"],
)
CLICK_EVENTS_RECORDED_TOTAL = Counter(
    "shortlink_click_events_recorded_total",
    "Total click events written to the analytics table",
)
URL_CREATION_DURATION = Histogram(
    "shortlink_creation_duration_seconds",
    "Time taken to create short URLs",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)
CLICK_RECORD_DURATION = Histogram(
    "shortlink_click_record_duration_seconds",
    "Time taken to resolve a short id and record its click",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5],
)


# ============================================================================
# CORE SERVICE CLASS
# ============================================================================

class URLShorteningService:
    """Identifier allocation and click recording.

    Example:
        >>> service = URLShorteningService.from_context(ctx)
        >>> created = await service.create_short_url(URLCreate(url="https://example.com"))
        >>> created.short_url
        'https://sho.rt/k3v9x0a'
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        logger: logging.Logger | logging.LoggerAdapter,
        id_generator: Callable[[], str],
        origin: str,
    ):
        """Initialize the service with explicit collaborators.

        Args:
            db: Session for this unit of work
            settings: Service configuration
            logger: Logger (usually the request-scoped adapter)
            id_generator: Zero-argument callable returning a fresh short id
            origin: Public origin short URLs are built on, without trailing slash
        """
        self._db = db
        self._settings = settings
        self._logger = logger
        self._id_generator = id_generator
        self._origin = origin.rstrip("/")

    @classmethod
    def from_context(cls, ctx: "RequestContext") -> "URLShorteningService":
        """Factory method to create the service from a RequestContext.

        Args:
            ctx: Request context with all required dependencies

        Returns:
            URLShorteningService: Service bound to the request's session
        """
        return cls(
            db=ctx.database,
            settings=ctx.settings,
            logger=ctx.logger,
            id_generator=ctx.id_generator,
            origin=ctx.origin,
        )

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def create_short_url(self, payload: URLCreate) -> ShortURLResponse:
        """Allocate a short id for a destination URL.

        With a custom id, an id already in use is a conflict and no dedup by
        URL is attempted. Without one, a stored row with exactly the same URL
        is returned with ``existing=True`` and nothing new is written.

        Args:
            payload: Validated creation request

        Returns:
            ShortURLResponse: short_url, existing flag and creation time

        Raises:
            ConflictError: Custom id already in use, or the insert hit the
                primary key (custom id race or random id collision)
            InternalError: Any other storage failure
        """
        start_time = time.perf_counter()

        try:
            response = await self._allocate(payload)
        except ConflictError as exc:
            URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.CONFLICT).inc()
            self._logger.warning(f"Short URL creation conflict: {exc.detail}")
            raise
        except SQLAlchemyError as exc:
            await self._db.rollback()
            URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            self._logger.error(f"Short URL creation failed for {payload.url}: {exc}")
            raise InternalError() from exc
        finally:
            URL_CREATION_DURATION.observe(time.perf_counter() - start_time)

        status = RequestStatus.EXISTING if response.existing else RequestStatus.SUCCESS
        URL_CREATION_REQUESTS_TOTAL.labels(status=status).inc()
        return response

    async def record_click(self, short_id: str, metadata: ClickMetadata) -> str:
        """Resolve a short id and append one click event for it.

        The event is committed before this returns, so the redirect is only
        issued once the click is durable.

        Args:
            short_id: Id from the redirect path
            metadata: Client metadata captured from the request

        Returns:
            str: Destination URL to redirect to

        Raises:
            NotFoundError: Unknown short id (no event is written)
            InternalError: Storage failure
        """
        start_time = time.perf_counter()

        try:
            record = await self._lookup_record(short_id)
            if record is None:
                URL_REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND).inc()
                raise NotFoundError()

            destination = record.original_url
            self._db.add(ClickEvent(short_id=record.id, **metadata.model_dump()))
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            URL_REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            self._logger.error(f"Click recording failed for {short_id}: {exc}")
            raise InternalError() from exc
        finally:
            CLICK_RECORD_DURATION.observe(time.perf_counter() - start_time)

        URL_REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        CLICK_EVENTS_RECORDED_TOTAL.inc()
        self._logger.debug(f"Click recorded for {short_id}")
        return destination

    def short_url_for(self, short_id: str) -> str:
        return f"{self._origin}/{short_id}"

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    async def _allocate(self, payload: URLCreate) -> ShortURLResponse:
        if payload.custom_id:
            if await self._lookup_record(payload.custom_id) is not None:
                raise ConflictError("Custom ID already in use")
            short_id = payload.custom_id
        else:
            existing = await self._lookup_by_destination(payload.url)
            if existing is not None:
                self._logger.info(f"Short URL already existed: {existing.id} for {payload.url}")
                return self._to_response(existing, existing=True)
            short_id = self._id_generator()
            # Generated ids must not land on a route segment
            while short_id.lower() in RESERVED_IDS:
                short_id = self._id_generator()

        record = await self._insert_record(short_id, payload.url)
        self._logger.info(f"Short URL created: {record.id} -> {record.original_url}")
        return self._to_response(record, existing=False)

    async def _lookup_record(self, short_id: str) -> UrlRecord | None:
        result = await self._db.execute(select(UrlRecord).where(UrlRecord.id == short_id))
        return result.scalar_one_or_none()

    async def _lookup_by_destination(self, original_url: str) -> UrlRecord | None:
        # More than one row can exist after a create race; take the oldest.
        result = await self._db.execute(
            select(UrlRecord)
            .where(UrlRecord.original_url == original_url)
            .order_by(UrlRecord.created_at, UrlRecord.id)
            .limit(1)
        )
        return result.scalars().first()

    async def _insert_record(self, short_id: str, original_url: str) -> UrlRecord:
        record = UrlRecord(id=short_id, original_url=original_url)
        self._db.add(record)
        try:
            await self._db.commit()
        except IntegrityError as exc:
            await self._db.rollback()
            self._logger.warning(f"Insert collided on short id: {short_id}")
            raise ConflictError("Short ID already in use") from exc
        await self._db.refresh(record)
        return record

    def _to_response(self, record: UrlRecord, existing: bool) -> ShortURLResponse:
        return ShortURLResponse(
            short_url=self.short_url_for(record.id),
            existing=existing,
            created=record.created_at,
        )
