"""Dependency injection with a singleton service manager.

This module provides a centralized way to inject the database session, shared
resources and request metadata into the API endpoints, using a singleton
pattern for shared resources to minimize per-request overhead.
"""

import logging
import secrets
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.analytics_service import AnalyticsService
from shortlink.config import Settings, get_settings
from shortlink.database import get_db
from shortlink.errors import UnauthorizedError
from shortlink.id_generator import ShortIdGenerator
from shortlink.schemas import ClickMetadata
from shortlink.url_service import URLShorteningService

__all__ = [
    "RequestContext",
    "ServiceManager",
    "get_analytics_service",
    "get_request_context",
    "get_service_manager",
    "get_url_service",
    "require_api_key",
]


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Singleton service manager for shared resources.

    Holds what doesn't need to be created per request: settings, the logger
    and the short id generator (whose seeded sequence must carry across
    requests).
    """

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def initialize(self, settings: Settings | None = None) -> None:
        """Initialize shared resources once at startup."""
        if not self._initialized:
            self.settings = settings or get_settings()
            self.logger = self._setup_logger()
            self.id_generator = ShortIdGenerator.from_settings(self.settings)
            self._initialized = True

    def _setup_logger(self) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("shortlink")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(self.settings.LOG_LEVEL.upper())
        return logger

    async def cleanup(self) -> None:
        """Release shared resources at shutdown."""
        self._initialized = False


# Global singleton instance
_service_manager = ServiceManager()


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request context with client metadata and shared resource access.

    Attributes:
        database: Async database session (only per-request resource)
        service_manager: Singleton service manager with shared resources
        origin: Public origin short URLs are built on
        request_id: Unique identifier for this request
        client_ip: Client IP address, empty if unknown
        user_agent: Client user agent string, empty if absent
        referrer: Referer header, empty if absent
        country_code: Country code set by the edge proxy, empty if absent
        start_time: Request start timestamp
        tags: Request tags for categorization
    """

    database: AsyncSession
    service_manager: ServiceManager
    origin: str
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    client_ip: str = ""
    user_agent: str = ""
    referrer: str = ""
    country_code: str = ""
    start_time: float = field(default_factory=lambda: time.time())
    tags: list[str] = field(default_factory=list)

    @property
    def settings(self) -> Settings:
        """Get shared settings."""
        return self.service_manager.settings

    @property
    def id_generator(self) -> ShortIdGenerator:
        """Get the shared short id generator."""
        return self.service_manager.id_generator

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Get shared logger with request context."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
                "tags": ",".join(self.tags),
            },
        )

    @property
    def click_metadata(self) -> ClickMetadata:
        return ClickMetadata(
            ip=self.client_ip,
            user_agent=self.user_agent,
            referrer=self.referrer,
            country_code=self.country_code,
        )

    def add_tag(self, tag: str) -> None:
        """Add a tag to the request context."""
        if tag not in self.tags:
            self.tags.append(tag)

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)


async def get_service_manager() -> ServiceManager:
    """Get the singleton service manager.

    Returns:
        ServiceManager: Initialized singleton service manager
    """
    if not _service_manager._initialized:
        await _service_manager.initialize()
    return _service_manager


def _client_ip(request: Request, settings: Settings) -> str:
    edge_ip = request.headers.get(settings.CLIENT_IP_HEADER)
    if edge_ip:
        return edge_ip.strip()
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


async def get_request_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    """Build the request context from the incoming request.

    Args:
        request: FastAPI Request object for extracting client info
        db: Database session (only per-request resource)
        manager: Singleton service manager with shared resources

    Returns:
        RequestContext: Context for the request
    """
    settings = manager.settings
    origin = settings.BASE_URL or str(request.base_url)

    return RequestContext(
        database=db,
        service_manager=manager,
        origin=origin.rstrip("/"),
        client_ip=_client_ip(request, settings),
        user_agent=request.headers.get("user-agent", ""),
        referrer=request.headers.get("referer", ""),
        country_code=request.headers.get(settings.COUNTRY_CODE_HEADER, ""),
    )


def get_url_service(ctx: RequestContext = Depends(get_request_context)) -> URLShorteningService:
    return URLShorteningService.from_context(ctx)


def get_analytics_service(ctx: RequestContext = Depends(get_request_context)) -> AnalyticsService:
    return AnalyticsService.from_context(ctx)


async def require_api_key(
    api_key: str | None = Depends(api_key_header),
    bearer: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    manager: ServiceManager = Depends(get_service_manager),
) -> None:
    """Reject the request unless it carries the configured API key.

    The key is accepted from ``x-api-key`` or ``Authorization: Bearer``.
    With no key configured, nothing is accepted.

    Raises:
        UnauthorizedError: Missing or mismatched credential
    """
    expected = manager.settings.API_KEY
    presented = api_key or (bearer.credentials if bearer else None)
    if not expected or not presented:
        raise UnauthorizedError()
    if not secrets.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
        raise UnauthorizedError()
