"""Configuration management for the shortlink service.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram — get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Import**::
    from shortlink.config import get_settings

**Step 2 — Get settings**::
    settings = get_settings()
    db_url = settings.DATABASE_URL

**Step 3 — Pass them on**::
    service = AnalyticsService(db, settings, logger)

Key Behaviours
===============
- Settings are cached after first access for performance.
- Environment variables (and ``.env``) override defaults automatically.
- Services never read the environment themselves; they receive a Settings
  instance at construction, so tests can build one with explicit values.
- ``API_KEY`` left unset means every analytics request is rejected.

Classes:
    Settings:  Pydantic model for all configuration values.

"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "shortlink"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Public origin used to build short URLs. Falls back to the request origin.
    BASE_URL: str | None = None

    # Database (SQLite through aiosqlite by default, PostgreSQL through asyncpg)
    DATABASE_URL: str = "sqlite+aiosqlite:///./shortlink.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Shared secret for the analytics endpoints
    API_KEY: str | None = None

    # Short id generation
    SHORT_ID_ALPHABET: str = "1234567890abcdefghijklmnopqrstuvwxyz"
    SHORT_ID_LENGTH: int = 7
    SHORT_ID_SEED: int | None = None

    # Analytics paging
    ANALYTICS_DEFAULT_LIMIT: int = 50
    ANALYTICS_MAX_LIMIT: int = 500
    ANALYTICS_DETAIL_LIMIT: int = 1000

    # Click metadata headers set by the edge proxy
    CLIENT_IP_HEADER: str = "cf-connecting-ip"
    COUNTRY_CODE_HEADER: str = "cf-ipcountry"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
