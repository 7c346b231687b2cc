"""FastAPI application entry point for the shortlink service.

This module configures and initializes the FastAPI application with middleware,
lifecycle management, error handlers and route registration.

Application Lifecycle Diagram
===========================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Create      │
    │ FastAPI app │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ CORS,       │
    │ handlers,   │
    │ /metrics    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Include     │
    │ routes      │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ startup:    │
    │ init_db()   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ shutdown:   │
    │ close_db()  │
    └─────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    API_KEY=secret uvicorn shortlink.main:app --host 0.0.0.0 --port 8000

**Step 2 — Shorten and follow**::
    curl -X POST http://localhost:8000/create \
         -H "Content-Type: application/json" \
         -d '{"url": "https://example.com"}'
    curl -i http://localhost:8000/abc1234

**Step 3 — Read analytics**::
    curl -H "x-api-key: secret" "http://localhost:8000/analytics?limit=10&sort=desc"

Key Behaviours
===============
- Tables and the analytics index are created on startup.
- ShortlinkError subclasses map to their status code with a JSON detail.
- Request validation failures are reported as 400, not 422.
- Unexpected exceptions become a bare 500; details only go to the log.
- Interactive docs are served by FastAPI at /docs, metrics at /metrics.
"""

__all__ = ["app"]

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from shortlink.config import get_settings
from shortlink.database import close_db, init_db
from shortlink.dependencies import _service_manager
from shortlink.errors import ShortlinkError
from shortlink.routes import router

settings = get_settings()
logger = logging.getLogger("shortlink")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    await _service_manager.initialize()
    await init_db()
    yield
    # Shutdown
    await _service_manager.cleanup()
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="URL shortener with per-redirect click analytics",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ShortlinkError)
async def shortlink_error_handler(request: Request, exc: ShortlinkError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = [str(error.get("msg", "Invalid input")) for error in exc.errors()]
    return JSONResponse(status_code=400, content={"detail": "; ".join(messages) or "Invalid input"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
).instrument(app).expose(app, include_in_schema=False)

app.include_router(router)
