"""FastAPI application entry point for the SwiftLink URL shortener.

This module configures the FastAPI application with middleware, lifecycle
management, validation error handling and route registration.

Application Lifecycle Diagram
=============================
::
    ┌──────────────┐
    │  uvicorn     │
    │  startup     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ Create       │
    │ FastAPI app  │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ CORS +       │
    │ Prometheus   │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ startup:     │
    │ build store, │
    │ cache and    │
    │ services     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ Serve HTTP   │
    │ requests     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ shutdown:    │
    │ drain clicks,│
    │ flush queue, │
    │ close store  │
    └──────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn swiftlink.main:app --host 0.0.0.0 --port 8000

**Step 2 — Shorten a URL**::
    curl -X POST http://localhost:8000/api/shorten \
         -H "Content-Type: application/json" \
         -d '{"originalUrl": "https://example.com"}'

**Step 3 — Follow the short link**::
    curl -i http://localhost:8000/r/Ab3dE9

Key Behaviours
===============
- Malformed request bodies are answered with 400 {"error": ...}.
- Metrics are exposed at /metrics.
- On shutdown, detached click increments are awaited before the store closes.
"""

__all__ = ["app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from swiftlink.config import get_settings
from swiftlink.dependencies import _service_manager
from swiftlink.routes import router

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    await _service_manager.initialize()
    yield
    # Shutdown
    await _service_manager.cleanup()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Short links with collision-checked codes and atomic click counts",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(error.get("msg", "invalid value") for error in exc.errors())
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {details}"})


Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
).instrument(app).expose(app)

app.include_router(router)
