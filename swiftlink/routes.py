"""FastAPI route definitions for the SwiftLink REST API.

API Endpoint Overview
=====================
::
    GET  /health
        └─ HealthResponse (200)

    POST /api/shorten
        ├─ ShortenRequest {originalUrl} (request body)
        └─ ShortenResponse (200) or {error} 400/500

    GET  /api/list?limit=N
        └─ [LinkRecord] (200, newest first, at most LIST_LIMIT) or {error} 503/500

    GET  /api/stats/{short_code}
        └─ LinkRecord (200) or {error} 404/503/500

    GET  /r/{short_code}
        └─ 301 Redirect, 404 "Link Not Found" page,
           503 "could not verify" page, or 500

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
    │ Inject      │
    │ RequestCtx  │
    │ (services)  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Call Service│
    │ Layer       │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Map errors  │
    │ to status   │
    └─────────────┘

Key Behaviours
===============
- The redirect answers as soon as the URL is known; the click increment runs
  as a detached task.
- "Not found" (404) and "could not verify" (503) are distinct outcomes.
- API errors are JSON objects of the form {"error": "..."}.
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response

from swiftlink.dependencies import RequestContext, get_request_context
from swiftlink.enums import HealthStatus
from swiftlink.exceptions import InvalidInputError, NotFoundError, OfflineError
from swiftlink.schemas import ErrorResponse, HealthResponse, LinkRecord, ShortenRequest, ShortenResponse

__all__ = ["router"]

router = APIRouter()

OFFLINE_RETRY_AFTER_SECONDS = 5

NOT_FOUND_PAGE = """<html>
  <body style="background:#111; color:#fff; font-family:sans-serif; display:flex; justify-content:center; align-items:center; height:100vh;">
    <div style="text-align:center">
      <h1>Link Not Found</h1>
      <p>The requested short link does not exist.</p>
    </div>
  </body>
</html>
"""

OFFLINE_PAGE = """<html>
  <body style="background:#111; color:#fff; font-family:sans-serif; display:flex; justify-content:center; align-items:center; height:100vh;">
    <div style="text-align:center">
      <h1>Link Temporarily Unavailable</h1>
      <p>We couldn't verify this link right now. Please try again in a moment.</p>
    </div>
  </body>
</html>
"""


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    ctx.logger.info("Health check requested")
    store_status = HealthStatus.HEALTHY if await ctx.services.ping() else HealthStatus.UNHEALTHY
    return HealthResponse(status=store_status, store=store_status)


@router.post(
    "/api/shorten",
    response_model=ShortenResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["links"],
)
async def shorten_url(
    payload: ShortenRequest,
    ctx: RequestContext = Depends(get_request_context),
) -> ShortenResponse | JSONResponse:
    ctx.add_tag("link_creation")
    ctx.logger.info(
        f"Link shortening requested: {payload.original_url}",
        extra={"operation": "shorten", "target_url": payload.original_url},
    )

    try:
        short_code = await ctx.services.shortener.shorten(payload.original_url)
    except InvalidInputError as exc:
        return _error(400, str(exc))
    except Exception as exc:
        ctx.logger.error(
            f"Shorten error: {exc}",
            extra={"operation": "shorten", "error": str(exc), "duration_ms": ctx.get_duration()},
        )
        return _error(500, "Internal server error")

    ctx.logger.info(
        f"Link shortened successfully: {short_code}",
        extra={"operation": "shorten", "short_code": short_code, "duration_ms": ctx.get_duration()},
    )
    return ShortenResponse(short_code=short_code, original_url=payload.original_url)


@router.get(
    "/api/list",
    response_model=list[LinkRecord],
    responses={500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    tags=["links"],
)
async def list_links(
    limit: int | None = Query(None, ge=1),
    ctx: RequestContext = Depends(get_request_context),
) -> list[LinkRecord] | JSONResponse:
    max_limit = ctx.settings.LIST_LIMIT
    limit = min(limit or max_limit, max_limit)
    try:
        return await ctx.services.shortener.list_recent(limit)
    except OfflineError as exc:
        ctx.logger.warning(f"Listing unavailable: {exc}")
        return _error(503, str(exc))
    except Exception as exc:
        ctx.logger.error(f"List error: {exc}")
        return _error(500, str(exc))


@router.get(
    "/api/stats/{short_code}",
    response_model=LinkRecord,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    tags=["links"],
)
async def get_stats(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
) -> LinkRecord | JSONResponse:
    ctx.logger.info(f"Stats requested for short code: {short_code}")
    try:
        return await ctx.services.resolver.lookup(short_code)
    except NotFoundError:
        return _error(404, "Short URL not found")
    except OfflineError as exc:
        return _error(503, str(exc))


@router.get("/r/{short_code}", tags=["redirect"])
async def redirect_to_url(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
) -> Response:
    ctx.add_tag("redirect")
    ctx.logger.info(
        f"Redirect requested for short code: {short_code}",
        extra={
            "operation": "redirect",
            "short_code": short_code,
            "user_agent": ctx.user_agent,
            "client_ip": ctx.client_ip,
        },
    )

    try:
        original_url = await ctx.services.resolver.resolve(short_code, defer_increment=True)
    except NotFoundError:
        ctx.logger.warning(
            f"Redirect failed - short code not found: {short_code}",
            extra={"operation": "redirect", "short_code": short_code, "error": "not_found"},
        )
        return HTMLResponse(NOT_FOUND_PAGE, status_code=404)
    except OfflineError as exc:
        ctx.logger.warning(
            f"Redirect failed - store unreachable: {short_code}",
            extra={"operation": "redirect", "short_code": short_code, "error": str(exc)},
        )
        return HTMLResponse(
            OFFLINE_PAGE,
            status_code=503,
            headers={"Retry-After": str(OFFLINE_RETRY_AFTER_SECONDS)},
        )
    except Exception as exc:
        ctx.logger.error(
            f"Redirect error for {short_code}: {exc}",
            extra={"operation": "redirect", "short_code": short_code, "error": str(exc)},
        )
        return PlainTextResponse("Server Error", status_code=500)

    ctx.logger.info(
        f"Redirect successful: {short_code} -> {original_url}",
        extra={"operation": "redirect", "short_code": short_code, "duration_ms": ctx.get_duration()},
    )
    return RedirectResponse(url=original_url, status_code=301)
