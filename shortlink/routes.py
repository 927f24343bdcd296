"""FastAPI route definitions for the shortlink REST API.

API Endpoint Overview
=====================
::
    GET  /health
        └─ HealthResponse (200) or (503)

    POST /api/v1/shorten
        ├─ LinkCreate (request body)
        └─ LinkResponse (201) or 400/409/500

    GET  /api/v1/stats/{code}
        └─ LinkStatsResponse (200) or 404

    GET  /
        └─ static index.html or 404

    GET  /{code}  (also HEAD; any path not matched above)
        └─ 301 Redirect or 404/410/500

Key Behaviours
===============
- Handlers raise ShortLinkError subclasses; the app-level handler in
  shortlink.main renders them as {"detail": ...} with their status code.
- The redirect handler never waits on click accounting.
- 301 redirects, as short links are permanent once created.
- /{code} is registered last so it only catches what nothing else matched;
  multi-segment paths resolve as codes too and end in the service's 404.
"""

from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse

from shortlink.dependencies import RequestContext, get_link_service, get_request_context, get_resolver
from shortlink.enums import HealthStatus, ResolutionOutcome
from shortlink.exceptions import ExpiredError, NotFoundError
from shortlink.link_service import LinkService
from shortlink.resolver import Resolver
from shortlink.schemas import ErrorResponse, HealthResponse, LinkCreate, LinkResponse, LinkStatsResponse

__all__ = ["router"]

router = APIRouter()

_ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    410: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
    tags=["health"],
)
async def health_check(
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> JSONResponse:
    report = await service.health()
    body = HealthResponse.model_validate(report)
    status_code = 200 if report.status is HealthStatus.HEALTHY else 503
    ctx.logger.debug(f"Health check completed: {report.status}")
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.post(
    "/api/v1/shorten",
    response_model=LinkResponse,
    response_model_exclude_none=True,
    status_code=201,
    responses=_ERRORS,
    tags=["links"],
)
async def shorten_url(
    payload: LinkCreate,
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> LinkResponse:
    ctx.logger.info(
        f"Link creation requested: {payload.original_url}",
        extra={"operation": "create_link", "custom_code": payload.custom_code},
    )
    link = await service.create_link(
        payload.original_url,
        custom_code=payload.custom_code,
        expires_at=payload.expires_at,
    )
    ctx.logger.info(
        f"Link created: {link.code}",
        extra={"operation": "create_link", "short_code": link.code, "duration_ms": ctx.get_duration()},
    )
    return LinkResponse.model_validate(link)


@router.get("/api/v1/stats/{code}", response_model=LinkStatsResponse, responses=_ERRORS, tags=["links"])
async def get_stats(
    code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> LinkStatsResponse:
    ctx.logger.info(f"Stats requested for code: {code}")
    stats = await service.get_stats(code)
    return LinkStatsResponse.model_validate(stats)


@router.get("/", include_in_schema=False)
async def index(ctx: RequestContext = Depends(get_request_context)) -> FileResponse:
    return _static_index(ctx)


@router.api_route("/{code:path}", methods=["GET", "HEAD"], responses=_ERRORS, tags=["redirect"])
async def redirect_to_url(
    code: str,
    ctx: RequestContext = Depends(get_request_context),
    resolver: Resolver = Depends(get_resolver),
):
    resolution = await resolver.resolve(code)

    if resolution.outcome is ResolutionOutcome.RESERVED:
        return _static_index(ctx)
    if resolution.outcome is ResolutionOutcome.NOT_FOUND:
        ctx.logger.warning(
            f"Redirect failed - code not found: {code}",
            extra={"operation": "redirect", "short_code": code, "error": "not_found"},
        )
        raise NotFoundError("Short URL not found")
    if resolution.outcome is ResolutionOutcome.EXPIRED:
        ctx.logger.warning(
            f"Redirect failed - link expired: {code}",
            extra={"operation": "redirect", "short_code": code, "error": "expired"},
        )
        raise ExpiredError("Link expired")

    ctx.logger.info(
        f"Redirect: {code} -> {resolution.original_url}",
        extra={
            "operation": "redirect",
            "short_code": code,
            "cache_hit": resolution.from_cache,
            "duration_ms": ctx.get_duration(),
        },
    )
    return RedirectResponse(url=resolution.original_url, status_code=301)


def _static_index(ctx: RequestContext) -> FileResponse:
    index_file = Path(ctx.settings.STATIC_DIR) / "index.html"
    if not index_file.is_file():
        raise NotFoundError("Not found")
    return FileResponse(index_file)
