"""FastAPI application entry point for the shortlink service.

Application Lifecycle Diagram
===========================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌──────────────┐
    │ create_app() │
    │ + manager    │
    └──────┬───────┘
           ▼
    ┌─────────────┐
    │ Middleware: │
    │ CORS, sec.  │
    │ headers     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ startup:    │
    │ initialize()│
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
    │ cleanup()   │
    └─────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn shortlink.main:app --host 0.0.0.0 --port 8080

**Step 2 — Make API calls**::
    curl -X POST http://localhost:8080/api/v1/shorten \
         -H "Content-Type: application/json" \
         -d '{"original_url": "https://example.com"}'

    curl -i http://localhost:8080/1

Key Behaviours
===============
- The schema is bootstrapped on startup (or on first request when the
  lifespan does not run, e.g. under an in-process test transport).
- Shutdown drains in-flight click increments before closing the database.
- ShortLinkError subclasses render as {"detail": ...} with their status code;
  malformed request bodies are 400.
"""

__all__ = ["app", "create_app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from shortlink.dependencies import ServiceManager
from shortlink.exceptions import ShortLinkError
from shortlink.routes import router

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    manager: ServiceManager = app.state.services
    await manager.initialize()
    yield
    await manager.cleanup()


async def shortlink_error_handler(request: Request, exc: ShortLinkError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": "Invalid request body"})


def create_app(manager: Optional[ServiceManager] = None) -> FastAPI:
    manager = manager or ServiceManager()
    settings = manager.settings

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Short codes for long URLs, with click counting",
        lifespan=lifespan,
    )
    app.state.services = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response

    app.add_exception_handler(ShortLinkError, shortlink_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=False,
        should_respect_env_var=False,
    ).instrument(app).expose(app, include_in_schema=False)

    app.include_router(router)
    return app


app = create_app()
