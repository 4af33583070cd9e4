# quotefeed/main.py
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from quotefeed.errors import envelope_from_http_exception
from quotefeed.logging_conf import setup_logging

# --- Observability ---
from quotefeed.observability import metrics_endpoint, timing_middleware

# --- Routers ---
from quotefeed.routers import quotes
from quotefeed.routers.quotes import get_quote_service, get_settings
from quotefeed.routes_stream import router as stream_router
from quotefeed.schemas import HealthResponse, VersionResponse
from quotefeed.service import QuoteService, build_service
from quotefeed.settings import Settings, settings
from quotefeed.utils import utc_now_iso
from quotefeed.version import version_payload


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests (or an embedding process) may have wired their own service already.
    if not hasattr(app.state, "settings"):
        app.state.settings = settings
    if not hasattr(app.state, "quote_service"):
        app.state.quote_service = build_service(app.state.settings)
    yield
    close = getattr(app.state.quote_service.cache, "aclose", None)
    if close is not None:
        await close()


# --- App ---
setup_logging()
app = FastAPI(title="QuoteFeed", version="0.1.0", lifespan=lifespan)

# --- Include routers ---
app.include_router(quotes.router)
app.include_router(stream_router)

# --- Observability ---
app.middleware("http")(timing_middleware)


# --- Error envelope ---
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    envelope = envelope_from_http_exception(exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope.model_dump(mode="json"),
        headers=getattr(exc, "headers", None),
    )


# --- Utility endpoints ---


@app.get("/health", response_model=HealthResponse)
def health(
    cfg: Settings = Depends(get_settings),
    service: QuoteService = Depends(get_quote_service),
):
    status = "ok" if cfg.alpha_vantage_api_key else "degraded"
    return HealthResponse(
        status=status,
        as_of=utc_now_iso(),
        cache_backend=service.cache.kind,
        upstream_available=service.rate_guard.available(),
        upstream_blocked_until=service.rate_guard.blocked_until_iso(),
    )


@app.get("/version", response_model=VersionResponse)
def version():
    return VersionResponse(**version_payload())


@app.get("/metrics")
def metrics():
    return metrics_endpoint()
