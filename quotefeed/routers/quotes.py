# quotefeed/routers/quotes.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from quotefeed.errors import http_error
from quotefeed.schemas import ErrorCode, Quote
from quotefeed.service import QuoteService
from quotefeed.settings import Settings

router = APIRouter(prefix="/api/markets", tags=["markets"])


# --------- dependencies ---------


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_quote_service(request: Request) -> QuoteService:
    return request.app.state.quote_service


def require_api_key(settings: Settings = Depends(get_settings)) -> None:
    """Missing provider credentials is the one failure callers get to see."""
    if not settings.alpha_vantage_api_key:
        raise http_error(
            ErrorCode.MISSING_API_KEY,
            "Missing API key",
            hint="Set ALPHA_VANTAGE_API_KEY",
        )


def resolve_market(market: str | None, settings: Settings) -> str:
    market = (market or "").strip().lower()
    return market or settings.default_market


# --------- routes ---------


@router.get(
    "",
    response_model=list[Quote],
    response_model_exclude_none=True,
    dependencies=[Depends(require_api_key)],
)
async def get_market_quotes(
    market: str | None = Query(None, description="Market key, e.g. crypto, fx, stocks"),
    settings: Settings = Depends(get_settings),
    service: QuoteService = Depends(get_quote_service),
):
    """Quotes for one market. Always 200: check each quote's `source` for real/simulated/mock."""
    return await service.get_quotes(resolve_market(market, settings))


@router.post(
    "/refresh",
    response_model=list[Quote],
    response_model_exclude_none=True,
    dependencies=[Depends(require_api_key)],
)
async def refresh_market_quotes(
    market: str | None = Query(None),
    settings: Settings = Depends(get_settings),
    service: QuoteService = Depends(get_quote_service),
):
    """Bypass the cache and hit the provider now (falls back like GET on failure)."""
    return await service.refresh(resolve_market(market, settings))


@router.get("/list")
def list_markets(service: QuoteService = Depends(get_quote_service)) -> dict[str, list[str]]:
    return {market: service.symbols_for(market) for market in service.markets}
