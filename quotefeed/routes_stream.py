# quotefeed/routes_stream.py
from __future__ import annotations

import asyncio
import json

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from quotefeed.routers.quotes import (
    get_quote_service,
    get_settings,
    require_api_key,
    resolve_market,
)
from quotefeed.service import QuoteService
from quotefeed.settings import Settings

router = APIRouter()

MIN_REFRESH_SEC = 0.5


def quotes_frame(quotes) -> str:
    """One SSE message: `data: [...]\\n\\n` with the same JSON shape as GET /api/markets."""
    payload = [q.model_dump(mode="json", by_alias=True, exclude_none=True) for q in quotes]
    return f"data: {json.dumps(payload)}\n\n"


@router.get("/api/markets/stream", dependencies=[Depends(require_api_key)])
async def stream_quotes(
    request: Request,
    market: str | None = Query(None),
    refresh_sec: float = Query(2.0, ge=MIN_REFRESH_SEC),
    settings: Settings = Depends(get_settings),
    service: QuoteService = Depends(get_quote_service),
) -> StreamingResponse:
    """
    Server-Sent Events stream of a market's quotes.

    Every frame goes through the same path as GET /api/markets, so the stream
    reads the cache and never adds upstream calls of its own.
    """
    market_key = resolve_market(market, settings)

    async def event_gen():
        while True:
            # Stop streaming if client disconnects
            if await request.is_disconnected():
                break

            quotes = await service.get_quotes(market_key)
            yield quotes_frame(quotes)

            # Pace the stream
            await asyncio.sleep(refresh_sec)

    return StreamingResponse(event_gen(), media_type="text/event-stream")
