"""
Alpha Vantage quote client: one HTTP call per symbol.

Returns a Quote(source="real") or raises one of:
  RateLimited    -> guard is cooling down, or the provider reported quota exhaustion
  UpstreamFailed -> transport/timeout/decode failure, non-2xx, or provider error field
  InvalidPrice   -> the price field is missing or not a finite number

Notes / Pitfalls:
- Alpha Vantage usually answers quota exhaustion with HTTP 200 and a "Note"
  (older) or "Information" (newer) field, so the body is inspected, not just the status.
- crypto/fx go through CURRENCY_EXCHANGE_RATE, everything else through GLOBAL_QUOTE.
"""

from __future__ import annotations

import logging
import math
from typing import Any

import httpx
from pydantic import ValidationError

from quotefeed.errors import InvalidPrice, RateLimited, UpstreamFailed
from quotefeed.markets import EXCHANGE_RATE_MARKETS
from quotefeed.observability import UPSTREAM_CALLS
from quotefeed.rate_guard import RateGuard
from quotefeed.schemas import DataSource, Quote

logger = logging.getLogger(__name__)

_RATE_LIMIT_FIELDS = ("Note", "Information")
_ERROR_FIELD = "Error Message"


def split_pair(symbol: str, default_quote: str = "USD") -> tuple[str, str]:
    """'EUR/USD' or 'EURUSD' -> ('EUR', 'USD'); plain 'BTC' -> ('BTC', default_quote)."""
    sym = symbol.strip().upper()
    if "/" in sym:
        base, _, quote = sym.partition("/")
        return base, quote or default_quote
    if len(sym) == 6 and sym.isalpha():
        return sym[:3], sym[3:]
    return sym, default_quote


def _to_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        out = float(str(value).strip().rstrip("%"))
    except ValueError:
        return None
    return out if math.isfinite(out) else None


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


class AlphaVantageClient:
    def __init__(
        self,
        api_key: str,
        rate_guard: RateGuard,
        *,
        base_url: str = "https://www.alphavantage.co/query",
        timeout_sec: float = 10.0,
        cooldown_sec: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.rate_guard = rate_guard
        self.base_url = base_url
        self.timeout_sec = timeout_sec
        self.cooldown_sec = cooldown_sec
        self._transport = transport

    # ---------- Public API ----------

    async def fetch_one(self, symbol: str, market: str) -> Quote:
        if not self.rate_guard.available():
            UPSTREAM_CALLS.labels(result="blocked").inc()
            raise RateLimited(f"upstream cooling down, skipped {symbol}")

        body, status_code = await self._get(self._params(symbol, market), symbol)

        if status_code == 429 or (
            isinstance(body, dict) and any(body.get(k) for k in _RATE_LIMIT_FIELDS)
        ):
            self.rate_guard.block(self.cooldown_sec)
            UPSTREAM_CALLS.labels(result="rate_limited").inc()
            logger.warning(
                "upstream rate limit hit on %s; blocking calls for %.0fs", symbol, self.cooldown_sec
            )
            raise RateLimited(f"provider rate limit on {symbol}")

        if not (200 <= status_code < 300) or not isinstance(body, dict) or body.get(_ERROR_FIELD):
            UPSTREAM_CALLS.labels(result="failed").inc()
            reason = body.get(_ERROR_FIELD) if isinstance(body, dict) else None
            raise UpstreamFailed(f"{symbol}: http {status_code} {reason or ''}".strip())

        try:
            if market in EXCHANGE_RATE_MARKETS:
                quote = self._parse_exchange_rate(body, symbol, market)
            else:
                quote = self._parse_global_quote(body, symbol, market)
        except InvalidPrice:
            UPSTREAM_CALLS.labels(result="invalid_price").inc()
            raise
        except UpstreamFailed:
            UPSTREAM_CALLS.labels(result="failed").inc()
            raise
        except ValidationError as exc:
            UPSTREAM_CALLS.labels(result="failed").inc()
            raise UpstreamFailed(f"{symbol}: malformed quote fields") from exc

        UPSTREAM_CALLS.labels(result="ok").inc()
        return quote

    # ---------- Internals ----------

    def _params(self, symbol: str, market: str) -> dict[str, str]:
        if market in EXCHANGE_RATE_MARKETS:
            base, quote = split_pair(symbol)
            return {
                "function": "CURRENCY_EXCHANGE_RATE",
                "from_currency": base,
                "to_currency": quote,
                "apikey": self.api_key,
            }
        return {"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": self.api_key}

    async def _get(self, params: dict[str, str], symbol: str) -> tuple[Any, int]:
        """Return (decoded body or None, status). Transport errors become UpstreamFailed."""
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_sec, transport=self._transport
            ) as client:
                r = await client.get(self.base_url, params=params)
        except httpx.HTTPError as exc:
            UPSTREAM_CALLS.labels(result="failed").inc()
            raise UpstreamFailed(f"{symbol}: {exc.__class__.__name__}: {exc}") from exc

        try:
            body = r.json()
        except ValueError:
            body = None
        return body, r.status_code

    @staticmethod
    def _parse_exchange_rate(body: dict[str, Any], symbol: str, market: str) -> Quote:
        rate = body.get("Realtime Currency Exchange Rate")
        if not isinstance(rate, dict):
            raise UpstreamFailed(f"{symbol}: missing exchange rate block")

        price = _to_float(rate.get("5. Exchange Rate"))
        if price is None:
            raise InvalidPrice(f"{symbol}: {rate.get('5. Exchange Rate')!r}")

        return Quote(
            symbol=symbol,
            price=price,
            latest_trading_day=_to_text(rate.get("6. Last Refreshed")),
            market=market,
            source=DataSource.REAL,
        )

    @staticmethod
    def _parse_global_quote(body: dict[str, Any], symbol: str, market: str) -> Quote:
        gq = body.get("Global Quote")
        if not isinstance(gq, dict) or not gq:
            raise UpstreamFailed(f"{symbol}: missing global quote block")

        price = _to_float(gq.get("05. price"))
        if price is None:
            raise InvalidPrice(f"{symbol}: {gq.get('05. price')!r}")

        return Quote(
            symbol=symbol,
            price=price,
            high=_to_float(gq.get("03. high")),
            low=_to_float(gq.get("04. low")),
            previous_close=_to_float(gq.get("08. previous close")),
            change=_to_float(gq.get("09. change")),
            change_percent=_to_float(gq.get("10. change percent")),
            latest_trading_day=_to_text(gq.get("07. latest trading day")),
            market=market,
            source=DataSource.REAL,
        )
