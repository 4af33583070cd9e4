# quotefeed/baseline.py
from __future__ import annotations

import random
from datetime import UTC, datetime

from quotefeed.schemas import DataSource, Quote

DEFAULT_BASE_PRICE = 100.0
BASELINE_VARIATION_PCT = 1.2


class BaselineGenerator:
    """Synthetic quotes around configured reference prices, for markets with no cache at all."""

    def __init__(
        self,
        baseline_prices: dict[str, dict[str, float]],
        rng: random.Random | None = None,
        variation_pct: float = BASELINE_VARIATION_PCT,
    ):
        self.baseline_prices = baseline_prices
        self.variation_pct = variation_pct
        self._rng = rng or random.Random()

    def base_price(self, market: str, symbol: str) -> float:
        return self.baseline_prices.get(market, {}).get(symbol, DEFAULT_BASE_PRICE)

    def vary(self, price: float) -> float:
        step = (self._rng.random() * 2 - 1) * self.variation_pct / 100
        return round(price * (1 + step), 6)

    def generate(self, market: str, symbols: list[str]) -> list[Quote]:
        stamp = datetime.now(UTC).isoformat()
        quotes: list[Quote] = []
        for symbol in symbols:
            base = self.base_price(market, symbol)
            price = self.vary(base)
            quotes.append(
                Quote(
                    symbol=symbol,
                    price=price,
                    previous_close=base,
                    change=price - base,
                    change_percent=((price - base) / base) * 100 if base else None,
                    latest_trading_day=stamp,
                    market=market,
                    source=DataSource.MOCK,
                )
            )
        return quotes
