# quotefeed/markets.py
# Static market tables. Both can be overridden from the environment (see settings.py).

from __future__ import annotations

DEFAULT_MARKET = "crypto"

# market -> ordered symbols fetched for it
DEFAULT_SYMBOLS: dict[str, list[str]] = {
    "crypto": ["BTC", "ETH", "SOL", "XRP", "ADA", "DOGE"],
    "fx": ["EURUSD", "GBPUSD", "USDJPY", "AUDUSD", "USDCAD"],
    "stocks": ["AAPL", "MSFT", "NVDA", "AMZN", "GOOGL", "TSLA"],
    "indices": ["SPY", "QQQ", "DIA", "IWM"],
}

# market -> symbol -> reference price used when nothing has ever been cached
DEFAULT_BASELINE_PRICES: dict[str, dict[str, float]] = {
    "crypto": {
        "BTC": 67000.0,
        "ETH": 3200.0,
        "SOL": 150.0,
        "XRP": 0.52,
        "ADA": 0.45,
        "DOGE": 0.15,
    },
    "fx": {
        "EURUSD": 1.08,
        "GBPUSD": 1.27,
        "USDJPY": 151.5,
        "AUDUSD": 0.66,
        "USDCAD": 1.36,
    },
    "stocks": {
        "AAPL": 190.0,
        "MSFT": 420.0,
        "NVDA": 880.0,
        "AMZN": 180.0,
        "GOOGL": 160.0,
        "TSLA": 175.0,
    },
    "indices": {
        "SPY": 520.0,
        "QQQ": 440.0,
        "DIA": 390.0,
        "IWM": 205.0,
    },
}

# markets quoted through the currency-exchange-rate query; everything else uses global quote
EXCHANGE_RATE_MARKETS = frozenset({"crypto", "fx"})


def cache_key(market: str) -> str:
    return f"market-{market}"
