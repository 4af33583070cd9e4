"""
Staleness simulation for cached quotes.

Given a snapshot that has aged past the freshness window, produce a plausible
price evolution that is:
  - bounded: the move grows 0.25%/min up to 0.75%, scaled per market, and is
    clamped to an absolute cap that tightens as the price tier rises
  - smooth: the effect ramps in over the first two minutes of staleness
  - deterministic: the pseudo-random draw depends only on (symbol, 10s bucket),
    so repeated reads inside one bucket return identical prices

Notes / Pitfalls:
- The hash is 32-bit FNV-1a over UTF-16 code units of f"{symbol}{bucket}".
  Changing it (or the bucket width) changes every simulated price.
"""

from __future__ import annotations

import math

from quotefeed.schemas import DataSource, Quote, Snapshot

BUCKET_MS = 10_000

PCT_PER_MINUTE = 0.25
MAX_PCT = 0.75
SMOOTHING_MINUTES = 2.0

VOLATILITY_BY_MARKET: dict[str, float] = {
    "crypto": 1.0,
    "fx": 0.3,
    "indices": 0.2,
    "stocks": 0.4,
}
DEFAULT_VOLATILITY = 1.0

# (price floor, cap as a fraction of price), checked top-down
_ABS_CAP_TIERS: tuple[tuple[float, float], ...] = (
    (50_000, 0.0002),
    (10_000, 0.0004),
    (1_000, 0.0008),
    (100, 0.0015),
)
_ABS_CAP_FLOOR = 0.003

_FNV_OFFSET = 2166136261
_FNV_PRIME = 16777619


def fnv1a_32(text: str) -> int:
    h = _FNV_OFFSET
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        h ^= int.from_bytes(data[i : i + 2], "little")
        h = (h * _FNV_PRIME) & 0xFFFFFFFF
    return h


def bucket_of(now_ms: int) -> int:
    return now_ms // BUCKET_MS


def unit_noise(symbol: str, bucket: int) -> float:
    """Stable value in [-1, 1) for (symbol, bucket)."""
    seed = fnv1a_32(f"{symbol}{bucket}")
    return ((seed % 1000) / 1000) * 2 - 1


def max_abs_delta(price: float) -> float:
    """Largest absolute move allowed for a quote at this price."""
    for floor, pct in _ABS_CAP_TIERS:
        if price >= floor:
            return price * pct
    return price * _ABS_CAP_FLOOR


def _change_fields(price: float, reference: float) -> tuple[float, float | None]:
    change = price - reference
    if reference == 0:
        return change, None
    return change, (change / reference) * 100


def simulate_quote(quote: Quote, *, bucket: int, elapsed_minutes: float) -> Quote:
    max_pct = min(elapsed_minutes * PCT_PER_MINUTE, MAX_PCT) / 100
    smoothing = min(elapsed_minutes / SMOOTHING_MINUTES, 1.0)
    volatility = VOLATILITY_BY_MARKET.get(quote.market, DEFAULT_VOLATILITY)

    raw = quote.price * unit_noise(quote.symbol, bucket) * max_pct * volatility
    cap = abs(max_abs_delta(quote.price))
    delta = max(-cap, min(cap, raw)) * smoothing

    price = round(quote.price + delta, 6)
    if abs(price - quote.price) > cap:
        # sub-micro prices: 6 decimals is coarser than the cap
        price = quote.price + delta
    if not math.isfinite(price):
        # keep the last good price rather than emitting garbage
        price = quote.price

    reference = quote.previous_close if quote.previous_close is not None else quote.price
    change, change_percent = _change_fields(price, reference)

    return quote.model_copy(
        update={
            "price": price,
            "high": price if quote.high is None else max(quote.high, price),
            "low": price if quote.low is None else min(quote.low, price),
            "change": change,
            "change_percent": change_percent,
            "source": DataSource.SIMULATED,
        }
    )


def simulate(snapshot: Snapshot, now_ms: int) -> list[Quote]:
    """Evolve every quote of a stale snapshot to `now_ms`. Pure given `now_ms`."""
    bucket = bucket_of(now_ms)
    elapsed_minutes = max(0, snapshot.age_ms(now_ms)) / 60_000
    return [
        simulate_quote(q, bucket=bucket, elapsed_minutes=elapsed_minutes) for q in snapshot.quotes
    ]
