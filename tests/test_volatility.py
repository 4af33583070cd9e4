import math

import pytest

from quotefeed.schemas import DataSource, Quote, Snapshot
from quotefeed.volatility import (
    bucket_of,
    fnv1a_32,
    max_abs_delta,
    simulate,
    unit_noise,
)

T0_MS = 1_700_000_000_000


def _snapshot(*quotes: Quote, captured_at: int = T0_MS) -> Snapshot:
    return Snapshot(captured_at=captured_at, quotes=list(quotes))


def _quote(symbol: str, price: float, market: str = "crypto", **kw) -> Quote:
    return Quote(symbol=symbol, price=price, market=market, source=DataSource.REAL, **kw)


def test_fnv1a_known_vectors():
    assert fnv1a_32("") == 2166136261
    assert fnv1a_32("a") == 0xE40C292C
    assert fnv1a_32("foobar") == 0xBF9CF968


def test_unit_noise_is_stable_and_bounded():
    for bucket in range(170_000_000, 170_000_050):
        v = unit_noise("BTC", bucket)
        assert -1.0 <= v < 1.0
        assert v == unit_noise("BTC", bucket)


def test_bucket_width_is_ten_seconds():
    assert bucket_of(10_000) == 1
    assert bucket_of(19_999) == 1
    assert bucket_of(20_000) == 2


@pytest.mark.parametrize(
    "price,cap",
    [
        (60_000.0, 12.0),
        (50_000.0, 10.0),
        (20_000.0, 8.0),
        (2_000.0, 1.6),
        (200.0, 0.3),
        (50.0, 0.15),
    ],
)
def test_max_abs_delta_tiers(price, cap):
    assert max_abs_delta(price) == pytest.approx(cap)


def test_simulate_is_deterministic_within_bucket():
    snap = _snapshot(_quote("BTC", 67_000.0), _quote("ETH", 3_200.0))
    now = T0_MS + 90_000

    first = simulate(snap, now)
    second = simulate(snap, now)

    assert first == second
    assert [q.source for q in first] == [DataSource.SIMULATED, DataSource.SIMULATED]


@pytest.mark.parametrize("price", [0.15, 1.08, 45.0, 150.0, 880.0, 3_200.0, 25_000.0, 67_000.0])
@pytest.mark.parametrize("elapsed_ms", [20_000, 60_000, 5 * 60_000, 60 * 60_000])
def test_simulated_price_stays_within_tier_cap(price, elapsed_ms):
    snap = _snapshot(_quote("SYM", price))
    # walk through several buckets to hit different noise values
    for step in range(25):
        out = simulate(snap, T0_MS + elapsed_ms + step * 10_000)[0]
        assert math.isfinite(out.price)
        assert abs(out.price - price) <= max_abs_delta(price) + 1e-6


def test_no_movement_at_the_instant_of_capture():
    snap = _snapshot(_quote("BTC", 67_000.0))
    out = simulate(snap, T0_MS)[0]
    assert out.price == 67_000.0


def test_unknown_market_uses_crypto_volatility():
    crypto = simulate(_snapshot(_quote("ABC", 50.0, market="crypto")), T0_MS + 60_000)[0]
    unknown = simulate(_snapshot(_quote("ABC", 50.0, market="bonds")), T0_MS + 60_000)[0]
    assert crypto.price == unknown.price


def test_high_low_and_change_are_recomputed():
    base = _quote("AAPL", 190.0, market="stocks", high=191.0, low=189.0, previous_close=188.0)
    out = simulate(_snapshot(base), T0_MS + 3 * 60_000)[0]

    assert out.high == max(191.0, out.price)
    assert out.low == min(189.0, out.price)
    assert out.change == pytest.approx(out.price - 188.0)
    assert out.change_percent == pytest.approx((out.price - 188.0) / 188.0 * 100)
    assert out.market == "stocks"
    assert out.symbol == "AAPL"


def test_high_low_seeded_from_price_when_unset():
    out = simulate(_snapshot(_quote("ETH", 3_200.0)), T0_MS + 60_000)[0]
    assert out.high == out.price
    assert out.low == out.price
    # previous close absent -> change measured against the cached price
    assert out.change == pytest.approx(out.price - 3_200.0)


def test_simulate_does_not_mutate_snapshot():
    snap = _snapshot(_quote("BTC", 67_000.0))
    simulate(snap, T0_MS + 120_000)
    assert snap.quotes[0].price == 67_000.0
    assert snap.quotes[0].source == DataSource.REAL


@pytest.mark.parametrize("price", [0.00001234, 0.0000005, 0.000099])
def test_sub_micro_prices_stay_within_cap(price):
    snap = _snapshot(_quote("PEPE", price))
    for step in range(25):
        out = simulate(snap, T0_MS + 10 * 60_000 + step * 10_000)[0]
        assert abs(out.price - price) <= max_abs_delta(price) * (1 + 1e-9)
        assert out.price > 0
