import pytest
from pydantic import ValidationError

from quotefeed.markets import cache_key
from quotefeed.settings import Settings


def test_legacy_env_names_are_accepted(monkeypatch):
    monkeypatch.setenv("ALPHA_VANTAGE_API_KEY", "abc")
    monkeypatch.setenv("ALPHA_RPM", "75")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/1")

    cfg = Settings(_env_file=None)

    assert cfg.alpha_vantage_api_key == "abc"
    assert cfg.alpha_rpm == 75
    assert cfg.redis_url == "redis://cache:6379/1"


def test_defaults(monkeypatch):
    for name in ("ALPHA_VANTAGE_API_KEY", "ALPHA_RPM", "REDIS_URL"):
        monkeypatch.delenv(name, raising=False)

    cfg = Settings(_env_file=None)

    assert cfg.alpha_vantage_api_key is None
    assert cfg.redis_url is None
    assert cfg.alpha_rpm == 500
    assert cfg.cache_ttl_sec == 300
    assert cfg.fresh_window_sec == 15
    assert cfg.default_market == "crypto"
    assert "crypto" in cfg.markets


@pytest.mark.parametrize("rpm,interval", [(500, 0.12), (75, 0.8), (7, 8.572), (60_000, 0.001)])
def test_request_interval_rounds_up_to_whole_ms(rpm, interval):
    assert Settings(_env_file=None, alpha_rpm=rpm).request_interval_sec == pytest.approx(interval)


def test_rpm_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, alpha_rpm=0)


def test_markets_override_from_json_env(monkeypatch):
    monkeypatch.setenv("QUOTEFEED_MARKETS", '{"crypto": ["BTC"]}')
    assert Settings(_env_file=None).markets == {"crypto": ["BTC"]}


def test_cache_key():
    assert cache_key("fx") == "market-fx"
