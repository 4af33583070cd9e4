from __future__ import annotations

import math

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from quotefeed.markets import DEFAULT_BASELINE_PRICES, DEFAULT_MARKET, DEFAULT_SYMBOLS


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="QUOTEFEED_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # --- Upstream provider ---
    alpha_vantage_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "alpha_vantage_api_key", "ALPHA_VANTAGE_API_KEY", "QUOTEFEED_ALPHA_VANTAGE_API_KEY"
        ),
    )
    alpha_rpm: int = Field(
        default=500,
        gt=0,
        validation_alias=AliasChoices("alpha_rpm", "ALPHA_RPM", "QUOTEFEED_ALPHA_RPM"),
    )
    alpha_base_url: str = "https://www.alphavantage.co/query"
    upstream_timeout_sec: float = Field(default=10.0, gt=0)
    rate_limit_cooldown_sec: float = Field(default=60.0, ge=0)

    # --- Cache ---
    redis_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("redis_url", "REDIS_URL", "QUOTEFEED_REDIS_URL"),
    )
    cache_ttl_sec: int = Field(default=300, gt=0)
    fresh_window_sec: float = Field(default=15.0, ge=0)

    # --- Markets ---
    default_market: str = DEFAULT_MARKET
    markets: dict[str, list[str]] = Field(default_factory=lambda: dict(DEFAULT_SYMBOLS))
    baseline_prices: dict[str, dict[str, float]] = Field(
        default_factory=lambda: dict(DEFAULT_BASELINE_PRICES)
    )

    @property
    def request_interval_sec(self) -> float:
        """Fixed spacing between consecutive upstream calls, derived from the RPM budget."""
        return math.ceil(60_000 / self.alpha_rpm) / 1000


settings = Settings()
