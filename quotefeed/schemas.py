# quotefeed/schemas.py
from __future__ import annotations

import math
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# --- Quote provenance ---
class DataSource(str, Enum):
    REAL = "real"
    SIMULATED = "simulated"
    MOCK = "mock"


# --- Quote payload ---
class Quote(BaseModel):
    """One symbol's market snapshot. JSON keys are camelCase (previousClose, changePercent, ...)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    symbol: str
    price: float
    high: float | None = None
    low: float | None = None
    previous_close: float | None = None
    change: float | None = None
    change_percent: float | None = None
    latest_trading_day: str | None = None
    market: str
    source: DataSource

    @field_validator("price")
    @classmethod
    def _price_must_be_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("price must be finite")
        return v


class Snapshot(BaseModel):
    """Cached quote set for one market plus its capture time (epoch ms)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    captured_at: int = Field(..., ge=0)
    quotes: list[Quote] = Field(default_factory=list)

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.captured_at


# --- Health payload ---
class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    as_of: str
    service: str = "quotefeed"
    cache_backend: Literal["redis", "memory"]
    upstream_available: bool
    upstream_blocked_until: str | None = None


# --- Version payload ---
class VersionResponse(BaseModel):
    service: str  # "quotefeed:0.1.0"
    service_version: str
    build_time: str  # UTC ISO


# --- Error taxonomy ---
class ErrorCode(str, Enum):
    MISSING_API_KEY = "MISSING_API_KEY"
    RATE_LIMIT = "RATE_LIMIT"
    UPSTREAM_FAILED = "UPSTREAM_FAILED"
    INVALID_PRICE = "INVALID_PRICE"
    CACHE_UNAVAILABLE = "CACHE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorDetail(BaseModel):
    code: ErrorCode
    message: str
    hint: str | None = None


class ErrorResponse(BaseModel):
    error: ErrorDetail
