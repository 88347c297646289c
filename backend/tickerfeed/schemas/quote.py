from __future__ import annotations

import math
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

CacheValue = Union[float, str]

_NUMERIC_FIELDS = (
    "previous_close",
    "change_percent",
    "day_high",
    "day_low",
    "market_time_sec",
    "market_cap",
    "volume",
    "trailing_pe",
    "fifty_two_week_high",
)


class QuotePayload(BaseModel):
    price: float
    previous_close: Optional[float] = None
    change_percent: Optional[float] = None
    day_high: Optional[float] = None
    day_low: Optional[float] = None
    market_time_sec: Optional[float] = None
    market_state: Optional[str] = None
    market_cap: Optional[float] = None
    volume: Optional[float] = None
    trailing_pe: Optional[float] = None
    fifty_two_week_high: Optional[float] = None

    @field_validator("price")
    @classmethod
    def _price_is_finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("price must be a finite number")
        return value

    @field_validator(*_NUMERIC_FIELDS, mode="before")
    @classmethod
    def _drop_non_finite(cls, value: object) -> object:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)) and not math.isfinite(value):
            return None
        return value


class CacheEntry(BaseModel):
    key: str
    fields: dict[str, CacheValue] = Field(default_factory=dict)
    captured_at_ms: int

    def number(self, name: str) -> Optional[float]:
        value = self.fields.get(name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        if not math.isfinite(value):
            return None
        return float(value)
