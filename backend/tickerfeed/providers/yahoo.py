from __future__ import annotations

import math
import time
from typing import Any
from urllib.parse import quote as url_quote

from tickerfeed.config.settings import settings
from tickerfeed.errors import NoDataError
from tickerfeed.providers.fetch import RelaySession, fetch_json
from tickerfeed.schemas.quote import QuotePayload

PROVIDER = "yahoo"
REGULAR_SESSION = "REGULAR"


def cache_key(symbol: str) -> str:
    return f"{PROVIDER}:{symbol}"


def chart_url(symbol: str, base_url: str | None = None) -> str:
    base = (base_url or settings.providers.chart_base_url).rstrip("/")
    return f"{base}/{url_quote(symbol, safe='')}?interval=1d&range=1d"


def _finite(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def last_finite(values: Any) -> float | None:
    if not isinstance(values, list):
        return None
    for value in reversed(values):
        number = _finite(value)
        if number is not None:
            return number
    return None


def _first_present(*values: Any) -> float | None:
    for value in values:
        if value is not None:
            return _finite(value)
    return None


def normalize(raw: Any, symbol: str) -> QuotePayload | None:
    """Turn a chart payload into a quote, or ``None`` without a usable price."""

    if not isinstance(raw, dict):
        return None
    chart = raw.get("chart")
    results = chart.get("result") if isinstance(chart, dict) else None
    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        return None
    result = results[0]
    meta = result.get("meta")
    if not isinstance(meta, dict):
        return None

    series: dict = {}
    indicators = result.get("indicators")
    quotes = indicators.get("quote") if isinstance(indicators, dict) else None
    if isinstance(quotes, list) and quotes and isinstance(quotes[0], dict):
        series = quotes[0]

    price = _first_present(meta.get("regularMarketPrice"), last_finite(series.get("close")))
    if price is None or price <= 0:
        return None

    previous_close = _finite(meta.get("chartPreviousClose")) or _finite(meta.get("previousClose"))
    change = (price - previous_close) / previous_close * 100 if previous_close else 0.0

    market_state = meta.get("regularMarketState")
    return QuotePayload(
        price=price,
        previous_close=previous_close or None,
        change_percent=change,
        day_high=_first_present(meta.get("regularMarketDayHigh"), last_finite(series.get("high"))),
        day_low=_first_present(meta.get("regularMarketDayLow"), last_finite(series.get("low"))),
        market_time_sec=_finite(meta.get("regularMarketTime")),
        market_state=market_state if isinstance(market_state, str) and market_state else None,
        market_cap=_finite(meta.get("marketCap")),
        trailing_pe=_finite(meta.get("trailingPE")),
        fifty_two_week_high=_finite(meta.get("fiftyTwoWeekHigh")),
    )


def market_time_ms(quote: QuotePayload, now_ms: float) -> float:
    if quote.market_time_sec is None:
        return now_ms
    return quote.market_time_sec * 1000


def is_live(quote: QuotePayload, now_ms: float | None = None, window_seconds: float | None = None) -> bool:
    """Regular session, or a market time within the live window of now."""

    if quote.market_state == REGULAR_SESSION:
        return True
    now = time.time() * 1000 if now_ms is None else now_ms
    window = settings.refresh.live_window_seconds if window_seconds is None else window_seconds
    return now - market_time_ms(quote, now) < window * 1000


def cache_fields(quote: QuotePayload) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "price": quote.price,
        "high": quote.day_high,
        "low": quote.day_low,
        "market_time_sec": quote.market_time_sec,
        "market_state": quote.market_state,
        "market_cap": quote.market_cap,
        "pe": quote.trailing_pe,
        "fifty_two_week_high": quote.fifty_two_week_high,
    }
    # a change without a previous close is not a real change
    if quote.previous_close:
        fields["change"] = quote.change_percent
    return fields


async def fetch_quote(session: RelaySession, symbol: str) -> QuotePayload:
    raw = await fetch_json(session, chart_url(symbol))
    quote_payload = normalize(raw, symbol)
    if quote_payload is None:
        raise NoDataError(symbol)
    return quote_payload
