from __future__ import annotations

import math
from typing import Any, Iterable

import httpx

from tickerfeed.config.settings import settings
from tickerfeed.errors import HttpStatusError, NetworkError, ParseError
from tickerfeed.schemas.quote import QuotePayload

PROVIDER = "coingecko"


def cache_key(asset_id: str) -> str:
    return f"{PROVIDER}:{asset_id}"


def _finite(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def normalize(raw: Any, asset_id: str) -> QuotePayload | None:
    if not isinstance(raw, dict):
        return None
    entry = raw.get(asset_id)
    if not isinstance(entry, dict):
        return None
    price = _finite(entry.get("usd"))
    if price is None or price <= 0:
        return None
    return QuotePayload(
        price=price,
        change_percent=_finite(entry.get("usd_24h_change")),
        market_cap=_finite(entry.get("usd_market_cap")),
        volume=_finite(entry.get("usd_24h_vol")),
    )


def cache_fields(quote: QuotePayload) -> dict[str, Any]:
    return {
        "price": quote.price,
        "change": quote.change_percent,
        "market_cap": quote.market_cap,
        "volume": quote.volume,
    }


async def fetch_prices(client: httpx.AsyncClient, asset_ids: Iterable[str]) -> dict[str, Any]:
    """One batched spot-price request for every asset id."""

    params = {
        "ids": ",".join(asset_ids),
        "vs_currencies": "usd",
        "include_market_cap": "true",
        "include_24hr_vol": "true",
        "include_24hr_change": "true",
    }
    try:
        response = await client.get(settings.providers.spot_price_url, params=params)
    except httpx.HTTPError as exc:
        raise NetworkError(str(exc) or exc.__class__.__name__) from exc
    if not response.is_success:
        raise HttpStatusError(response.status_code, response.reason_phrase)
    try:
        payload = response.json()
    # JSONDecodeError and UnicodeDecodeError are both ValueErrors
    except ValueError as exc:
        raise ParseError(f"spot-price body is not JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ParseError("spot-price body is not an object")
    return payload
