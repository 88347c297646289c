"""Display strings for prices, magnitudes and change badges.

Grouping follows the Swiss convention (``1'000.00``).
"""

from __future__ import annotations

import datetime
import math
from zoneinfo import ZoneInfo

PLACEHOLDER = "—"
LOADING = "Lädt…"
LIVE = "Live"


def _usable(value: float | None) -> bool:
    return value is not None and not isinstance(value, bool) and math.isfinite(value)


def format_price(price: float | None, decimals: int = 2) -> str:
    if not _usable(price) or price == 0:
        return f"{0:.{decimals}f}"
    return f"{price:,.{decimals}f}".replace(",", "'")


def format_market_cap(market_cap: float | None) -> str:
    if not _usable(market_cap) or market_cap == 0:
        return "$0"
    if market_cap >= 1e12:
        return f"${market_cap / 1e12:.2f}T"
    if market_cap >= 1e9:
        return f"${market_cap / 1e9:.2f}B"
    if market_cap >= 1e6:
        return f"${market_cap / 1e6:.2f}M"
    return f"${market_cap:.0f}"


def format_volume(volume: float | None) -> str:
    if not _usable(volume) or volume == 0:
        return "$0"
    if volume >= 1e9:
        return f"${volume / 1e9:.1f}B"
    if volume >= 1e6:
        return f"${volume / 1e6:.1f}M"
    return f"${volume:.0f}"


def format_ratio(value: float) -> str:
    return f"{value:.1f}"


def badge(change: float) -> tuple[str, str]:
    """Return ``(class_name, text)`` for a percentage change badge."""

    positive = change >= 0
    class_name = "badge positive" if positive else "badge negative"
    text = f"{'+' if positive else ''}{change:.2f}%"
    return class_name, text


def format_stand_time(ts_ms: float | None, tz: str = "Europe/Zurich") -> str:
    if not _usable(ts_ms):
        return f"Stand: {PLACEHOLDER}"
    try:
        moment = datetime.datetime.fromtimestamp(ts_ms / 1000, tz=ZoneInfo(tz))
    except (OverflowError, OSError, ValueError, KeyError):
        return f"Stand: {PLACEHOLDER}"
    return f"Stand: {moment:%d.%m.%Y %H:%M}"
