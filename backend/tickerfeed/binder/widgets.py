from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Literal, Optional

from tickerfeed.formatting import format_market_cap, format_price, format_ratio, format_volume
from tickerfeed.schemas.display import PageType

PageKind = Literal["crypto", "equities", "indices", "commodities", "landing"]


def _dollars(value: float) -> str:
    return f"${format_price(value)}"


@dataclass(frozen=True)
class SecondarySlot:
    cache_field: str
    quote_field: str
    render: Callable[[float], str]
    positive_only: bool = False


@dataclass(frozen=True)
class WidgetLayout:
    page_type: PageType
    provider: Literal["coingecko", "yahoo"]
    card: str
    price: str
    secondary: str
    price_render: Callable[[float], str]
    slots: tuple[SecondarySlot, ...] = field(default_factory=tuple)
    # every slot must exist before any of them is written
    slots_all_or_nothing: bool = False
    badge: str = ".badge"
    ticker: Optional[str] = None

    def selectors(self) -> dict[str, str]:
        return {
            "price": f"{self.card} {self.price}",
            "badge": f"{self.card} {self.badge}",
            "secondary": f"{self.card} {self.secondary}",
        }


LAYOUTS: dict[PageType, WidgetLayout] = {
    "crypto": WidgetLayout(
        page_type="crypto",
        provider="coingecko",
        card=".crypto-card",
        price=".crypto-price",
        secondary=".stat-value",
        price_render=_dollars,
        slots=(
            SecondarySlot("market_cap", "market_cap", format_market_cap),
            SecondarySlot("volume", "volume", format_volume),
        ),
        ticker=".crypto-ticker",
    ),
    "equities": WidgetLayout(
        page_type="equities",
        provider="yahoo",
        card=".futures-card[data-symbol]",
        price=".futures-price",
        secondary=".stat-value",
        price_render=_dollars,
        slots=(
            SecondarySlot("market_cap", "market_cap", format_market_cap),
            SecondarySlot("pe", "trailing_pe", format_ratio),
            SecondarySlot("fifty_two_week_high", "fifty_two_week_high", _dollars),
        ),
    ),
    "indices": WidgetLayout(
        page_type="indices",
        provider="yahoo",
        card=".index-card[data-symbol]",
        price=".index-value",
        secondary=".detail-value",
        price_render=format_price,
        slots=(
            SecondarySlot("high", "day_high", format_price, positive_only=True),
            SecondarySlot("low", "day_low", format_price, positive_only=True),
        ),
        slots_all_or_nothing=True,
    ),
    "commodities": WidgetLayout(
        page_type="commodities",
        provider="yahoo",
        card=".futures-card[data-symbol]",
        price=".futures-price",
        secondary=".stat-value",
        price_render=_dollars,
        slots=(
            SecondarySlot("high", "day_high", _dollars),
            SecondarySlot("low", "day_low", _dollars),
        ),
        slots_all_or_nothing=True,
    ),
}


def page_kind(path: str) -> Optional[PageKind]:
    """Map the last path segment of a page to the pipeline that serves it."""

    page = path.replace("\\", "/").split("/")[-1]
    if page.startswith("krypto"):
        return "crypto"
    if page.startswith("assets"):
        return "equities"
    if page.startswith("indices"):
        return "indices"
    if page.startswith("futures"):
        return "commodities"
    if page in ("index.html", ""):
        return "landing"
    return None
