"""Pure computation of the writes that bring a widget up to date.

Nothing here touches the page: every function returns ``DisplayPatch``
objects for :class:`tickerfeed.binder.document.PageDocument` to apply. A
value that is missing or not finite produces no patch, so the widget keeps
its placeholder instead of showing an invented number.
"""

from __future__ import annotations

import math
from typing import Iterable, Mapping

from tickerfeed.binder.widgets import LAYOUTS, WidgetLayout
from tickerfeed.formatting import LIVE, LOADING, PLACEHOLDER, badge, format_stand_time
from tickerfeed.providers import yahoo
from tickerfeed.schemas.display import DisplayPatch, PageType, UpdateSource, WidgetBinding
from tickerfeed.schemas.quote import CacheEntry, QuotePayload


def _finite(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def status_patch(binding: WidgetBinding, text: str, live: bool = False) -> DisplayPatch:
    return DisplayPatch(
        selector=binding.card_selector,
        field="status",
        value=text,
        anchor=binding.status_anchor,
        live=live,
    )


def _price_patch(binding: WidgetBinding, layout: WidgetLayout, price: float, source: UpdateSource) -> DisplayPatch:
    return DisplayPatch(
        selector=binding.price_selector,
        field="text",
        value=layout.price_render(price),
        source=source,
    )


def _badge_patches(binding: WidgetBinding, change: float, source: UpdateSource) -> list[DisplayPatch]:
    class_name, text = badge(change)
    return [
        DisplayPatch(selector=binding.badge_selector, field="class", value=class_name, source=source),
        DisplayPatch(selector=binding.badge_selector, field="text", value=text, source=source),
    ]


def _slot_patches(
    binding: WidgetBinding,
    layout: WidgetLayout,
    values: Iterable[float | None],
    source: UpdateSource,
) -> list[DisplayPatch]:
    slots = layout.slots
    if layout.slots_all_or_nothing and binding.secondary_count < len(slots):
        return []
    patches: list[DisplayPatch] = []
    for index, (slot, value) in enumerate(zip(slots, values)):
        if index >= binding.secondary_count or value is None:
            continue
        if slot.positive_only and source == "live" and value <= 0:
            continue
        patches.append(
            DisplayPatch(
                selector=binding.secondary_selector,
                field="text",
                value=slot.render(value),
                index=index,
                source=source,
            )
        )
    return patches


def placeholder_patches(page_type: PageType) -> list[DisplayPatch]:
    """Neutral glyphs for every price, badge and stat slot of a page."""

    selectors = LAYOUTS[page_type].selectors()
    return [
        DisplayPatch(selector=selectors["price"], field="placeholder", value=PLACEHOLDER),
        DisplayPatch(selector=selectors["badge"], field="badge_placeholder", value=PLACEHOLDER),
        DisplayPatch(selector=selectors["secondary"], field="placeholder", value=PLACEHOLDER),
    ]


def cache_patches(
    bindings: Iterable[WidgetBinding],
    entries: Mapping[str, CacheEntry],
    tz: str = "Europe/Zurich",
) -> list[DisplayPatch]:
    """Paint every widget from its cache entry, or mark it as loading."""

    patches: list[DisplayPatch] = []
    for binding in bindings:
        layout = LAYOUTS[binding.page_type]
        if not binding.symbol:
            patches.append(status_patch(binding, PLACEHOLDER))
            continue
        entry = entries.get(binding.cache_key) if binding.cache_key else None
        if entry is None:
            patches.append(status_patch(binding, LOADING))
            continue

        price = entry.number("price")
        if price is not None:
            patches.append(_price_patch(binding, layout, price, "cache"))
        change = entry.number("change")
        if change is not None:
            patches.extend(_badge_patches(binding, change, "cache"))
        patches.extend(
            _slot_patches(binding, layout, (entry.number(slot.cache_field) for slot in layout.slots), "cache")
        )

        stamp_ms: float | None = entry.captured_at_ms
        if layout.provider == "yahoo":
            market_time = entry.number("market_time_sec")
            if market_time is not None:
                stamp_ms = market_time * 1000
        patches.append(status_patch(binding, format_stand_time(stamp_ms, tz)))
    return patches


def live_patches(
    binding: WidgetBinding,
    quote: QuotePayload,
    now_ms: float,
    tz: str = "Europe/Zurich",
    live_window_seconds: float = 180.0,
) -> list[DisplayPatch]:
    """Write a freshly normalized quote into its widget."""

    layout = LAYOUTS[binding.page_type]
    patches = [_price_patch(binding, layout, quote.price, "live")]

    if layout.provider == "coingecko":
        change = _finite(quote.change_percent)
        if change is not None:
            patches.extend(_badge_patches(binding, change, "live"))
    elif quote.previous_close and quote.change_percent is not None:
        patches.extend(_badge_patches(binding, quote.change_percent, "live"))

    values = (_finite(getattr(quote, slot.quote_field)) for slot in layout.slots)
    patches.extend(_slot_patches(binding, layout, values, "live"))

    if layout.provider == "coingecko":
        patches.append(status_patch(binding, LIVE, live=True))
    elif yahoo.is_live(quote, now_ms, live_window_seconds):
        patches.append(status_patch(binding, LIVE, live=True))
    else:
        patches.append(status_patch(binding, format_stand_time(yahoo.market_time_ms(quote, now_ms), tz)))
    return patches
