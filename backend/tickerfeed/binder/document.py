from __future__ import annotations

from pathlib import Path
from typing import Iterable, Mapping

from bs4 import BeautifulSoup, Tag

from tickerfeed.binder.widgets import WidgetLayout
from tickerfeed.providers import coingecko, yahoo
from tickerfeed.schemas.display import DisplayPatch, UpdateSource, WidgetBinding

PLACEHOLDER_CLASS = "live-placeholder"
STATUS_CLASS = "price-status"
FALLBACK_TEXT = "data-fallback-text"
FALLBACK_CLASS = "data-fallback-class-name"
UPDATED = "data-live-updated"
WIDGET_ID = "data-widget"


def _classes(tag: Tag) -> list[str]:
    value = tag.get("class")
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    return list(value)


def _set_classes(tag: Tag, classes: Iterable[str]) -> None:
    unique = list(dict.fromkeys(c for c in classes if c))
    if unique:
        tag["class"] = unique
    elif "class" in tag.attrs:
        del tag["class"]


def add_class(tag: Tag, name: str) -> None:
    _set_classes(tag, [*_classes(tag), name])


def remove_class(tag: Tag, name: str) -> None:
    _set_classes(tag, [c for c in _classes(tag) if c != name])


def toggle_class(tag: Tag, name: str, enabled: bool) -> None:
    if enabled:
        add_class(tag, name)
    else:
        remove_class(tag, name)


class PageDocument:
    """An HTML page whose price widgets are rewritten in place."""

    def __init__(self, html: str, path: str = "") -> None:
        self.soup = BeautifulSoup(html, "html.parser")
        self.path = path

    @classmethod
    def load(cls, path: Path) -> "PageDocument":
        return cls(path.read_text(encoding="utf-8"), path.as_posix())

    def save(self, path: Path) -> None:
        path.write_text(self.render(), encoding="utf-8")

    def render(self) -> str:
        return str(self.soup)

    def select(self, selector: str) -> list[Tag]:
        return list(self.soup.select(selector))

    # -- body state -------------------------------------------------------

    @property
    def body(self) -> Tag | None:
        return self.soup.body

    def body_has_class(self, name: str) -> bool:
        return self.body is not None and name in _classes(self.body)

    def toggle_body_class(self, name: str, enabled: bool) -> None:
        if self.body is not None:
            toggle_class(self.body, name, enabled)

    # -- placeholders -----------------------------------------------------

    def _placeholder(self, element: Tag, text: str, badge: bool) -> None:
        """Neutralize ``element``, remembering its original text (and class) once."""

        if not element.get(FALLBACK_TEXT):
            element[FALLBACK_TEXT] = element.get_text()
        if badge:
            if not element.get(FALLBACK_CLASS):
                element[FALLBACK_CLASS] = " ".join(_classes(element))
            element.string = text
            _set_classes(element, ["badge", PLACEHOLDER_CLASS])
        else:
            element.string = text
            add_class(element, PLACEHOLDER_CLASS)
        element[UPDATED] = "0"

    def mark_updated(self, element: Tag, source: UpdateSource = "live") -> None:
        element[UPDATED] = source
        remove_class(element, PLACEHOLDER_CLASS)

    def restore_fallbacks(self, selector: str) -> None:
        for element in self.select(selector):
            if element.get(UPDATED) in ("cache", "live"):
                continue
            fallback = element.get(FALLBACK_TEXT)
            if not fallback:
                continue
            element.string = fallback
            if element.get(FALLBACK_CLASS):
                _set_classes(element, str(element[FALLBACK_CLASS]).split())
            remove_class(element, PLACEHOLDER_CLASS)

    # -- status -----------------------------------------------------------

    def ensure_status(self, card: Tag, anchor: str | None = None) -> Tag:
        status = card.select_one(f".{STATUS_CLASS}")
        if status is not None:
            return status
        status = self.soup.new_tag("div", attrs={"class": STATUS_CLASS, "aria-live": "polite"})
        anchor_element = card.select_one(anchor) if anchor else None
        if anchor_element is not None:
            anchor_element.insert_after(status)
        else:
            card.append(status)
        return status

    def set_status(self, card: Tag, text: str, live: bool = False, anchor: str | None = None) -> None:
        status = self.ensure_status(card, anchor)
        status.string = text
        toggle_class(status, "is-live", live)

    # -- patches ----------------------------------------------------------

    def apply(self, patches: Iterable[DisplayPatch]) -> int:
        """Apply patches in order and return how many elements were written."""

        written = 0
        for patch in patches:
            targets = self.select(patch.selector)
            if patch.index is not None:
                targets = targets[patch.index : patch.index + 1]
            for element in targets:
                if patch.field == "status":
                    self.set_status(element, patch.value, patch.live, patch.anchor)
                elif patch.field == "text":
                    element.string = patch.value
                elif patch.field == "class":
                    _set_classes(element, patch.value.split())
                elif patch.field in ("placeholder", "badge_placeholder"):
                    self._placeholder(element, patch.value, patch.field == "badge_placeholder")
                if patch.source is not None:
                    self.mark_updated(element, patch.source)
                written += 1
        return written

    # -- discovery --------------------------------------------------------

    def discover(self, layout: WidgetLayout, crypto_ids: Mapping[str, str] | None = None) -> list[WidgetBinding]:
        """Find the widgets of ``layout`` on the page.

        Each card is tagged with a ``data-widget`` id so patches can address
        it; crypto cards are matched to an asset id through their ticker text.
        """

        ids_by_ticker = {ticker: asset_id for asset_id, ticker in (crypto_ids or {}).items()}
        bindings: list[WidgetBinding] = []
        for position, card in enumerate(self.select(layout.card)):
            widget_id = f"{layout.page_type}-{position}"
            card[WIDGET_ID] = widget_id
            card_selector = f'{layout.card}[{WIDGET_ID}="{widget_id}"]'

            symbol: str | None
            cache_key: str | None = None
            if layout.ticker:
                ticker_element = card.select_one(layout.ticker)
                ticker = ticker_element.get_text().strip() if ticker_element is not None else ""
                # unknown tickers stay unbound
                symbol = ids_by_ticker.get(ticker.upper())
                if symbol:
                    cache_key = coingecko.cache_key(symbol)
            else:
                symbol = str(card.get("data-symbol") or "").strip() or None
                if symbol:
                    cache_key = yahoo.cache_key(symbol)

            bindings.append(
                WidgetBinding(
                    page_type=layout.page_type,
                    symbol=symbol,
                    cache_key=cache_key,
                    card_selector=card_selector,
                    price_selector=f"{card_selector} {layout.price}",
                    badge_selector=f"{card_selector} {layout.badge}",
                    secondary_selector=f"{card_selector} {layout.secondary}",
                    secondary_count=len(card.select(layout.secondary)),
                    status_anchor=layout.price,
                )
            )
        return bindings
