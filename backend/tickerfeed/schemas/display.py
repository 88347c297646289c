from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

PageType = Literal["crypto", "equities", "indices", "commodities"]
UpdateSource = Literal["cache", "live"]
PatchField = Literal["text", "class", "status", "placeholder", "badge_placeholder"]


class WidgetBinding(BaseModel):
    model_config = ConfigDict(frozen=True)

    page_type: PageType
    symbol: Optional[str] = None
    cache_key: Optional[str] = None
    card_selector: str
    price_selector: str
    badge_selector: str
    secondary_selector: str
    secondary_count: int = 0
    status_anchor: str


class DisplayPatch(BaseModel):
    """One write against the page.

    ``selector`` addresses the target elements; ``index`` narrows the match to
    one position (secondary stat slots). Patches with a ``source`` also mark
    the element as updated from that source.
    """

    model_config = ConfigDict(frozen=True)

    selector: str
    field: PatchField
    value: str
    index: Optional[int] = None
    source: Optional[UpdateSource] = None
    anchor: Optional[str] = None
    live: bool = False
