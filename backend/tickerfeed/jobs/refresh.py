from __future__ import annotations

import asyncio
import enum
import logging
import time
from pathlib import Path
from typing import Callable, Optional

from tickerfeed.binder.document import PageDocument
from tickerfeed.binder.patches import cache_patches, live_patches, placeholder_patches
from tickerfeed.binder.widgets import LAYOUTS, PageKind, page_kind
from tickerfeed.cache import LiveCache
from tickerfeed.common.logging import log, setup_logger
from tickerfeed.config.settings import Settings, settings as default_settings
from tickerfeed.errors import TickerfeedError
from tickerfeed.jobs.bounded import map_bounded
from tickerfeed.providers import coingecko, yahoo
from tickerfeed.providers.fetch import RelaySession
from tickerfeed.schemas.display import PageType, WidgetBinding

logger = setup_logger("refresh")

BODY_LOADING = "live-loading"
BODY_READY = "live-ready"
BODY_FAILED = "live-failed"

# the landing page only previews these sections
LANDING_SECTIONS: tuple[PageType, ...] = ("crypto", "indices")


class PageState(str, enum.Enum):
    INIT = "init"
    PLACEHOLDERS_SET = "placeholders_set"
    CACHE_PAINTED = "cache_painted"
    LIVE_REFRESHING = "live_refreshing"
    IDLE = "idle"


def _now_ms() -> float:
    return time.time() * 1000


class PageController:
    """Drives one page through placeholders, cache paint and live refreshes."""

    def __init__(
        self,
        document: PageDocument,
        session: RelaySession,
        cache: LiveCache,
        *,
        kind: Optional[PageKind] = None,
        settings: Settings = default_settings,
        output: Optional[Path] = None,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        self.document = document
        self.session = session
        self.cache = cache
        self.kind = kind if kind is not None else page_kind(document.path)
        self.settings = settings
        self.output = output
        self.clock = clock
        self.state = PageState.INIT
        self.history: list[PageState] = [PageState.INIT]
        self.bindings: dict[PageType, list[WidgetBinding]] = {}

    @property
    def sections(self) -> tuple[PageType, ...]:
        if self.kind is None:
            return ()
        if self.kind == "landing":
            return LANDING_SECTIONS
        return (self.kind,)

    def _transition(self, state: PageState) -> None:
        log(
            logger,
            logging.INFO,
            "page_state_changed",
            page=self.kind or "unknown",
            previous=self.state.value,
            state=state.value,
        )
        self.state = state
        self.history.append(state)

    def _discover(self) -> None:
        for page_type in self.sections:
            self.bindings[page_type] = self.document.discover(
                LAYOUTS[page_type], self.settings.catalog.crypto
            )

    def prepare(self) -> None:
        for page_type in self.sections:
            self.document.apply(placeholder_patches(page_type))
        self.document.toggle_body_class(BODY_LOADING, False)
        self._transition(PageState.PLACEHOLDERS_SET)

    def paint_from_cache(self) -> int:
        entries = self.cache.load()
        written = 0
        for page_type in self.sections:
            written += self.document.apply(
                cache_patches(self.bindings[page_type], entries, self.settings.refresh.display_timezone)
            )
        self._transition(PageState.CACHE_PAINTED)
        return written

    async def _refresh_crypto(self, bindings: list[WidgetBinding]) -> int:
        targets = [b for b in bindings if b.symbol and b.cache_key]
        if not targets:
            return 0
        asset_ids = list(dict.fromkeys(b.symbol for b in targets if b.symbol))
        try:
            raw = await coingecko.fetch_prices(self.session.client, asset_ids)
        except TickerfeedError as exc:
            log(
                logger,
                logging.WARNING,
                "crypto_batch_failed",
                assets=len(asset_ids),
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return 0

        updated = 0
        now = self.clock()
        for binding in targets:
            quote = coingecko.normalize(raw, binding.symbol or "")
            if quote is None:
                log(logger, logging.INFO, "quote_missing", symbol=binding.symbol, provider=coingecko.PROVIDER)
                continue
            self.document.apply(
                live_patches(binding, quote, now, self.settings.refresh.display_timezone)
            )
            self.cache.set_entry(binding.cache_key or "", coingecko.cache_fields(quote))
            updated += 1
        return updated

    def catalog_symbols(self, page_type: PageType) -> set[str]:
        catalog = self.settings.catalog
        if page_type == "equities":
            return set(catalog.equities)
        if page_type == "indices":
            return set(catalog.indices)
        if page_type == "commodities":
            return set(catalog.commodities)
        return set(catalog.crypto)

    async def _refresh_quotes(self, page_type: PageType, bindings: list[WidgetBinding]) -> int:
        # cards outside the catalog are painted from cache but never fetched
        known = self.catalog_symbols(page_type)
        targets = [b for b in bindings if b.symbol in known and b.cache_key]

        async def _one(binding: WidgetBinding) -> int:
            quote = await yahoo.fetch_quote(self.session, binding.symbol or "")
            self.document.apply(
                live_patches(
                    binding,
                    quote,
                    self.clock(),
                    self.settings.refresh.display_timezone,
                    self.settings.refresh.live_window_seconds,
                )
            )
            self.cache.set_entry(binding.cache_key or "", yahoo.cache_fields(quote))
            return 1

        results = await map_bounded(targets, self.settings.fetch.symbol_concurrency, _one, default=0)
        return sum(results)

    async def _refresh_section(self, page_type: PageType) -> int:
        bindings = self.bindings.get(page_type, [])
        if LAYOUTS[page_type].provider == coingecko.PROVIDER:
            return await self._refresh_crypto(bindings)
        return await self._refresh_quotes(page_type, bindings)

    async def refresh_live(self) -> int:
        self._transition(PageState.LIVE_REFRESHING)
        first = PageState.IDLE not in self.history
        self._discover()
        # sections refresh side by side
        counts = await asyncio.gather(*(self._refresh_section(page_type) for page_type in self.sections))
        updated = sum(counts)

        if first and self.kind != "landing":
            self.document.toggle_body_class(BODY_READY, updated > 0)
            self.document.toggle_body_class(BODY_FAILED, updated == 0)
        log(
            logger,
            logging.INFO,
            "live_refresh_finished",
            page=self.kind,
            updated=updated,
            widgets=sum(len(b) for b in self.bindings.values()),
        )
        self._transition(PageState.IDLE)
        self._save()
        return updated

    def _save(self) -> None:
        if self.output is not None:
            self.document.save(self.output)

    async def run_once(self) -> int:
        """First cycle of a page load; later cycles only refresh live."""

        if self.kind is None:
            log(logger, logging.INFO, "page_ignored", path=self.document.path)
            return 0
        if self.state != PageState.INIT:
            return await self.refresh_live()
        self._discover()
        if self.kind != "landing":
            self.prepare()
            self.paint_from_cache()
        return await self.refresh_live()

    async def run(self, watch: bool = False, cycles: Optional[int] = None) -> int:
        """Run the first cycle, then refresh every interval while watching.

        ``cycles`` bounds the number of extra refreshes; the landing page never
        repeats.
        """

        updated = await self.run_once()
        if not watch or self.kind in (None, "landing"):
            return updated
        done = 0
        while cycles is None or done < cycles:
            await asyncio.sleep(self.settings.refresh.interval_seconds)
            updated = await self.refresh_live()
            done += 1
        return updated
