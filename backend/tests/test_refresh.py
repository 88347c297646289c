import asyncio
import json
from pathlib import Path
from urllib.parse import unquote

import httpx

from tickerfeed.binder.document import PageDocument
from tickerfeed.cache import LiveCache, MemoryStore
from tickerfeed.config.settings import Settings
from tickerfeed.jobs.refresh import PageController, PageState
from tickerfeed.providers.fetch import RelaySession
from tickerfeed.schemas.relay import RelayDescriptor

NOW_MS = 1_710_520_000_000

SPOT = {"bitcoin": {"usd": 67000, "usd_market_cap": 1.32e12, "usd_24h_vol": 2.87e10, "usd_24h_change": -2.3}}

CHARTS = {
    "^GSPC": {
        "chart": {
            "result": [
                {
                    "meta": {
                        "regularMarketPrice": 5100.5,
                        "chartPreviousClose": 5000.0,
                        "regularMarketState": "REGULAR",
                        "regularMarketDayHigh": 5120.0,
                        "regularMarketDayLow": 5050.0,
                        "regularMarketTime": NOW_MS / 1000,
                    }
                }
            ]
        }
    }
}


class FakeUpstream:
    """Answers spot-price and relayed chart requests; records chart symbols."""

    def __init__(self, fail_all: bool = False, spot_body: bytes | None = None) -> None:
        self.fail_all = fail_all
        self.spot_body = spot_body
        self.chart_requested = asyncio.Event()
        self.spot_waits_for_charts = False
        self.symbols: list[str] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.fail_all:
            return httpx.Response(503)
        if request.url.host == "api.coingecko.com":
            if self.spot_waits_for_charts:
                try:
                    await asyncio.wait_for(self.chart_requested.wait(), 1.0)
                except asyncio.TimeoutError:
                    return httpx.Response(504)
            if self.spot_body is not None:
                return httpx.Response(200, content=self.spot_body)
            return httpx.Response(200, json=SPOT)
        target = request.url.params["url"]
        symbol = unquote(target.split("/chart/", 1)[1].split("?", 1)[0])
        self.symbols.append(symbol)
        self.chart_requested.set()
        if symbol in CHARTS:
            return httpx.Response(200, text=json.dumps(CHARTS[symbol]))
        return httpx.Response(500)


def _controller(
    html: str,
    path: str,
    fail_all: bool = False,
    upstream: FakeUpstream | None = None,
    catalog: dict | None = None,
    **kwargs,
) -> PageController:
    overrides: dict = {"refresh": {"interval_seconds": 0.01}, "cache": {"backend": "memory"}}
    if catalog is not None:
        overrides["catalog"] = catalog
    settings = Settings(**overrides)
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream or FakeUpstream(fail_all)))
    session = RelaySession(
        [RelayDescriptor(name="only", kind="raw", base_url="https://relay.test/?url=")],
        client,
        owns_client=True,
    )
    cache = LiveCache(MemoryStore(), clock=lambda: NOW_MS)
    return PageController(
        PageDocument(html, path),
        session,
        cache,
        settings=settings,
        clock=lambda: NOW_MS,
        **kwargs,
    )


def _run(controller: PageController, **kwargs) -> int:
    async def run() -> int:
        async with controller.session:
            return await controller.run(**kwargs)

    return asyncio.run(run())


def test_crypto_page_lifecycle(crypto_page: str) -> None:
    controller = _controller(crypto_page, "/site/krypto.html")

    updated = _run(controller)

    assert updated == 1
    assert controller.history == [
        PageState.INIT,
        PageState.PLACEHOLDERS_SET,
        PageState.CACHE_PAINTED,
        PageState.LIVE_REFRESHING,
        PageState.IDLE,
    ]
    document = controller.document
    assert not document.body_has_class("live-loading")
    assert document.body_has_class("live-ready")

    bitcoin, ethereum, _ = controller.bindings["crypto"]
    assert document.select(bitcoin.price_selector)[0].get_text() == "$67'000.00"
    assert [el.get_text() for el in document.select(bitcoin.secondary_selector)] == ["$1.32T", "$28.7B"]
    assert document.select(f"{bitcoin.card_selector} .price-status")[0].get_text() == "Live"
    # no live data and no cache: the placeholder stays
    assert document.select(ethereum.price_selector)[0].get_text() == "—"
    assert document.select(f"{ethereum.card_selector} .price-status")[0].get_text() == "Lädt…"

    entry = controller.cache.get_entry("coingecko:bitcoin")
    assert entry is not None
    assert entry.fields["price"] == 67000
    assert entry.fields["change"] == -2.3


def test_failing_symbol_does_not_stop_the_page(indices_page: str) -> None:
    controller = _controller(indices_page, "indices.html")

    updated = _run(controller)

    assert updated == 1
    spx, dow = controller.bindings["indices"]
    document = controller.document
    assert document.select(spx.price_selector)[0].get_text() == "5'100.50"
    assert document.select(spx.badge_selector)[0].get_text() == "+2.01%"
    assert [el.get_text() for el in document.select(spx.secondary_selector)] == ["5'120.00", "5'050.00"]
    assert document.select(dow.price_selector)[0].get_text() == "—"
    assert controller.cache.get_entry("yahoo:^DJI") is None
    assert controller.cache.get_entry("yahoo:^GSPC").fields["high"] == 5120.0


def test_watch_repeats_live_refresh_only(indices_page: str) -> None:
    controller = _controller(indices_page, "indices.html", fail_all=True)

    updated = _run(controller, watch=True, cycles=2)

    assert updated == 0
    assert controller.history == [
        PageState.INIT,
        PageState.PLACEHOLDERS_SET,
        PageState.CACHE_PAINTED,
        PageState.LIVE_REFRESHING,
        PageState.IDLE,
        PageState.LIVE_REFRESHING,
        PageState.IDLE,
        PageState.LIVE_REFRESHING,
        PageState.IDLE,
    ]
    assert controller.document.body_has_class("live-failed")
    assert not controller.document.body_has_class("live-ready")


def test_cached_widgets_survive_failed_refresh(crypto_page: str) -> None:
    controller = _controller(crypto_page, "krypto.html", fail_all=True)
    controller.cache.set_entry("coingecko:bitcoin", {"price": 67000, "change": -2.3})

    _run(controller)

    bitcoin = controller.bindings["crypto"][0]
    document = controller.document
    assert document.select(bitcoin.price_selector)[0].get_text() == "$67'000.00"
    assert document.select(bitcoin.badge_selector)[0].get_text() == "-2.30%"
    status = document.select(f"{bitcoin.card_selector} .price-status")[0].get_text()
    assert status.startswith("Stand: ")
    assert document.body_has_class("live-failed")


def test_landing_page_previews_without_ceremony(landing_page: str, tmp_path: Path) -> None:
    out = tmp_path / "index.html"
    controller = _controller(landing_page, "/site/index.html", output=out)

    updated = _run(controller, watch=True)

    assert updated == 2
    assert controller.history == [PageState.INIT, PageState.LIVE_REFRESHING, PageState.IDLE]
    assert not controller.document.body_has_class("live-ready")
    rendered = out.read_text(encoding="utf-8")
    assert "$67'000.00" in rendered
    assert "5'100.50" in rendered
    assert "live-placeholder" not in rendered


def test_unknown_page_does_nothing(landing_page: str) -> None:
    controller = _controller(landing_page, "about.html")

    assert _run(controller) == 0
    assert controller.history == [PageState.INIT]


def test_undecodable_spot_body_fails_the_section_only(crypto_page: str, tmp_path: Path) -> None:
    out = tmp_path / "krypto.html"
    upstream = FakeUpstream(spot_body=b'{"bitcoin": {"usd": 1\xff}}')
    controller = _controller(crypto_page, "krypto.html", upstream=upstream, output=out)

    assert _run(controller) == 0

    assert controller.history[-1] == PageState.IDLE
    assert controller.document.body_has_class("live-failed")
    assert "live-failed" in out.read_text(encoding="utf-8")


def test_only_catalog_symbols_are_fetched(indices_page: str) -> None:
    upstream = FakeUpstream()
    controller = _controller(
        indices_page, "indices.html", upstream=upstream, catalog={"indices": {"^GSPC": "S&P 500"}}
    )

    updated = _run(controller)

    assert updated == 1
    assert upstream.symbols == ["^GSPC"]
    assert controller.catalog_symbols("indices") == {"^GSPC"}
    dow = controller.bindings["indices"][1]
    # bound and painted, but never fetched
    assert dow.symbol == "^DJI"
    status = controller.document.select(f"{dow.card_selector} .price-status")[0]
    assert status.get_text() == "Lädt…"


def test_catalog_symbols_per_page_type(crypto_page: str) -> None:
    controller = _controller(crypto_page, "krypto.html")

    assert "AAPL" in controller.catalog_symbols("equities")
    assert "GC=F" in controller.catalog_symbols("commodities")
    assert "bitcoin" in controller.catalog_symbols("crypto")


def test_landing_sections_refresh_side_by_side(landing_page: str) -> None:
    upstream = FakeUpstream()
    # the spot-price answer only arrives once a chart request was seen
    upstream.spot_waits_for_charts = True
    controller = _controller(landing_page, "index.html", upstream=upstream)

    assert _run(controller) == 2
    assert upstream.symbols == ["^GSPC"]
