from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tickerfeed.binder.document import PageDocument
from tickerfeed.binder.widgets import page_kind
from tickerfeed.cache import LiveCache
from tickerfeed.common.logging import log, setup_logger
from tickerfeed.config.settings import settings
from tickerfeed.jobs.refresh import PageController
from tickerfeed.providers.fetch import RelaySession


async def _refresh(page: Path, out: Path, watch: bool, interval: Optional[float]) -> int:
    if interval is not None:
        settings.refresh.interval_seconds = interval
    document = PageDocument.load(page)
    cache = LiveCache.from_settings(settings)
    async with RelaySession.from_settings(settings) as session:
        controller = PageController(
            document,
            session,
            cache,
            kind=page_kind(page.name),
            settings=settings,
            output=out,
        )
        return await controller.run(watch=watch)


def _cache_show(cache: LiveCache) -> int:
    entries = cache.load()
    payload = {
        key: {"fields": entry.fields, "captured_at_ms": entry.captured_at_ms}
        for key, entry in sorted(entries.items())
    }
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="tickerfeed", description="Price widget refresher")
    subparsers = parser.add_subparsers(dest="command", required=True)

    refresh_parser = subparsers.add_parser("refresh", help="Refresh the price widgets of an HTML page")
    refresh_parser.add_argument("page", help="HTML page, e.g. krypto.html or indices.html")
    refresh_parser.add_argument("--out", help="Write the patched page here (default: in place)")
    refresh_parser.add_argument(
        "--watch", action="store_true", help="Keep refreshing on the configured interval"
    )
    refresh_parser.add_argument("--interval", type=float, help="Seconds between refreshes")

    cache_parser = subparsers.add_parser("cache", help="Inspect the local live cache")
    cache_sub = cache_parser.add_subparsers(dest="cache_command", required=True)
    cache_sub.add_parser("show", help="Print every unexpired cache entry")
    cache_sub.add_parser("clear", help="Remove the cache blob")

    args = parser.parse_args(argv)
    logger = setup_logger("cli", command=args.command)

    if args.command == "refresh":
        page = Path(args.page)
        if not page.is_file():
            log(logger, logging.ERROR, "page_not_found", page=str(page))
            return 2
        out = Path(args.out) if args.out else page
        try:
            updated = asyncio.run(_refresh(page, out, args.watch, args.interval))
        except KeyboardInterrupt:
            return 130
        log(logger, logging.INFO, "cli_refresh_complete", page=page.name, updated=updated)
        return 0

    cache = LiveCache.from_settings(settings)
    if args.cache_command == "show":
        return _cache_show(cache)
    if args.cache_command == "clear":
        cache.clear()
        log(logger, logging.INFO, "cache_cleared", storage_key=cache.storage_key)
        return 0

    parser.error("unknown command")
    return 2


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
