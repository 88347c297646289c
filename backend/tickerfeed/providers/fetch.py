from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable

import httpx

from tickerfeed.common.logging import log, setup_logger
from tickerfeed.config.settings import Settings
from tickerfeed.errors import (
    AllProxiesFailedError,
    HttpStatusError,
    NetworkError,
    TickerfeedError,
)
from tickerfeed.providers.relays import build_request_url, unwrap_response
from tickerfeed.schemas.relay import RelayDescriptor

logger = setup_logger("fetch")


def create_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        headers={"User-Agent": settings.fetch.user_agent},
        timeout=settings.fetch.attempt_timeout_seconds + 1.0,
        follow_redirects=True,
    )


class RelaySession:
    """Relay list, preferred relay and HTTP client for one page session.

    ``preferred_index`` starts at 0, is never persisted, and only moves when a
    relay wins a race.
    """

    def __init__(
        self,
        relays: Iterable[RelayDescriptor],
        client: httpx.AsyncClient,
        *,
        attempt_timeout: float = 4.5,
        race: bool = True,
        owns_client: bool = False,
    ) -> None:
        self.relays = list(relays)
        if not self.relays:
            raise ValueError("at least one relay is required")
        self.client = client
        self.attempt_timeout = attempt_timeout
        self.race = race
        self.preferred_index = 0
        self._owns_client = owns_client
        self._stragglers: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls, settings: Settings, client: httpx.AsyncClient | None = None
    ) -> "RelaySession":
        return cls(
            settings.relays,
            client or create_client(settings),
            attempt_timeout=settings.fetch.attempt_timeout_seconds,
            race=settings.fetch.race_relays,
            owns_client=client is None,
        )

    def attempt_order(self) -> list[tuple[int, RelayDescriptor]]:
        count = len(self.relays)
        start = self.preferred_index % count
        return [((start + offset) % count, self.relays[(start + offset) % count]) for offset in range(count)]

    def _park(self, tasks: Iterable[asyncio.Task]) -> None:
        for task in tasks:
            self._stragglers.add(task)
            task.add_done_callback(self._settle)

    def _settle(self, task: asyncio.Task) -> None:
        self._stragglers.discard(task)
        if not task.cancelled():
            # failures were already logged by the attempt itself
            task.exception()

    async def aclose(self) -> None:
        for task in list(self._stragglers):
            task.cancel()
        if self._stragglers:
            await asyncio.gather(*self._stragglers, return_exceptions=True)
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "RelaySession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


async def _attempt(session: RelaySession, relay: RelayDescriptor, target_url: str) -> Any:
    url = build_request_url(relay, target_url)
    try:
        try:
            response = await asyncio.wait_for(session.client.get(url), session.attempt_timeout)
        except asyncio.TimeoutError as exc:
            raise NetworkError(f"timed out after {session.attempt_timeout}s") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(str(exc) or exc.__class__.__name__) from exc
        if not response.is_success:
            raise HttpStatusError(response.status_code, response.reason_phrase)
        return unwrap_response(relay, response.text)
    except TickerfeedError as exc:
        log(
            logger,
            logging.WARNING,
            "relay_attempt_failed",
            relay=relay.name,
            target=target_url,
            error=str(exc),
            error_type=exc.__class__.__name__,
        )
        raise


async def _race(
    session: RelaySession, order: list[tuple[int, RelayDescriptor]], target_url: str
) -> tuple[int, Any]:
    positions: dict[asyncio.Task, int] = {}
    for position, (_, relay) in enumerate(order):
        task = asyncio.create_task(_attempt(session, relay, target_url))
        positions[task] = position

    pending = set(positions)
    last_error: BaseException | None = None
    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            # preferred relays win ties between attempts finishing together
            for task in sorted(done, key=positions.__getitem__):
                error = task.exception()
                if error is None:
                    session._park(pending)
                    return order[positions[task]][0], task.result()
                last_error = error
    except asyncio.CancelledError:
        for task in pending:
            task.cancel()
        raise
    raise AllProxiesFailedError(target_url, last_error)


async def _sequential(
    session: RelaySession, order: list[tuple[int, RelayDescriptor]], target_url: str
) -> tuple[int, Any]:
    last_error: BaseException | None = None
    for index, relay in order:
        try:
            return index, await _attempt(session, relay, target_url)
        except TickerfeedError as exc:
            last_error = exc
    raise AllProxiesFailedError(target_url, last_error)


async def fetch_json(session: RelaySession, target_url: str) -> Any:
    """Fetch ``target_url`` through every relay and return the first JSON payload.

    Relays run concurrently, starting with the one that won last time; each
    attempt has its own timeout. Only the exhaustion of every relay raises.
    """

    order = session.attempt_order()
    if session.race:
        index, payload = await _race(session, order, target_url)
    else:
        index, payload = await _sequential(session, order, target_url)

    log(logger, logging.DEBUG, "relay_won", relay=session.relays[index].name, target=target_url)
    if index != session.preferred_index:
        log(
            logger,
            logging.INFO,
            "relay_preference_changed",
            relay=session.relays[index].name,
            previous=session.relays[session.preferred_index].name,
        )
    session.preferred_index = index
    return payload
