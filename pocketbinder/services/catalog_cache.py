"""
Catalog cache for the TCGdex REST API.

Memoizes the set list, each set's cards and the flattened all-cards view for
the lifetime of the process. TCGdex is rate-sensitive and the TCG Pocket
catalog only grows between releases, so entries never expire; only
`clear_cache()` drops them.

Endpoints (v2):
- GET {base}/series/{seriesId} -> {"sets": [{"id", "name", "cardCount": {"official"}}]}
- GET {base}/sets/{setId}      -> {"id", "name", "cards": [{"id", "name", "localId", "image"}]}

Docs: https://tcgdex.dev/rest
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar
from urllib.parse import quote

import httpx

from pocketbinder.config import ALL_SETS, settings
from pocketbinder.models.catalog import Card, CardSet
from pocketbinder.models.failure import KnownError, NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# In-flight key for the set list. Cannot collide with "set_<id>" or ALL_CARDS_KEY.
SETS_KEY = "sets"
ALL_CARDS_KEY = "all_cards"


def set_cache_key(set_id: str) -> str:
    """Cache key of one set's card list."""
    return f"set_{set_id}"


class CatalogCache:
    """
    Process-wide memo of the card catalog.

    Construct once at startup and share it. Concurrent callers asking for the
    same key before the first fetch resolves all await that one request.
    Returned lists are fresh copies of frozen records, so callers may do
    what they like with them.

    Usage:
        cache = CatalogCache()
        sets = await cache.get_sets()
        cards = await cache.get_set_cards(sets[0].id)
        await cache.aclose()
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        base_url: str | None = None,
        series_id: str | None = None,
        timeout: float | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        self.base_url = (base_url or settings.catalog_base_url).rstrip("/")
        self.series_id = series_id or settings.catalog_series_id
        self.timeout = timeout if timeout is not None else settings.catalog_timeout_seconds
        self.max_concurrency = max(1, max_concurrency or settings.catalog_max_concurrency)

        self._client = client
        self._owns_client = client is None

        self._sets: tuple[CardSet, ...] | None = None
        self._cards: dict[str, tuple[Card, ...]] = {}
        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        # Bumped by clear_cache(); fetches started earlier must not store results
        self._generation = 0

        # Sets skipped by the most recent all-cards aggregation: set_id -> reason
        self.failed_sets: dict[str, str] = {}

    async def __aenter__(self) -> "CatalogCache":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this cache created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    # --- Public API ---

    @property
    def sets_cached(self) -> bool:
        return self._sets is not None

    async def get_sets(self) -> list[CardSet]:
        """
        Get every set of the configured series.

        Raises:
            NotFoundError: If the series does not exist upstream
            UpstreamError: On network failure, non-2xx status or bad payload
        """
        if self._sets is not None:
            return list(self._sets)

        sets = await self._shared_fetch(SETS_KEY, self._fetch_sets)
        return list(sets)

    async def get_set_cards(self, set_id: str) -> list[Card]:
        """
        Get the cards of one set, annotated with the set's id and name.

        Raises:
            NotFoundError: If the set does not exist upstream
            UpstreamError: On network failure, non-2xx status or bad payload
        """
        key = set_cache_key(set_id)
        cached = self._cards.get(key)
        if cached is not None:
            return list(cached)

        cards = await self._shared_fetch(
            key, lambda generation: self._fetch_set_cards(set_id, generation)
        )
        return list(cards)

    async def get_all_cards(self) -> list[Card]:
        """
        Get the cards of every set, in set order.

        A set whose cards cannot be fetched is logged, recorded in
        `failed_sets` and left out; the rest is still returned. Only a
        complete aggregate is memoized, so a later call retries the
        missing sets.

        Raises:
            NotFoundError, UpstreamError: Only if the set list itself fails
        """
        cached = self._cards.get(ALL_CARDS_KEY)
        if cached is not None:
            return list(cached)

        cards = await self._shared_fetch(ALL_CARDS_KEY, self._fetch_all_cards)
        return list(cards)

    async def get_cards(self, selection: str = ALL_SETS) -> list[Card]:
        """Cards of one set, or of the whole catalog when `selection` is "all"."""
        if selection == ALL_SETS:
            return await self.get_all_cards()
        return await self.get_set_cards(selection)

    def clear_cache(self) -> None:
        """Drop every memoized entry; the next call of any kind hits the network."""
        self._sets = None
        self._cards.clear()
        self._in_flight.clear()
        self.failed_sets = {}
        self._generation += 1
        logger.info("Catalog cache cleared")

    # --- Fetching ---

    def _shared_fetch(self, key: str, fetch: Callable[[int], Awaitable[T]]) -> Awaitable[T]:
        """
        Run `fetch` once per key at a time.

        `fetch` receives the cache generation current at scheduling time and
        stores its result only if no clear_cache() happened since.

        Later callers for a key already in flight await the same task.
        Shielding keeps one cancelled caller from cancelling the others.
        """
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(fetch(self._generation))
            self._in_flight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        return asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Mark the failure retrieved in case every shielded waiter was cancelled
        if not task.cancelled():
            task.exception()

    async def _fetch_sets(self, generation: int) -> tuple[CardSet, ...]:
        payload = await self._get_json(f"/series/{quote(self.series_id)}")

        raw_sets = payload.get("sets") if isinstance(payload, dict) else None
        if not isinstance(raw_sets, list):
            raise UpstreamError(
                "The card catalog returned an unexpected response.",
                detail=f"series {self.series_id}: missing 'sets'",
            )

        try:
            sets = tuple(CardSet.from_payload(raw) for raw in raw_sets)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise UpstreamError(
                "The card catalog returned an unexpected response.",
                detail=f"series {self.series_id}: malformed set entry ({e!r})",
            ) from e

        if generation == self._generation:
            self._sets = sets
        logger.info("Fetched %d sets for series %s", len(sets), self.series_id)
        return sets

    async def _fetch_set_cards(self, set_id: str, generation: int) -> tuple[Card, ...]:
        payload = await self._get_json(f"/sets/{quote(set_id)}")

        raw_cards = payload.get("cards") if isinstance(payload, dict) else None
        if not isinstance(raw_cards, list):
            raise UpstreamError(
                "The card catalog returned an unexpected response.",
                detail=f"set {set_id}: missing 'cards'",
            )

        owner_id = str(payload.get("id") or set_id)
        owner_name = str(payload.get("name") or owner_id)
        try:
            cards = tuple(Card.from_payload(raw, owner_id, owner_name) for raw in raw_cards)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise UpstreamError(
                "The card catalog returned an unexpected response.",
                detail=f"set {set_id}: malformed card entry ({e!r})",
            ) from e

        if generation == self._generation:
            self._cards[set_cache_key(set_id)] = cards
        logger.debug("Fetched %d cards for set %s", len(cards), set_id)
        return cards

    async def _fetch_all_cards(self, generation: int) -> tuple[Card, ...]:
        sets = await self.get_sets()
        semaphore = asyncio.Semaphore(self.max_concurrency)
        failures: dict[str, str] = {}

        async def load(card_set: CardSet) -> list[Card]:
            async with semaphore:
                try:
                    return await self.get_set_cards(card_set.id)
                except KnownError as e:
                    logger.warning("Skipping set %s: %s (%s)", card_set.id, e.message, e.detail)
                    failures[card_set.id] = e.detail or e.message
                    return []

        batches = await asyncio.gather(*(load(card_set) for card_set in sets))
        cards = tuple(card for batch in batches for card in batch)

        if generation == self._generation:
            self.failed_sets = failures
            if not failures:
                self._cards[ALL_CARDS_KEY] = cards

        logger.info(
            "Aggregated %d cards from %d sets (%d skipped)",
            len(cards),
            len(sets) - len(failures),
            len(failures),
        )
        return cards

    async def _get_json(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        client = self._get_client()

        try:
            response = await client.get(url, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise UpstreamError(
                "The card catalog did not respond in time.", detail=f"GET {url}: timeout"
            ) from e
        except httpx.RequestError as e:
            raise UpstreamError(
                "The card catalog could not be reached.", detail=f"GET {url}: {e}"
            ) from e

        if response.status_code == 404:
            raise NotFoundError("The requested catalog entry does not exist.", detail=f"GET {url}")
        if not response.is_success:
            raise UpstreamError(
                "The card catalog returned an error.",
                detail=f"GET {url}: HTTP {response.status_code}",
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                "The card catalog returned an unexpected response.",
                detail=f"GET {url}: malformed JSON",
            ) from e

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": settings.user_agent},
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client
