"""
Collection reconciliation.

Combines catalog cards with a user's owned-quantity map into per-set
completion statistics and filtered card views, and routes quantity changes
back to the document store.

The pure functions at the top take plain inputs and do no I/O.
`CollectionReconciler` binds them to one live collection document.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from pocketbinder.config import COLLECTIONS_COLLECTION
from pocketbinder.models.catalog import Card, ExpansionStats
from pocketbinder.models.collection import Collection, clamp_quantity
from pocketbinder.models.failure import SubscriptionError, WriteError
from pocketbinder.store.base import DocumentSnapshot, DocumentStore, DocumentStoreError

logger = logging.getLogger(__name__)


def compute_stats(cards: Iterable[Card], owned: Mapping[str, int]) -> dict[str, ExpansionStats]:
    """
    Group cards by set and measure how much of each set is owned.

    Args:
        cards: Catalog cards (one set, several, or the whole catalog)
        owned: Card id -> quantity; missing ids count as 0

    Returns:
        Dict mapping set id to ExpansionStats, in first-seen set order.
        Empty input yields an empty dict.
    """
    totals: dict[str, list[Any]] = {}

    for card in cards:
        entry = totals.get(card.set_id)
        if entry is None:
            # [set_name, total_cards, unique_owned, total_copies_owned]
            entry = totals[card.set_id] = [card.set_name, 0, 0, 0]
        quantity = max(0, owned.get(card.id, 0))
        entry[1] += 1
        if quantity > 0:
            entry[2] += 1
            entry[3] += quantity

    return {
        set_id: ExpansionStats(
            set_id=set_id,
            set_name=set_name,
            total_cards=total_cards,
            unique_owned=unique_owned,
            total_copies_owned=total_copies,
        )
        for set_id, (set_name, total_cards, unique_owned, total_copies) in totals.items()
    }


def filter_cards(
    cards: Sequence[Card],
    search_term: str,
    owned_only: bool,
    owned: Mapping[str, int],
) -> list[Card]:
    """
    Keep cards whose name contains `search_term` (case-insensitive) and,
    with `owned_only`, that are owned at least once. Order is preserved.
    """
    needle = (search_term or "").casefold()
    return [
        card
        for card in cards
        if (not needle or needle in card.name.casefold())
        and (not owned_only or owned.get(card.id, 0) > 0)
    ]


def total_owned(owned: Mapping[str, int]) -> int:
    """Total copies owned, duplicates included."""
    return sum(max(0, quantity) for quantity in owned.values())


@dataclass(frozen=True, slots=True)
class WriteResult:
    """Outcome of a quantity write. `quantity` is the clamped value sent."""

    success: bool
    quantity: int
    error: WriteError | None = None


class CollectionReconciler:
    """
    Live view of one user's collection document.

    The owned map only ever reflects snapshots pushed by the store;
    `set_quantity` does not touch it. Callers must not expect to read their
    own write until the next snapshot arrives.

    Usage:
        reconciler = CollectionReconciler(store, user_id)
        async with reconciler.watch():
            await reconciler.wait_until_loaded()
            stats = reconciler.expansion_stats(cards)
    """

    def __init__(
        self,
        store: DocumentStore,
        user_id: str,
        collection_name: str = COLLECTIONS_COLLECTION,
    ) -> None:
        self._store = store
        self.user_id = user_id
        self.collection_name = collection_name

        self._collection = Collection()
        self.error: SubscriptionError | None = None
        self.loaded = False
        self._updated = asyncio.Event()

    @property
    def owned(self) -> dict[str, int]:
        return dict(self._collection.cards)

    @property
    def total_owned(self) -> int:
        return self._collection.total_cards()

    @asynccontextmanager
    async def watch(self) -> AsyncIterator["CollectionReconciler"]:
        """Subscribe for the duration of the block; always unsubscribes on exit."""
        subscription = self._store.subscribe(
            self.collection_name, self.user_id, self._on_snapshot, self._on_error
        )
        try:
            yield self
        finally:
            subscription.unsubscribe()

    async def wait_until_loaded(self) -> None:
        """Wait for the first snapshot (or subscription error)."""
        while not self.loaded:
            await self.wait_for_update()

    async def wait_for_update(self) -> None:
        """Wait for the next snapshot or subscription error."""
        self._updated.clear()
        await self._updated.wait()

    def expansion_stats(self, cards: Iterable[Card]) -> dict[str, ExpansionStats]:
        return compute_stats(cards, self._collection.cards)

    def filtered_cards(
        self, cards: Sequence[Card], search_term: str = "", owned_only: bool = False
    ) -> list[Card]:
        return filter_cards(cards, search_term, owned_only, self._collection.cards)

    async def set_quantity(self, card_id: str, quantity: Any) -> WriteResult:
        """
        Merge-write `{card_id: quantity}` into the collection document.

        `quantity` is clamped first: negatives, NaN and unreadable values
        become 0. Failures come back in the result instead of raising.
        """
        value = clamp_quantity(quantity)
        if not card_id:
            return WriteResult(
                success=False,
                quantity=value,
                error=WriteError("A card id is required.", detail="empty card id"),
            )

        try:
            await self._store.set_document(
                self.collection_name, self.user_id, {card_id: value}, merge=True
            )
        except DocumentStoreError as e:
            logger.error("Failed to set %s=%d for %s: %s", card_id, value, self.user_id, e)
            return WriteResult(success=False, quantity=value, error=WriteError(detail=str(e)))

        logger.debug("Set %s=%d for %s", card_id, value, self.user_id)
        return WriteResult(success=True, quantity=value)

    def _on_snapshot(self, snapshot: DocumentSnapshot) -> None:
        data = snapshot.data() if snapshot.exists else None
        self._collection = Collection.from_document(data)
        self.error = None
        self.loaded = True
        self._updated.set()

    def _on_error(self, exc: Exception) -> None:
        # Keep the last snapshot; only record the failure
        logger.warning("Collection subscription for %s failed: %s", self.user_id, exc)
        self.error = SubscriptionError(detail=str(exc))
        self.loaded = True
        self._updated.set()
