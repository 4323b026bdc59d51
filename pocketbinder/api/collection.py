"""
Collection API endpoints.

Owned quantities, completion statistics and filtered card views for a
user's collection.
"""

import asyncio
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from pocketbinder.api.dependencies import get_catalog_cache, get_document_store
from pocketbinder.api.schemas import CardResponse, ExpansionStatsResponse
from pocketbinder.config import ALL_SETS
from pocketbinder.models.failure import FailureDetail, SubscriptionError
from pocketbinder.services.catalog_cache import CatalogCache
from pocketbinder.services.reconciler import CollectionReconciler
from pocketbinder.store.base import DocumentStore

router = APIRouter(prefix="/collection", tags=["collection"])

# How long a request waits for the collection's first snapshot
SNAPSHOT_TIMEOUT_SECONDS = 10.0


class CollectionStatsResponse(BaseModel):
    """Completion statistics over the whole catalog."""

    user_id: str
    total_owned: int = Field(0, description="Copies owned, duplicates included")
    expansion_stats: dict[str, ExpansionStatsResponse] = Field(default_factory=dict)
    failed_sets: dict[str, str] = Field(
        default_factory=dict,
        description="Sets missing from the statistics because TCGdex failed",
    )
    subscription_error: FailureDetail | None = Field(
        default=None,
        description="Set when the collection could not be read; data may be stale or empty",
    )


class CollectionViewResponse(CollectionStatsResponse):
    """Statistics plus the owned map and the filtered cards of the selection."""

    set_id: str = ALL_SETS
    owned: dict[str, int] = Field(default_factory=dict)
    cards: list[CardResponse] = Field(default_factory=list)


class QuantityUpdateRequest(BaseModel):
    quantity: Any = Field(
        ...,
        description="New quantity. Negative or unreadable values are stored as 0.",
        examples=[2],
    )


class QuantityUpdateResponse(BaseModel):
    user_id: str
    card_id: str
    quantity: int
    saved: bool = True


async def load_reconciled(store: DocumentStore, user_id: str) -> CollectionReconciler:
    """
    Subscribe to a collection just long enough to receive its current snapshot.

    Raises:
        SubscriptionError: If no snapshot arrives in time
    """
    reconciler = CollectionReconciler(store, user_id)
    try:
        async with reconciler.watch(), asyncio.timeout(SNAPSHOT_TIMEOUT_SECONDS):
            await reconciler.wait_until_loaded()
    except TimeoutError as e:
        raise SubscriptionError(detail=f"collections/{user_id}: no snapshot") from e
    return reconciler


async def build_collection_view(
    cache: CatalogCache,
    store: DocumentStore,
    user_id: str,
    set_id: str = ALL_SETS,
    search: str = "",
    owned_only: bool = False,
) -> CollectionViewResponse:
    """Reconcile a user's collection with the catalog for one selection."""
    all_cards = await cache.get_all_cards()
    failed_sets = dict(cache.failed_sets)
    selected = all_cards if set_id == ALL_SETS else await cache.get_set_cards(set_id)

    reconciler = await load_reconciled(store, user_id)
    stats = reconciler.expansion_stats(all_cards)
    filtered = reconciler.filtered_cards(selected, search, owned_only)

    return CollectionViewResponse(
        user_id=user_id,
        set_id=set_id,
        owned=reconciler.owned,
        total_owned=reconciler.total_owned,
        expansion_stats={
            key: ExpansionStatsResponse.from_stats(value) for key, value in stats.items()
        },
        cards=[CardResponse.from_card(card) for card in filtered],
        failed_sets=failed_sets,
        subscription_error=reconciler.error.to_response().failure if reconciler.error else None,
    )


@router.get("/{user_id}", response_model=CollectionViewResponse)
async def get_user_collection(
    user_id: str,
    cache: Annotated[CatalogCache, Depends(get_catalog_cache)],
    store: Annotated[DocumentStore, Depends(get_document_store)],
    set_id: Annotated[str, Query(description='Set id, or "all" for every set')] = ALL_SETS,
    search: Annotated[str, Query(description="Case-insensitive name filter")] = "",
    owned_only: Annotated[bool, Query(description="Only cards owned at least once")] = False,
) -> CollectionViewResponse:
    """
    Get a user's collection reconciled with the catalog.

    Statistics always cover the whole catalog; `cards` is the selected set
    filtered by name and ownership, in catalog order.
    """
    return await build_collection_view(cache, store, user_id, set_id, search, owned_only)


@router.get("/{user_id}/stats", response_model=CollectionStatsResponse)
async def get_collection_stats(
    user_id: str,
    cache: Annotated[CatalogCache, Depends(get_catalog_cache)],
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> CollectionStatsResponse:
    """Per-set completion statistics and total copies owned."""
    all_cards = await cache.get_all_cards()
    failed_sets = dict(cache.failed_sets)
    reconciler = await load_reconciled(store, user_id)

    return CollectionStatsResponse(
        user_id=user_id,
        total_owned=reconciler.total_owned,
        expansion_stats={
            key: ExpansionStatsResponse.from_stats(value)
            for key, value in reconciler.expansion_stats(all_cards).items()
        },
        failed_sets=failed_sets,
        subscription_error=reconciler.error.to_response().failure if reconciler.error else None,
    )


@router.put("/{user_id}/cards/{card_id}", response_model=QuantityUpdateResponse)
async def set_card_quantity(
    user_id: str,
    card_id: str,
    request: QuantityUpdateRequest,
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> QuantityUpdateResponse:
    """
    Set how many copies of a card the user owns.

    The stored value is clamped to a non-negative integer. 503 if the
    write fails; nothing is saved in that case.
    """
    result = await CollectionReconciler(store, user_id).set_quantity(card_id, request.quantity)
    if result.error is not None:
        raise result.error

    return QuantityUpdateResponse(user_id=user_id, card_id=card_id, quantity=result.quantity)
