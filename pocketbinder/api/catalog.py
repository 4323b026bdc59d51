"""
Catalog API endpoints.

Read-only views of the cached TCGdex catalog.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from pocketbinder.api.dependencies import get_catalog_cache
from pocketbinder.api.schemas import CardResponse, CardSetResponse
from pocketbinder.services.catalog_cache import CatalogCache

router = APIRouter(prefix="/catalog", tags=["catalog"])


class SetListResponse(BaseModel):
    sets: list[CardSetResponse] = Field(default_factory=list)


class CardListResponse(BaseModel):
    cards: list[CardResponse] = Field(default_factory=list)
    failed_sets: dict[str, str] = Field(
        default_factory=dict,
        description="Sets left out because their cards could not be fetched",
    )


class ClearCacheResponse(BaseModel):
    cleared: bool = True


@router.get("/sets", response_model=SetListResponse)
async def list_sets(
    cache: Annotated[CatalogCache, Depends(get_catalog_cache)],
) -> SetListResponse:
    """List every set of the configured series."""
    sets = await cache.get_sets()
    return SetListResponse(sets=[CardSetResponse.from_set(card_set) for card_set in sets])


@router.get("/sets/{set_id}/cards", response_model=CardListResponse)
async def list_set_cards(
    set_id: str,
    cache: Annotated[CatalogCache, Depends(get_catalog_cache)],
) -> CardListResponse:
    """List the cards of one set. 404 if TCGdex does not know the set."""
    cards = await cache.get_set_cards(set_id)
    return CardListResponse(cards=[CardResponse.from_card(card) for card in cards])


@router.get("/cards", response_model=CardListResponse)
async def list_all_cards(
    cache: Annotated[CatalogCache, Depends(get_catalog_cache)],
) -> CardListResponse:
    """
    List the cards of every set.

    Sets that fail upstream are skipped and reported in `failed_sets`.
    """
    cards = await cache.get_all_cards()
    return CardListResponse(
        cards=[CardResponse.from_card(card) for card in cards],
        failed_sets=dict(cache.failed_sets),
    )


@router.post("/cache/clear", response_model=ClearCacheResponse)
async def clear_catalog_cache(
    cache: Annotated[CatalogCache, Depends(get_catalog_cache)],
) -> ClearCacheResponse:
    """Forget every cached catalog entry."""
    cache.clear_cache()
    return ClearCacheResponse()
