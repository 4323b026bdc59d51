"""
Warm up the TCGdex catalog.

Fetches the set list and every set's cards once, logging per-set counts.
Useful as a smoke check of the upstream API and its configured locale.
"""

import asyncio
import logging
from collections import Counter

from pocketbinder.models.failure import KnownError
from pocketbinder.services.catalog_cache import CatalogCache

logger = logging.getLogger(__name__)


async def run_warm_up(cache: CatalogCache | None = None) -> dict[str, int]:
    """
    Fetch the whole catalog.

    Args:
        cache: Cache to fill. A temporary one is created and closed if omitted.

    Returns:
        Dict mapping set id to number of cards fetched; failed and empty sets are absent.
    """
    if cache is None:
        async with CatalogCache() as own_cache:
            return await run_warm_up(own_cache)

    logger.info("Fetching catalog for series %s...", cache.series_id)

    try:
        cards = await cache.get_all_cards()
    except KnownError as e:
        logger.error("Failed to fetch set list: %s (%s)", e.message, e.detail)
        raise

    counts = Counter(card.set_id for card in cards)
    for set_id, count in counts.items():
        logger.info("Set %s: %d cards", set_id, count)
    for set_id, reason in cache.failed_sets.items():
        logger.warning("Set %s failed: %s", set_id, reason)

    logger.info(
        "Catalog warm-up complete. %d cards in %d sets, %d sets failed",
        len(cards),
        len(counts),
        len(cache.failed_sets),
    )
    return dict(counts)


def main() -> None:
    """CLI entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_warm_up())


if __name__ == "__main__":
    main()
