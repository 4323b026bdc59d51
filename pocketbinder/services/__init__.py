"""
PocketBinder services.

Catalog caching, collection reconciliation and profile management.
"""

from pocketbinder.services.catalog_cache import ALL_CARDS_KEY, CatalogCache, set_cache_key
from pocketbinder.services.profiles import (
    add_friend,
    ensure_user,
    get_profile,
    list_friends,
    remove_friend,
)
from pocketbinder.services.reconciler import (
    CollectionReconciler,
    WriteResult,
    compute_stats,
    filter_cards,
    total_owned,
)

__all__ = [
    "ALL_CARDS_KEY",
    "CatalogCache",
    "CollectionReconciler",
    "WriteResult",
    "add_friend",
    "compute_stats",
    "ensure_user",
    "filter_cards",
    "get_profile",
    "list_friends",
    "remove_friend",
    "set_cache_key",
    "total_owned",
]
