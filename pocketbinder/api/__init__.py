from pocketbinder.api.catalog import router as catalog_router
from pocketbinder.api.collection import router as collection_router
from pocketbinder.api.health import router as health_router
from pocketbinder.api.users import router as users_router

__all__ = [
    "catalog_router",
    "collection_router",
    "health_router",
    "users_router",
]
