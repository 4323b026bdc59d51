from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pocketbinder.api import (
    catalog_router,
    collection_router,
    health_router,
    users_router,
)
from pocketbinder.api.errors import register_exception_handlers
from pocketbinder.config import settings
from pocketbinder.db.database import async_session_factory, init_db
from pocketbinder.services.catalog_cache import CatalogCache
from pocketbinder.store.sql import SqlDocumentStore


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the process-wide catalog cache and document store."""
    await init_db()
    app.state.document_store = SqlDocumentStore(async_session_factory)
    async with CatalogCache() as cache:
        app.state.catalog_cache = cache
        yield


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("pocketbinder"),
    lifespan=lifespan,
)

app.include_router(catalog_router)
app.include_router(collection_router)
app.include_router(health_router)
app.include_router(users_router)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
