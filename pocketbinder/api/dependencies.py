"""
Shared FastAPI dependencies.

The catalog cache and the document store are created once in the app
lifespan and kept on `app.state`. Tests override these dependencies.
"""

from fastapi import Request

from pocketbinder.services.catalog_cache import CatalogCache
from pocketbinder.store.base import DocumentStore


def get_catalog_cache(request: Request) -> CatalogCache:
    return request.app.state.catalog_cache


def get_document_store(request: Request) -> DocumentStore:
    return request.app.state.document_store
