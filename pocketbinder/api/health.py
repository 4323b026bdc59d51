"""
Health check endpoints.

Provides a liveness probe and a readiness probe that checks the document
database and reports whether the catalog set list is cached.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pocketbinder.api.dependencies import get_catalog_cache
from pocketbinder.db.database import get_session
from pocketbinder.services.catalog_cache import CatalogCache

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str | None = None
    catalog: str | None = None


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness probe. Does not check dependencies."""
    return HealthResponse(status="healthy")


@router.get(
    "/ready",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def ready(
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
    cache: Annotated[CatalogCache, Depends(get_catalog_cache)],
) -> HealthResponse:
    """
    Readiness probe.

    Returns 503 if the database is unavailable. A cold catalog cache does
    not fail readiness; it is filled on first use.
    """
    catalog = "warm" if cache.sets_cached else "cold"
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not ready", database="disconnected", catalog=catalog)
    return HealthResponse(status="ready", database="connected", catalog=catalog)
