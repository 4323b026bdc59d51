from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest
import respx
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from pocketbinder.api.dependencies import get_catalog_cache, get_document_store
from pocketbinder.db.database import get_session
from pocketbinder.main import app
from pocketbinder.models.catalog import Card
from pocketbinder.models.db import Base
from pocketbinder.services.catalog_cache import CatalogCache
from pocketbinder.store.base import (
    DocumentMutator,
    DocumentStoreError,
    ErrorCallback,
    SnapshotCallback,
    StoredSnapshot,
)
from pocketbinder.store.sql import SqlDocumentStore

BASE_URL = "https://tcgdex.test/v2/it"
SERIES_ID = "tcgp"


def set_payload(set_id: str, name: str, names: list[str]) -> dict[str, Any]:
    """TCGdex `GET /sets/{id}` payload with one card per name."""
    return {
        "id": set_id,
        "name": name,
        "cards": [
            {
                "id": f"{set_id}-{index:03d}",
                "localId": f"{index:03d}",
                "name": card_name,
                "image": f"https://assets.tcgdex.net/it/tcgp/{set_id}/{index:03d}",
            }
            for index, card_name in enumerate(names, start=1)
        ],
    }


SERIES_PAYLOAD: dict[str, Any] = {
    "id": SERIES_ID,
    "name": "Pokémon TCG Pocket",
    "sets": [
        {"id": "A1", "name": "Geni Supremi", "cardCount": {"official": 3, "total": 3}},
        {"id": "A1a", "name": "L'isola misteriosa", "cardCount": {"official": 2, "total": 2}},
    ],
}

SET_PAYLOADS: dict[str, dict[str, Any]] = {
    "A1": set_payload("A1", "Geni Supremi", ["Bulbasaur", "Pikachu", "Raichu"]),
    "A1a": set_payload("A1a", "L'isola misteriosa", ["Mew", "Pichu"]),
}


@pytest.fixture
def tcgdex() -> respx.MockRouter:
    """Mocked TCGdex API serving SERIES_PAYLOAD and SET_PAYLOADS."""
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        router.get(f"/series/{SERIES_ID}", name="series").respond(200, json=SERIES_PAYLOAD)
        for set_id, payload in SET_PAYLOADS.items():
            router.get(f"/sets/{set_id}", name=set_id).respond(200, json=payload)
        yield router


@pytest.fixture
async def cache() -> AsyncIterator[CatalogCache]:
    async with CatalogCache(
        base_url=BASE_URL, series_id=SERIES_ID, timeout=5.0, max_concurrency=2
    ) as catalog_cache:
        yield catalog_cache


@pytest.fixture
def cards() -> list[Card]:
    """Two sets: A with three cards, B with two."""
    return [
        Card("a1", "Pikachu", "001", None, "A", "Set A"),
        Card("a2", "Raichu", "002", None, "A", "Set A"),
        Card("a3", "Bulbasaur", "003", None, "A", "Set A"),
        Card("b1", "Mew", "001", None, "B", "Set B"),
        Card("b2", "Pichu", "002", None, "B", "Set B"),
    ]


@pytest.fixture
async def async_engine(tmp_path: Path):
    """File-backed SQLite engine so concurrent sessions see the same data."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def sql_store(session_factory) -> SqlDocumentStore:
    return SqlDocumentStore(session_factory)


class _FakeSubscription:
    def __init__(self, store: "FakeDocumentStore", key: tuple[str, str]) -> None:
        self._store = store
        self._key = key

    def unsubscribe(self) -> None:
        self._store.listeners.pop(self._key, None)
        self._store.unsubscribed.append(self._key)


class FakeDocumentStore:
    """
    Hand-driven document store.

    Snapshots and errors are only delivered when the test calls `push` or
    `push_error`; writes are recorded and can be made to fail.
    """

    def __init__(self) -> None:
        self.documents: dict[tuple[str, str], dict[str, Any]] = {}
        self.writes: list[tuple[str, str, dict[str, Any], bool]] = []
        self.listeners: dict[tuple[str, str], tuple[SnapshotCallback, ErrorCallback]] = {}
        self.unsubscribed: list[tuple[str, str]] = []
        self.fail_writes = False

    async def get_document(self, collection: str, doc_id: str) -> StoredSnapshot:
        data = self.documents.get((collection, doc_id))
        return StoredSnapshot(doc_id=doc_id, _data=dict(data) if data is not None else None)

    async def set_document(
        self, collection: str, doc_id: str, data: dict[str, Any], *, merge: bool = False
    ) -> None:
        if self.fail_writes:
            raise DocumentStoreError("permission denied")
        self.writes.append((collection, doc_id, dict(data), merge))
        existing = self.documents.get((collection, doc_id), {}) if merge else {}
        self.documents[(collection, doc_id)] = {**existing, **data}

    async def update_document(
        self, collection: str, doc_id: str, mutate: DocumentMutator
    ) -> dict[str, Any] | None:
        if self.fail_writes:
            raise DocumentStoreError("permission denied")
        current = self.documents.get((collection, doc_id))
        updated = mutate(dict(current) if current is not None else None)
        if updated is None:
            return dict(current) if current is not None else None
        self.documents[(collection, doc_id)] = dict(updated)
        return dict(updated)

    def subscribe(
        self,
        collection: str,
        doc_id: str,
        on_change: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> _FakeSubscription:
        key = (collection, doc_id)
        self.listeners[key] = (on_change, on_error)
        return _FakeSubscription(self, key)

    def push(self, collection: str, doc_id: str, data: dict[str, Any] | None) -> None:
        on_change, _ = self.listeners[(collection, doc_id)]
        on_change(StoredSnapshot(doc_id=doc_id, _data=data))

    def push_error(self, collection: str, doc_id: str, error: Exception) -> None:
        _, on_error = self.listeners[(collection, doc_id)]
        on_error(error)


@pytest.fixture
def fake_store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
async def client(
    tcgdex: respx.MockRouter,
    cache: CatalogCache,
    sql_store: SqlDocumentStore,
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncClient]:
    """Test client wired to the mocked catalog and a temporary document store."""

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_catalog_cache] = lambda: cache
    app.dependency_overrides[get_document_store] = lambda: sql_store
    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()
