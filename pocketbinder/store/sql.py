"""
SQLAlchemy-backed document store.

Documents live in the `documents` table as JSON. Subscribers are kept in
process: after each committed write, every listener on that document gets
the new snapshot, in commit order.

Writes to one document are serialized with an in-process lock, so merges
never start from a stale row. Like the listeners, this assumes one process
owns the database.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pocketbinder.db.operations import get_document_row, update_document, write_document
from pocketbinder.store.base import (
    DocumentMutator,
    DocumentStoreError,
    ErrorCallback,
    SnapshotCallback,
    StoredSnapshot,
)

logger = logging.getLogger(__name__)

DocumentKey = tuple[str, str]


class _Listener:
    """One active subscription to one document."""

    def __init__(
        self,
        store: "SqlDocumentStore",
        key: DocumentKey,
        on_change: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> None:
        self._store = store
        self.key = key
        self.on_change = on_change
        self.on_error = on_error
        self.active = True
        # Set once any snapshot has reached the listener; a late initial
        # read must not overwrite a newer write notification.
        self.delivered = False
        self.initial_read: asyncio.Task[None] | None = None

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        if self.initial_read is not None and not self.initial_read.done():
            self.initial_read.cancel()
        self._store._remove_listener(self)


class SqlDocumentStore:
    """
    Document store over an async SQLAlchemy session factory.

    Usage:
        store = SqlDocumentStore(async_session_factory)
        await store.set_document("collections", user_id, {"A1-001": 2}, merge=True)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._listeners: dict[DocumentKey, list[_Listener]] = defaultdict(list)
        # Serializes read-modify-write cycles per document; held while notifying
        # so subscribers see writes in commit order.
        self._locks: dict[DocumentKey, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get_document(self, collection: str, doc_id: str) -> StoredSnapshot:
        """
        Read a document.

        Raises:
            DocumentStoreError: If the database read fails
        """
        try:
            async with self._session_factory() as session:
                row = await get_document_row(session, collection, doc_id)
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"Failed to read {collection}/{doc_id}: {e}") from e

        if row is None:
            return StoredSnapshot(doc_id=doc_id)
        return StoredSnapshot(doc_id=doc_id, _data=dict(row.data or {}))

    async def set_document(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        """
        Create, replace or merge a document, then notify its subscribers.

        Raises:
            DocumentStoreError: If the write does not commit
        """
        key = (collection, doc_id)
        async with self._locks[key]:
            try:
                async with self._session_factory() as session:
                    row = await write_document(session, collection, doc_id, data, merge=merge)
                    stored = dict(row.data or {})
                    await session.commit()
            except SQLAlchemyError as e:
                raise DocumentStoreError(f"Failed to write {collection}/{doc_id}: {e}") from e

            self._notify(key, StoredSnapshot(doc_id=doc_id, _data=stored))

    async def update_document(
        self, collection: str, doc_id: str, mutate: DocumentMutator
    ) -> dict[str, Any] | None:
        """
        Read-modify-write a document under its lock.

        Subscribers are only notified when `mutate` returned a new document.

        Raises:
            DocumentStoreError: If the read or the write fails
        """
        key = (collection, doc_id)
        changed = False

        def tracked(current: dict[str, Any] | None) -> dict[str, Any] | None:
            nonlocal changed
            updated = mutate(current)
            changed = updated is not None
            return updated

        async with self._locks[key]:
            try:
                async with self._session_factory() as session:
                    row = await update_document(session, collection, doc_id, tracked)
                    stored = dict(row.data or {}) if row is not None else None
                    if changed:
                        await session.commit()
            except SQLAlchemyError as e:
                raise DocumentStoreError(f"Failed to update {collection}/{doc_id}: {e}") from e

            if changed:
                self._notify(key, StoredSnapshot(doc_id=doc_id, _data=stored))
        return stored

    def subscribe(
        self,
        collection: str,
        doc_id: str,
        on_change: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> _Listener:
        """
        Watch a document. Must be called from a running event loop.

        The current snapshot is read in the background and delivered through
        `on_change`; read failures go to `on_error`.
        """
        key = (collection, doc_id)
        listener = _Listener(self, key, on_change, on_error)
        self._listeners[key].append(listener)
        listener.initial_read = asyncio.get_running_loop().create_task(
            self._deliver_initial(listener)
        )
        logger.debug("Subscribed to %s/%s", collection, doc_id)
        return listener

    def subscriber_count(self, collection: str, doc_id: str) -> int:
        return len(self._listeners.get((collection, doc_id), ()))

    async def _deliver_initial(self, listener: _Listener) -> None:
        collection, doc_id = listener.key
        try:
            snapshot = await self.get_document(collection, doc_id)
        except DocumentStoreError as e:
            if listener.active:
                listener.on_error(e)
            return

        if listener.active and not listener.delivered:
            listener.delivered = True
            listener.on_change(snapshot)

    def _notify(self, key: DocumentKey, snapshot: StoredSnapshot) -> None:
        for listener in list(self._listeners.get(key, ())):
            if not listener.active:
                continue
            listener.delivered = True
            try:
                listener.on_change(snapshot)
            except Exception:
                logger.exception("Snapshot listener for %s/%s failed", *key)

    def _remove_listener(self, listener: _Listener) -> None:
        listeners = self._listeners.get(listener.key)
        if not listeners:
            return
        if listener in listeners:
            listeners.remove(listener)
        if not listeners:
            del self._listeners[listener.key]
        logger.debug("Unsubscribed from %s/%s", *listener.key)
