"""
Document store capability interface.

The reconciler and the profile service only depend on these protocols, so
any store that can read, merge-write and push snapshots of a document can
back them.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol


class DocumentStoreError(Exception):
    """Raised by a document store when a read or write fails."""

    pass


class DocumentSnapshot(Protocol):
    """A point-in-time view of one document."""

    @property
    def exists(self) -> bool: ...

    def data(self) -> dict[str, Any] | None: ...


@dataclass(frozen=True)
class StoredSnapshot:
    """Snapshot handed out by the bundled stores. `data()` returns a copy."""

    doc_id: str
    _data: dict[str, Any] | None = field(default=None, repr=False)

    @property
    def exists(self) -> bool:
        return self._data is not None

    def data(self) -> dict[str, Any] | None:
        if self._data is None:
            return None
        return dict(self._data)


SnapshotCallback = Callable[[DocumentSnapshot], None]
ErrorCallback = Callable[[Exception], None]

# Receives a copy of the current data (None if missing) and returns the new
# document, or None to leave it untouched.
DocumentMutator = Callable[[dict[str, Any] | None], dict[str, Any] | None]


class Subscription(Protocol):
    """Handle returned by `DocumentStore.subscribe`."""

    def unsubscribe(self) -> None: ...


class DocumentStore(Protocol):
    async def get_document(self, collection: str, doc_id: str) -> DocumentSnapshot: ...

    async def set_document(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
    ) -> None: ...

    async def update_document(
        self, collection: str, doc_id: str, mutate: DocumentMutator
    ) -> dict[str, Any] | None:
        """
        Apply `mutate` to a document atomically with respect to other writes
        on it. Returns the stored data, or None if nothing exists.
        """
        ...

    def subscribe(
        self,
        collection: str,
        doc_id: str,
        on_change: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """
        Watch a document.

        `on_change` receives the current snapshot soon after subscribing and
        again after every committed write, in commit order. `on_error` is
        called instead when the store cannot produce a snapshot.
        """
        ...
