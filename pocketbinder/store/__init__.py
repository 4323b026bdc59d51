from pocketbinder.store.base import (
    DocumentMutator,
    DocumentSnapshot,
    DocumentStore,
    DocumentStoreError,
    StoredSnapshot,
    Subscription,
)
from pocketbinder.store.sql import SqlDocumentStore

__all__ = [
    "DocumentMutator",
    "DocumentSnapshot",
    "DocumentStore",
    "DocumentStoreError",
    "SqlDocumentStore",
    "StoredSnapshot",
    "Subscription",
]
