"""
Database CRUD operations for schemaless documents.

Callers own the transaction: these functions flush but never commit.
Concurrent callers on one document must be serialized by the caller;
`SqlDocumentStore` does that with a lock per document.
"""

from collections.abc import Callable
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pocketbinder.models.db import DocumentDB


async def get_document_row(
    session: AsyncSession, collection: str, doc_id: str
) -> DocumentDB | None:
    """
    Get a document by collection and id.

    Returns None if the document does not exist.
    """
    result = await session.execute(
        select(DocumentDB).where(
            DocumentDB.collection == collection,
            DocumentDB.doc_id == doc_id,
        )
    )
    return result.scalar_one_or_none()


async def write_document(
    session: AsyncSession,
    collection: str,
    doc_id: str,
    data: dict[str, Any],
    *,
    merge: bool = False,
) -> DocumentDB:
    """
    Create or update a document.

    With `merge=True`, top-level keys of `data` are merged into the existing
    document; otherwise the document is replaced wholesale.
    """
    row = await get_document_row(session, collection, doc_id)

    if row is None:
        row = DocumentDB(collection=collection, doc_id=doc_id, data=dict(data))
        session.add(row)
    elif merge:
        # Assign a new dict so the JSON column registers the change
        row.data = {**(row.data or {}), **data}
    else:
        row.data = dict(data)

    await session.flush()
    return row


async def update_document(
    session: AsyncSession,
    collection: str,
    doc_id: str,
    mutate: Callable[[dict[str, Any] | None], dict[str, Any] | None],
) -> DocumentDB | None:
    """
    Read a document, pass it through `mutate` and store the result.

    Returns the row as stored, or None if the document is missing and
    `mutate` declined to create it.
    """
    row = await get_document_row(session, collection, doc_id)
    current = dict(row.data or {}) if row is not None else None

    updated = mutate(current)
    if updated is None:
        return row

    if row is None:
        row = DocumentDB(collection=collection, doc_id=doc_id, data=dict(updated))
        session.add(row)
    else:
        row.data = dict(updated)

    await session.flush()
    return row
