from pocketbinder.db.database import async_session_factory, get_session, init_db
from pocketbinder.db.operations import get_document_row, update_document, write_document

__all__ = [
    "async_session_factory",
    "get_document_row",
    "get_session",
    "init_db",
    "update_document",
    "write_document",
]
