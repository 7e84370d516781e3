from cardhunt.db.database import get_session, get_store, init_db
from cardhunt.db.store import (
    Document,
    DocumentExistsError,
    DocumentStore,
    FieldFilter,
    SqlDocumentStore,
    StoreError,
    Transaction,
    TransactionConflictError,
    TransactionContentionError,
    TransactionUsageError,
)

__all__ = [
    "Document",
    "DocumentExistsError",
    "DocumentStore",
    "FieldFilter",
    "SqlDocumentStore",
    "StoreError",
    "Transaction",
    "TransactionConflictError",
    "TransactionContentionError",
    "TransactionUsageError",
    "get_session",
    "get_store",
    "init_db",
]
