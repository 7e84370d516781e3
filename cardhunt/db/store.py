"""
Document store with optimistic transactions.

Records are schemaless documents addressed by (collection, id). The store
offers plain reads and writes plus `run_transaction`, which gives the callback
a `Transaction` handle:

- `get` reads a document and records the version it observed
- `update` merges fields into a document read earlier in the transaction
- `set` replaces (or creates) a document read earlier in the transaction

Reads inside a transaction see that transaction's own queued writes. Writes
are only applied at commit, as a version compare-and-set per document. If any
document changed since it was read, the commit is discarded and the callback
runs again from scratch, up to the retry budget.

INVARIANT: a transaction either applies every queued write or none of them.
"""

import asyncio
import copy
import logging
import random
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardhunt.models.db import DocumentDB

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BACKOFF_SECONDS = 0.01
MAX_BACKOFF_SECONDS = 1.0


# =============================================================================
# EXCEPTIONS
# =============================================================================


class StoreError(Exception):
    """Base exception for all store failures."""

    pass


class TransactionConflictError(StoreError):
    """A document changed between being read and the commit."""

    pass


class TransactionContentionError(StoreError):
    """A transaction kept conflicting until its retry budget ran out."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Transaction failed after {attempts} attempts due to contention")


class DocumentExistsError(StoreError):
    """Attempted to create a document whose id is already taken."""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"Document {collection}/{doc_id} already exists")


class TransactionUsageError(StoreError):
    """A transaction handle was used in a way the store does not support."""

    pass


# =============================================================================
# VALUE TYPES
# =============================================================================


@dataclass(frozen=True)
class Document:
    """A stored document and the version it was read at."""

    collection: str
    id: str
    fields: dict[str, Any]
    version: int

    def copy(self) -> "Document":
        return Document(self.collection, self.id, copy.deepcopy(self.fields), self.version)

    def to_dict(self) -> dict[str, Any]:
        """Fields plus the document id, as clients see the record."""
        return {"id": self.id, **copy.deepcopy(self.fields)}


FilterOp = Literal["==", "!="]


@dataclass(frozen=True)
class FieldFilter:
    """Equality predicate on a single top-level field."""

    field: str
    op: FilterOp
    value: Any

    def matches(self, fields: dict[str, Any]) -> bool:
        actual = fields.get(self.field)
        if self.op == "==":
            return bool(actual == self.value)
        if self.op == "!=":
            return bool(actual != self.value)
        raise ValueError(f"Unsupported filter operator: {self.op}")


@dataclass
class _PendingWrite:
    fields: dict[str, Any]
    # None means the document did not exist when read; commit inserts it
    expected_version: int | None


# =============================================================================
# TRANSACTION HANDLE
# =============================================================================


class Transaction:
    """
    Handle passed to a `run_transaction` callback.

    Writes must target documents already read through this handle, so
    every write carries the version it is conditional on.
    """

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._reads: dict[tuple[str, str], Document | None] = {}
        self._writes: dict[tuple[str, str], _PendingWrite] = {}

    @property
    def has_writes(self) -> bool:
        return bool(self._writes)

    @property
    def reads(self) -> dict[tuple[str, str], Document | None]:
        return self._reads

    @property
    def writes(self) -> dict[tuple[str, str], _PendingWrite]:
        return self._writes

    async def get(self, collection: str, doc_id: str) -> Document | None:
        """Read a document, seeing this transaction's own queued writes."""
        key = (collection, doc_id)

        pending = self._writes.get(key)
        if pending is not None:
            observed = self._reads.get(key)
            version = observed.version if observed is not None else 0
            return Document(collection, doc_id, copy.deepcopy(pending.fields), version)

        if key not in self._reads:
            self._reads[key] = await self._store.get_document(collection, doc_id)

        document = self._reads[key]
        return document.copy() if document is not None else None

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Queue a merge-style update of an existing document."""
        key = (collection, doc_id)
        if key not in self._reads:
            raise TransactionUsageError(f"{collection}/{doc_id} must be read before it is updated")

        pending = self._writes.get(key)
        if pending is not None:
            pending.fields.update(copy.deepcopy(fields))
            return

        observed = self._reads[key]
        if observed is None:
            raise TransactionUsageError(f"Cannot update missing document {collection}/{doc_id}")

        merged = copy.deepcopy(observed.fields)
        merged.update(copy.deepcopy(fields))
        self._writes[key] = _PendingWrite(fields=merged, expected_version=observed.version)

    def set(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Queue a full replace of a document, creating it if it was absent."""
        key = (collection, doc_id)
        if key not in self._reads:
            raise TransactionUsageError(f"{collection}/{doc_id} must be read before it is set")

        observed = self._reads[key]
        expected = observed.version if observed is not None else None
        self._writes[key] = _PendingWrite(fields=copy.deepcopy(fields), expected_version=expected)


# =============================================================================
# STORE INTERFACE
# =============================================================================


class DocumentStore(ABC):
    """
    Abstract document store.

    Any backend that provides these primitives can host the game.
    """

    @abstractmethod
    async def get_document(self, collection: str, doc_id: str) -> Document | None:
        """Read one document. Returns None if it does not exist."""
        pass

    @abstractmethod
    async def query_documents(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Document]:
        """
        Read every document in a collection matching all filters.

        Results are ordered by document id, then by `order_by` if given.
        Missing and null values sort before numbers, and numbers before
        strings; values of other types sort with the missing ones.
        """
        pass

    @abstractmethod
    async def set_document(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Replace a document's fields entirely, creating it if absent."""
        pass

    @abstractmethod
    async def create_document(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """
        Create a new document.

        Raises:
            DocumentExistsError: If the id is already taken
        """
        pass

    @abstractmethod
    async def delete_document(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns True if it existed."""
        pass

    @abstractmethod
    async def run_transaction(
        self,
        fn: Callable[[Transaction], Awaitable[T]],
        max_attempts: int | None = None,
    ) -> T:
        """
        Run `fn` atomically, retrying on conflicts.

        Raises:
            TransactionContentionError: If every attempt conflicted
        """
        pass


# =============================================================================
# SQLALCHEMY BACKEND
# =============================================================================


def _order_key(value: Any) -> tuple[int, Any]:
    if isinstance(value, bool):
        return (0, 0)
    if isinstance(value, int | float):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    return (0, 0)


class SqlDocumentStore(DocumentStore):
    """
    Document store backed by the `documents` table.

    Transactions on one store instance are serialized by an asyncio lock, so
    contenders inside a process queue instead of burning retries. The version
    check at commit covers writers in other processes or store instances.
    Transactions must not nest on the same instance.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._session_factory = session_factory
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                raise StoreError(str(e)) from e

    # -------------------------------------------------------------------------
    # Plain reads and writes
    # -------------------------------------------------------------------------

    async def get_document(self, collection: str, doc_id: str) -> Document | None:
        async with self._session() as session:
            result = await session.execute(
                select(DocumentDB.data, DocumentDB.version).where(
                    DocumentDB.collection == collection,
                    DocumentDB.doc_id == doc_id,
                )
            )
            row = result.one_or_none()

        if row is None:
            return None
        return Document(collection, doc_id, copy.deepcopy(dict(row.data or {})), row.version)

    async def query_documents(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Document]:
        async with self._session() as session:
            result = await session.execute(
                select(DocumentDB.doc_id, DocumentDB.data, DocumentDB.version)
                .where(DocumentDB.collection == collection)
                .order_by(DocumentDB.doc_id)
            )
            rows = result.all()

        documents = [
            Document(collection, row.doc_id, copy.deepcopy(dict(row.data or {})), row.version)
            for row in rows
        ]
        documents = [doc for doc in documents if all(f.matches(doc.fields) for f in filters)]

        if order_by is not None:
            # Stable sort keeps id order among ties
            documents.sort(
                key=lambda doc: _order_key(doc.fields.get(order_by)),
                reverse=descending,
            )

        return documents

    async def set_document(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        async with self._session() as session:
            result = await session.execute(
                update(DocumentDB)
                .where(DocumentDB.collection == collection, DocumentDB.doc_id == doc_id)
                .values(data=copy.deepcopy(fields), version=DocumentDB.version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                session.add(
                    DocumentDB(
                        collection=collection,
                        doc_id=doc_id,
                        data=copy.deepcopy(fields),
                        version=1,
                    )
                )
            await session.commit()

    async def create_document(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        async with self._session_factory() as session:
            session.add(
                DocumentDB(
                    collection=collection,
                    doc_id=doc_id,
                    data=copy.deepcopy(fields),
                    version=1,
                )
            )
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DocumentExistsError(collection, doc_id) from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise StoreError(str(e)) from e

    async def delete_document(self, collection: str, doc_id: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                delete(DocumentDB)
                .where(DocumentDB.collection == collection, DocumentDB.doc_id == doc_id)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return bool(result.rowcount)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def run_transaction(
        self,
        fn: Callable[[Transaction], Awaitable[T]],
        max_attempts: int | None = None,
    ) -> T:
        attempts = max_attempts if max_attempts is not None else self.max_attempts

        async with self._lock:
            for attempt in range(1, attempts + 1):
                txn = Transaction(self)
                result = await fn(txn)

                if not txn.has_writes:
                    return result

                try:
                    await self._commit(txn)
                    return result
                except TransactionConflictError as e:
                    logger.debug(
                        "Transaction conflict on attempt %d/%d: %s",
                        attempt,
                        attempts,
                        e,
                    )
                    if attempt < attempts:
                        await asyncio.sleep(self._backoff_delay(attempt))

        raise TransactionContentionError(attempts)

    def _backoff_delay(self, attempt: int) -> float:
        """Exponential backoff with full jitter."""
        ceiling = min(MAX_BACKOFF_SECONDS, self.backoff_seconds * (2 ** (attempt - 1)))
        return random.uniform(0, ceiling)

    async def _commit(self, txn: Transaction) -> None:
        """
        Apply queued writes if nothing read by the transaction has changed.

        Writes go first so the commit session takes its write lock before
        reading anything; read-only documents are validated afterwards.
        """
        async with self._session_factory() as session:
            try:
                for (collection, doc_id), write in txn.writes.items():
                    if write.expected_version is None:
                        session.add(
                            DocumentDB(
                                collection=collection,
                                doc_id=doc_id,
                                data=write.fields,
                                version=1,
                            )
                        )
                        await session.flush()
                        continue

                    result = await session.execute(
                        update(DocumentDB)
                        .where(
                            DocumentDB.collection == collection,
                            DocumentDB.doc_id == doc_id,
                            DocumentDB.version == write.expected_version,
                        )
                        .values(data=write.fields, version=DocumentDB.version + 1)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        raise TransactionConflictError(
                            f"{collection}/{doc_id} changed since version {write.expected_version}"
                        )

                for (collection, doc_id), observed in txn.reads.items():
                    if (collection, doc_id) in txn.writes:
                        continue
                    result = await session.execute(
                        select(DocumentDB.version).where(
                            DocumentDB.collection == collection,
                            DocumentDB.doc_id == doc_id,
                        )
                    )
                    current = result.scalar_one_or_none()
                    expected = observed.version if observed is not None else None
                    if current != expected:
                        raise TransactionConflictError(f"{collection}/{doc_id} changed since read")

                await session.commit()
            except TransactionConflictError:
                await session.rollback()
                raise
            except (IntegrityError, OperationalError) as e:
                # Concurrent insert of the same id, or the database is locked
                # by another writer
                await session.rollback()
                raise TransactionConflictError(str(e)) from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise StoreError(str(e)) from e
