"""Tests for the document store and its optimistic transactions."""

import asyncio

import pytest

from cardhunt.db.store import (
    DocumentExistsError,
    FieldFilter,
    SqlDocumentStore,
    Transaction,
    TransactionContentionError,
    TransactionUsageError,
)


class TestPlainOperations:
    async def test_get_missing_returns_none(self, store: SqlDocumentStore) -> None:
        """Reading an absent document returns None."""
        assert await store.get_document("teams", "team_999") is None

    async def test_create_then_get(self, store: SqlDocumentStore) -> None:
        """A created document reads back at version 1."""
        await store.create_document("teams", "team_001", {"teamName": "Red", "score": 0})

        document = await store.get_document("teams", "team_001")

        assert document is not None
        assert document.fields == {"teamName": "Red", "score": 0}
        assert document.version == 1
        assert document.to_dict() == {"id": "team_001", "teamName": "Red", "score": 0}

    async def test_create_existing_raises(self, store: SqlDocumentStore) -> None:
        """create_document refuses an id that is taken."""
        await store.create_document("counters", "teamsCounter", {"count": 0})

        with pytest.raises(DocumentExistsError):
            await store.create_document("counters", "teamsCounter", {"count": 5})

        document = await store.get_document("counters", "teamsCounter")
        assert document is not None
        assert document.fields["count"] == 0

    async def test_same_id_in_different_collections(self, store: SqlDocumentStore) -> None:
        """Ids are scoped to their collection."""
        await store.create_document("teams", "x", {"kind": "team"})
        await store.create_document("cards", "x", {"kind": "card"})

        team = await store.get_document("teams", "x")
        card = await store.get_document("cards", "x")
        assert team is not None and team.fields["kind"] == "team"
        assert card is not None and card.fields["kind"] == "card"

    async def test_set_replaces_and_bumps_version(self, store: SqlDocumentStore) -> None:
        """set_document replaces every field."""
        await store.create_document("teams", "team_001", {"teamName": "Red", "score": 10})

        await store.set_document("teams", "team_001", {"teamName": "Blue"})

        document = await store.get_document("teams", "team_001")
        assert document is not None
        assert document.fields == {"teamName": "Blue"}
        assert document.version == 2

    async def test_set_creates_missing(self, store: SqlDocumentStore) -> None:
        """set_document creates an absent document."""
        await store.set_document("teams", "team_001", {"teamName": "Red"})

        document = await store.get_document("teams", "team_001")
        assert document is not None
        assert document.version == 1

    async def test_delete(self, store: SqlDocumentStore) -> None:
        """delete_document reports whether something was deleted."""
        await store.create_document("teams", "team_001", {"teamName": "Red"})

        assert await store.delete_document("teams", "team_001") is True
        assert await store.delete_document("teams", "team_001") is False
        assert await store.get_document("teams", "team_001") is None

    async def test_returned_fields_are_copies(self, store: SqlDocumentStore) -> None:
        """Mutating a returned document does not affect the store."""
        await store.create_document("teams", "team_001", {"cardsCaught": ["c101"]})

        document = await store.get_document("teams", "team_001")
        assert document is not None
        document.fields["cardsCaught"].append("c201")

        again = await store.get_document("teams", "team_001")
        assert again is not None
        assert again.fields["cardsCaught"] == ["c101"]


class TestQuery:
    async def test_filter_equality(self, store: SqlDocumentStore) -> None:
        """== and != filters select matching documents in id order."""
        await store.create_document("cards", "c201", {"isCaught": False})
        await store.create_document("cards", "c101", {"isCaught": True})
        await store.create_document("cards", "c301", {"isCaught": False})

        uncaught = await store.query_documents("cards", [FieldFilter("isCaught", "==", False)])
        caught = await store.query_documents("cards", [FieldFilter("isCaught", "!=", False)])

        assert [doc.id for doc in uncaught] == ["c201", "c301"]
        assert [doc.id for doc in caught] == ["c101"]

    async def test_query_only_sees_its_collection(self, store: SqlDocumentStore) -> None:
        await store.create_document("teams", "team_001", {})
        await store.create_document("cards", "c101", {})

        teams = await store.query_documents("teams")

        assert [doc.id for doc in teams] == ["team_001"]

    async def test_order_by_descending_keeps_id_order_for_ties(
        self, store: SqlDocumentStore
    ) -> None:
        """Sorting is stable, so equal scores stay in id order."""
        await store.create_document("teams", "team_001", {"score": 10})
        await store.create_document("teams", "team_002", {"score": 50})
        await store.create_document("teams", "team_003", {"score": 10})

        teams = await store.query_documents("teams", order_by="score", descending=True)

        assert [doc.id for doc in teams] == ["team_002", "team_001", "team_003"]

    async def test_order_by_mixed_types(self, store: SqlDocumentStore) -> None:
        """Null, missing and string values sort without comparing across types."""
        await store.create_document("teams", "team_001", {"score": None})
        await store.create_document("teams", "team_002", {"score": 20})
        await store.create_document("teams", "team_003", {"score": "10"})
        await store.create_document("teams", "team_004", {})
        await store.create_document("teams", "team_005", {"score": 5})

        teams = await store.query_documents("teams", order_by="score", descending=True)

        assert [doc.id for doc in teams] == [
            "team_003",
            "team_002",
            "team_005",
            "team_001",
            "team_004",
        ]

    def test_unknown_filter_operator(self) -> None:
        """Unsupported operators are rejected when evaluated."""
        with pytest.raises(ValueError):
            FieldFilter("score", ">", 1).matches({"score": 2})  # type: ignore[arg-type]


# =============================================================================
# TRANSACTIONS
# =============================================================================


class TestTransaction:
    async def test_update_merges_fields(self, store: SqlDocumentStore) -> None:
        """update keeps fields it does not name."""
        await store.create_document("teams", "team_001", {"teamName": "Red", "score": 0})

        async def bump(txn: Transaction) -> None:
            team = await txn.get("teams", "team_001")
            assert team is not None
            txn.update("teams", "team_001", {"score": team.fields["score"] + 5})

        await store.run_transaction(bump)

        document = await store.get_document("teams", "team_001")
        assert document is not None
        assert document.fields == {"teamName": "Red", "score": 5}

    async def test_read_your_writes(self, store: SqlDocumentStore) -> None:
        """A get after an update in the same transaction sees the update."""
        await store.create_document("counters", "teamsCounter", {"count": 0})
        seen: list[int] = []

        async def twice(txn: Transaction) -> None:
            for _ in range(2):
                counter = await txn.get("counters", "teamsCounter")
                assert counter is not None
                seen.append(counter.fields["count"])
                txn.update("counters", "teamsCounter", {"count": counter.fields["count"] + 1})

        await store.run_transaction(twice)

        assert seen == [0, 1]
        document = await store.get_document("counters", "teamsCounter")
        assert document is not None
        assert document.fields["count"] == 2

    async def test_set_creates_document_read_as_absent(self, store: SqlDocumentStore) -> None:
        async def create(txn: Transaction) -> None:
            assert await txn.get("teams", "team_001") is None
            txn.set("teams", "team_001", {"teamName": "Red"})

        await store.run_transaction(create)

        document = await store.get_document("teams", "team_001")
        assert document is not None
        assert document.fields == {"teamName": "Red"}

    async def test_write_without_read_is_rejected(self, store: SqlDocumentStore) -> None:
        """Every write must be conditional on a read."""
        await store.create_document("teams", "team_001", {"score": 0})

        async def blind(txn: Transaction) -> None:
            txn.update("teams", "team_001", {"score": 1})

        with pytest.raises(TransactionUsageError):
            await store.run_transaction(blind)

    async def test_update_of_missing_document_is_rejected(self, store: SqlDocumentStore) -> None:
        async def update_missing(txn: Transaction) -> None:
            await txn.get("teams", "team_404")
            txn.update("teams", "team_404", {"score": 1})

        with pytest.raises(TransactionUsageError):
            await store.run_transaction(update_missing)

    async def test_exception_discards_writes(self, store: SqlDocumentStore) -> None:
        """An error raised by the callback commits nothing."""
        await store.create_document("teams", "team_001", {"score": 0})

        async def fail(txn: Transaction) -> None:
            await txn.get("teams", "team_001")
            txn.update("teams", "team_001", {"score": 100})
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await store.run_transaction(fail)

        document = await store.get_document("teams", "team_001")
        assert document is not None
        assert document.fields["score"] == 0

    async def test_all_or_nothing_across_documents(
        self, store: SqlDocumentStore, other_store: SqlDocumentStore
    ) -> None:
        """A conflict on one document discards the writes to the others."""
        await store.create_document("teams", "team_001", {"score": 0})
        await store.create_document("cards", "c101", {"isCaught": False})

        async def claim(txn: Transaction) -> None:
            await txn.get("teams", "team_001")
            await txn.get("cards", "c101")
            # Someone else changes the card after it was read
            await other_store.set_document("cards", "c101", {"isCaught": True})
            txn.update("teams", "team_001", {"score": 50})
            txn.update("cards", "c101", {"isCaught": True})

        with pytest.raises(TransactionContentionError):
            await store.run_transaction(claim, max_attempts=1)

        team = await store.get_document("teams", "team_001")
        assert team is not None
        assert team.fields["score"] == 0

    async def test_read_only_transaction_returns_value(self, store: SqlDocumentStore) -> None:
        await store.create_document("teams", "team_001", {"score": 7})

        async def read(txn: Transaction) -> int:
            team = await txn.get("teams", "team_001")
            assert team is not None
            return int(team.fields["score"])

        assert await store.run_transaction(read) == 7


class TestConflicts:
    async def test_conflict_is_retried(
        self, store: SqlDocumentStore, other_store: SqlDocumentStore
    ) -> None:
        """A write from another store instance forces a re-run that sees it."""
        await store.create_document("counters", "teamsCounter", {"count": 0})
        attempts = 0

        async def increment(txn: Transaction) -> int:
            nonlocal attempts
            attempts += 1
            counter = await txn.get("counters", "teamsCounter")
            assert counter is not None
            if attempts == 1:
                await other_store.set_document("counters", "teamsCounter", {"count": 10})
            count = counter.fields["count"] + 1
            txn.update("counters", "teamsCounter", {"count": count})
            return count

        result = await store.run_transaction(increment)

        assert attempts == 2
        assert result == 11
        document = await store.get_document("counters", "teamsCounter")
        assert document is not None
        assert document.fields["count"] == 11

    async def test_read_only_document_change_conflicts(
        self, store: SqlDocumentStore, other_store: SqlDocumentStore
    ) -> None:
        """Documents that were only read are validated at commit too."""
        await store.create_document("cards", "c101", {"value": 50})
        await store.create_document("teams", "team_001", {"score": 0})
        attempts = 0

        async def award(txn: Transaction) -> None:
            nonlocal attempts
            attempts += 1
            card = await txn.get("cards", "c101")
            team = await txn.get("teams", "team_001")
            assert card is not None and team is not None
            if attempts == 1:
                await other_store.set_document("cards", "c101", {"value": 20})
            txn.update("teams", "team_001", {"score": card.fields["value"]})

        await store.run_transaction(award)

        team = await store.get_document("teams", "team_001")
        assert team is not None
        assert attempts == 2
        assert team.fields["score"] == 20

    async def test_concurrent_create_of_same_id_conflicts(
        self, store: SqlDocumentStore, other_store: SqlDocumentStore
    ) -> None:
        """Two transactions creating the same absent document cannot both win."""
        attempts = 0

        async def create(txn: Transaction) -> bool:
            nonlocal attempts
            attempts += 1
            existing = await txn.get("teams", "team_001")
            if existing is not None:
                return False
            if attempts == 1:
                await other_store.create_document("teams", "team_001", {"teamName": "Other"})
            txn.set("teams", "team_001", {"teamName": "Mine"})
            return True

        created = await store.run_transaction(create)

        assert created is False
        document = await store.get_document("teams", "team_001")
        assert document is not None
        assert document.fields["teamName"] == "Other"

    async def test_retry_budget_exhaustion(
        self, store: SqlDocumentStore, other_store: SqlDocumentStore
    ) -> None:
        """Persistent interference ends in TransactionContentionError."""
        await store.create_document("counters", "teamsCounter", {"count": 0})
        attempts = 0

        async def always_interfered(txn: Transaction) -> None:
            nonlocal attempts
            attempts += 1
            counter = await txn.get("counters", "teamsCounter")
            assert counter is not None
            await other_store.set_document("counters", "teamsCounter", {"count": attempts * 100})
            txn.update("counters", "teamsCounter", {"count": counter.fields["count"] + 1})

        with pytest.raises(TransactionContentionError) as exc_info:
            await store.run_transaction(always_interfered, max_attempts=3)

        assert exc_info.value.attempts == 3
        assert attempts == 3
        document = await store.get_document("counters", "teamsCounter")
        assert document is not None
        assert document.fields["count"] == 300

    async def test_concurrent_increments_across_instances(
        self, store: SqlDocumentStore, other_store: SqlDocumentStore
    ) -> None:
        """Increments racing from two store instances are all applied."""
        await store.create_document("counters", "teamsCounter", {"count": 0})

        async def increment(txn: Transaction) -> None:
            counter = await txn.get("counters", "teamsCounter")
            assert counter is not None
            txn.update("counters", "teamsCounter", {"count": counter.fields["count"] + 1})

        stores = [store, other_store] * 5
        await asyncio.gather(*(s.run_transaction(increment, max_attempts=20) for s in stores))

        document = await store.get_document("counters", "teamsCounter")
        assert document is not None
        assert document.fields["count"] == 10

    def test_invalid_attempt_budget(self, session_factory) -> None:
        with pytest.raises(ValueError):
            SqlDocumentStore(session_factory, max_attempts=0)
