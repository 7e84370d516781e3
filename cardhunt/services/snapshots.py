"""
Snapshot, reset and restore of the game state.

A snapshot is a plain bulk read of the teams and cards collections. Reset
clears every catch and score, one document per transaction, so a reset that
fails partway leaves some documents cleared and others untouched. Restore
overwrites every captured document verbatim, and it discards catches made
after the reset it undoes.

Neither reset nor restore takes a snapshot on its own. The admin session
pairs them.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from cardhunt.config import settings
from cardhunt.db.store import DocumentStore, StoreError, Transaction
from cardhunt.models.character import CARDS_COLLECTION
from cardhunt.models.failure import ExpiredUndoError, TransientFailureError
from cardhunt.models.snapshot import Snapshot, is_expired
from cardhunt.models.team import TEAMS_COLLECTION

logger = logging.getLogger(__name__)

CLEARED_CHARACTER: dict[str, Any] = {"isCaught": False, "caughtByTeam": ""}
CLEARED_TEAM: dict[str, Any] = {"cardsCaught": [], "score": 0}


async def create_snapshot(store: DocumentStore, now: datetime | None = None) -> Snapshot:
    """Capture every team and character document."""
    try:
        teams = await store.query_documents(TEAMS_COLLECTION)
        cards = await store.query_documents(CARDS_COLLECTION)
    except StoreError as e:
        raise TransientFailureError("the snapshot", detail=str(e)) from e

    snapshot = Snapshot(
        teams=tuple(doc.to_dict() for doc in teams),
        cards=tuple(doc.to_dict() for doc in cards),
        timestamp=now or datetime.now(UTC),
    )
    logger.info("Snapshot taken: %d teams, %d cards", len(snapshot.teams), len(snapshot.cards))
    return snapshot


async def _clear(
    store: DocumentStore,
    collection: str,
    doc_id: str,
    cleared: dict[str, Any],
) -> bool:
    """Clear one document in its own transaction. Returns True if it wrote."""

    async def clear(txn: Transaction) -> bool:
        document = await txn.get(collection, doc_id)
        if document is None:
            return False
        if all(document.fields.get(key) == val for key, val in cleared.items()):
            return False
        txn.update(collection, doc_id, cleared)
        return True

    return await store.run_transaction(clear)


async def reset(store: DocumentStore) -> None:
    """
    Release every character and zero every team.

    Raises:
        TransientFailureError: If a document could not be cleared
    """
    try:
        cards = await store.query_documents(CARDS_COLLECTION)
        teams = await store.query_documents(TEAMS_COLLECTION)

        cleared_cards = 0
        for card in cards:
            if await _clear(store, CARDS_COLLECTION, card.id, CLEARED_CHARACTER):
                cleared_cards += 1

        cleared_teams = 0
        for team in teams:
            if await _clear(store, TEAMS_COLLECTION, team.id, CLEARED_TEAM):
                cleared_teams += 1
    except StoreError as e:
        logger.error("Reset failed partway: %s", e)
        raise TransientFailureError("the reset", detail=str(e)) from e

    logger.info("Reset cleared %d cards and %d teams", cleared_cards, cleared_teams)


async def restore(
    store: DocumentStore,
    snapshot: Snapshot,
    now: datetime | None = None,
    window_seconds: float | None = None,
) -> None:
    """
    Overwrite teams and characters with a snapshot's contents.

    Raises:
        ExpiredUndoError: If the snapshot is older than the window (nothing is written)
        TransientFailureError: If a document could not be written
    """
    now = now or datetime.now(UTC)
    window = window_seconds if window_seconds is not None else settings.undo_window_seconds

    if is_expired(snapshot, now, window):
        raise ExpiredUndoError(snapshot.age_seconds(now), window)

    try:
        for collection, records in (
            (TEAMS_COLLECTION, snapshot.teams),
            (CARDS_COLLECTION, snapshot.cards),
        ):
            for record in records:
                fields = {key: val for key, val in record.items() if key != "id"}
                await store.set_document(collection, str(record["id"]), fields)
    except StoreError as e:
        logger.error("Restore failed partway: %s", e)
        raise TransientFailureError("the restore", detail=str(e)) from e

    logger.info(
        "Restored snapshot from %s: %d teams, %d cards",
        snapshot.timestamp.isoformat(),
        len(snapshot.teams),
        len(snapshot.cards),
    )
