"""
Catch resolution.

A catch is one store transaction that reads the character and the team,
decides, and writes both documents together:

    Unclaimed --[attempt_catch]--> Claimed(team_id)

Claimed is terminal until an admin reset or restore. When several teams race
for the same character, the store's conflict check makes all but one
transaction re-run; the re-run reads the winner's write and returns an
"already caught" result without writing anything.

The stored character decides availability. Client-side caches are never
consulted.
"""

import logging

from cardhunt.db.store import DocumentStore, StoreError, Transaction, TransactionContentionError
from cardhunt.models.catch import CatchResult
from cardhunt.models.character import CARDS_COLLECTION
from cardhunt.models.failure import MalformedRecordError, NotFoundError, TransientFailureError
from cardhunt.models.team import TEAMS_COLLECTION, team_problems

logger = logging.getLogger(__name__)


async def attempt_catch(
    store: DocumentStore,
    character_id: str,
    team_id: str,
    value: int,
) -> CatchResult:
    """
    Try to award a character to a team.

    Args:
        store: Document store
        character_id: Character being caught
        team_id: Team claiming it
        value: Score increment for the team

    Returns:
        CatchResult.caught() if this call committed the catch, or
        CatchResult.taken_by(owner) if the character was already owned

    Raises:
        NotFoundError: If the character or team does not exist
        MalformedRecordError: If the team record is malformed
        TransientFailureError: If the transaction could not commit
    """

    async def resolve(txn: Transaction) -> CatchResult:
        character = await txn.get(CARDS_COLLECTION, character_id)
        if character is None:
            raise NotFoundError(CARDS_COLLECTION, character_id)

        if character.fields.get("isCaught"):
            return CatchResult.taken_by(str(character.fields.get("caughtByTeam", "")))

        team = await txn.get(TEAMS_COLLECTION, team_id)
        if team is None:
            raise NotFoundError(TEAMS_COLLECTION, team_id)
        problems = team_problems(team.fields)
        if problems:
            raise MalformedRecordError(team_id, problems)

        stored_value = character.fields.get("value")
        if stored_value != value:
            logger.warning(
                "Catch of %s by %s claims value %s but the stored value is %s",
                character_id,
                team_id,
                value,
                stored_value,
            )

        cards_caught = list(team.fields.get("cardsCaught") or [])
        if character_id not in cards_caught:
            cards_caught.append(character_id)

        txn.update(
            CARDS_COLLECTION,
            character_id,
            {"isCaught": True, "caughtByTeam": team_id},
        )
        txn.update(
            TEAMS_COLLECTION,
            team_id,
            {
                "cardsCaught": cards_caught,
                "score": team.fields["score"] + value,
            },
        )
        return CatchResult.caught()

    try:
        result = await store.run_transaction(resolve)
    except TransactionContentionError as e:
        logger.warning("Catch of %s by %s gave up after contention: %s", character_id, team_id, e)
        raise TransientFailureError("the catch", detail=str(e)) from e
    except StoreError as e:
        logger.error("Catch of %s by %s failed: %s", character_id, team_id, e)
        raise TransientFailureError("the catch", detail=str(e)) from e

    if result.success:
        logger.info("Team %s caught %s (+%d)", team_id, character_id, value)
    else:
        logger.warning(
            "Team %s tried to catch %s, already caught by %s",
            team_id,
            character_id,
            result.caught_by_team,
        )
    return result
