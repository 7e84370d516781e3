"""
Sequential id allocation.

Each (collection, tier) pair has a counter document in the `counters`
collection. Allocation increments the counter inside a transaction and
formats the new count with the pair's prefix and zero padding:

- teams:  team_001, team_002, ...
- cards:  c101.. (Legendary), c201.. (Rare), c301.. (Common)

Counters must exist before allocation. They are created once by
`initialize_counters` (admin setup or the setup job).

INVARIANT: no two allocations against the same counter return the same id.
"""

import logging
from dataclasses import dataclass

from cardhunt.db.store import (
    DocumentExistsError,
    DocumentStore,
    StoreError,
    Transaction,
    TransactionContentionError,
)
from cardhunt.models.character import CARDS_COLLECTION, TIER_PREFIXES, tier_from_value
from cardhunt.models.failure import SetupRequiredError, TransientFailureError
from cardhunt.models.team import TEAMS_COLLECTION

logger = logging.getLogger(__name__)

COUNTERS_COLLECTION = "counters"

TEAM_PREFIX = "team_"


@dataclass(frozen=True)
class CounterSpec:
    """A counter document and the id format it drives."""

    name: str
    collection: str
    prefix: str
    width: int

    def format_id(self, count: int) -> str:
        return f"{self.prefix}{count:0{self.width}d}"


COUNTER_SPECS: tuple[CounterSpec, ...] = (
    CounterSpec("teamsCounter", TEAMS_COLLECTION, TEAM_PREFIX, 3),
    CounterSpec("cardsLegendaryCounter", CARDS_COLLECTION, "c1", 2),
    CounterSpec("cardsRareCounter", CARDS_COLLECTION, "c2", 2),
    CounterSpec("cardsCommonCounter", CARDS_COLLECTION, "c3", 2),
)


def counter_for(collection: str, prefix: str) -> CounterSpec:
    """
    Find the counter for a (collection, prefix) pair.

    Raises:
        ValueError: If no counter is defined for the pair
    """
    for spec in COUNTER_SPECS:
        if spec.collection == collection and spec.prefix == prefix:
            return spec
    raise ValueError(f"No id counter for collection {collection!r} with prefix {prefix!r}")


def tier_prefix_for_value(value: int) -> str:
    """Allocation prefix for a character of the given value."""
    return TIER_PREFIXES[tier_from_value(value)]


def is_valid_id(doc_id: str, prefix: str) -> bool:
    """True if doc_id is the prefix followed by digits only."""
    if not doc_id.startswith(prefix):
        return False
    number = doc_id[len(prefix) :]
    return number.isdigit()


def id_number(doc_id: str, prefix: str) -> int | None:
    """The numeric part of an allocated id, or None if it does not parse."""
    if not is_valid_id(doc_id, prefix):
        return None
    return int(doc_id[len(prefix) :])


# =============================================================================
# ALLOCATION
# =============================================================================


async def next_id(store: DocumentStore, collection: str, tier_prefix: str) -> str:
    """
    Allocate the next id for a collection and tier prefix.

    Args:
        store: Document store holding the counters
        collection: "teams" or "cards"
        tier_prefix: "team_" for teams, "c1"/"c2"/"c3" for cards

    Returns:
        The new id, e.g. "c101"

    Raises:
        ValueError: If the (collection, prefix) pair has no counter
        SetupRequiredError: If the counter document does not exist
        TransientFailureError: If the allocation could not commit
    """
    spec = counter_for(collection, tier_prefix)

    async def allocate(txn: Transaction) -> str:
        counter = await txn.get(COUNTERS_COLLECTION, spec.name)
        if counter is None:
            raise SetupRequiredError(spec.name)

        count = int(counter.fields.get("count", 0)) + 1
        txn.update(COUNTERS_COLLECTION, spec.name, {"count": count})
        return spec.format_id(count)

    try:
        new_id = await store.run_transaction(allocate)
    except TransactionContentionError as e:
        logger.warning("Id allocation for %s gave up: %s", spec.name, e)
        raise TransientFailureError("id allocation", detail=str(e)) from e
    except StoreError as e:
        logger.error("Id allocation for %s failed: %s", spec.name, e)
        raise TransientFailureError("id allocation", detail=str(e)) from e

    logger.debug("Allocated %s from %s", new_id, spec.name)
    return new_id


async def initialize_counters(store: DocumentStore) -> list[str]:
    """
    Create every missing counter at count 0.

    Safe to run repeatedly; existing counters are left untouched.

    Returns:
        Names of the counters this call created
    """
    created: list[str] = []
    for spec in COUNTER_SPECS:
        try:
            await store.create_document(COUNTERS_COLLECTION, spec.name, {"count": 0})
        except DocumentExistsError:
            logger.debug("Counter %s already exists", spec.name)
            continue
        except StoreError as e:
            raise TransientFailureError("counter setup", detail=str(e)) from e
        created.append(spec.name)

    if created:
        logger.info("Initialized counters: %s", ", ".join(created))
    return created


async def check_counters(store: DocumentStore) -> dict[str, bool]:
    """
    Report which counters exist.

    Returns one flag per counter name plus aggregate "teams" and "cards"
    flags that are True only when every counter for that collection exists.
    """
    try:
        present = {
            spec.name: await store.get_document(COUNTERS_COLLECTION, spec.name) is not None
            for spec in COUNTER_SPECS
        }
    except StoreError as e:
        raise TransientFailureError("counter check", detail=str(e)) from e

    status = dict(present)
    for collection in (TEAMS_COLLECTION, CARDS_COLLECTION):
        status[collection] = all(
            present[spec.name] for spec in COUNTER_SPECS if spec.collection == collection
        )
    return status
