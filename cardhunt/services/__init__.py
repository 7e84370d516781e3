"""
CardHunt services.

Game logic on top of the document store: id allocation, catch resolution,
reset and undo, and roster reads and edits.
"""

from cardhunt.services.admin_session import AdminSession, UndoStatus
from cardhunt.services.catch_engine import attempt_catch
from cardhunt.services.client_session import ClientSession, QuizOutcome, QuizStatus
from cardhunt.services.id_allocator import (
    COUNTER_SPECS,
    COUNTERS_COLLECTION,
    CounterSpec,
    check_counters,
    counter_for,
    id_number,
    initialize_counters,
    is_valid_id,
    next_id,
    tier_prefix_for_value,
)
from cardhunt.services.roster import (
    CharacterDraft,
    create_character,
    create_team,
    delete_character,
    delete_team,
    get_character,
    get_team,
    list_characters,
    list_characters_caught_by,
    list_teams,
    list_uncaught_characters,
    load_valid_characters,
    rename_team,
    update_character,
    validate_draft,
)
from cardhunt.services.snapshots import create_snapshot, reset, restore

__all__ = [
    "AdminSession",
    "COUNTERS_COLLECTION",
    "COUNTER_SPECS",
    "CharacterDraft",
    "ClientSession",
    "CounterSpec",
    "QuizOutcome",
    "QuizStatus",
    "UndoStatus",
    "attempt_catch",
    "check_counters",
    "counter_for",
    "create_character",
    "create_snapshot",
    "create_team",
    "delete_character",
    "delete_team",
    "get_character",
    "get_team",
    "id_number",
    "initialize_counters",
    "is_valid_id",
    "list_characters",
    "list_characters_caught_by",
    "list_teams",
    "list_uncaught_characters",
    "load_valid_characters",
    "next_id",
    "rename_team",
    "reset",
    "restore",
    "tier_prefix_for_value",
    "update_character",
    "validate_draft",
]
