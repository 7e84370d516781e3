"""
Roster: reads of teams and characters, and the admin edits that create,
change and delete them.

Reads return validated models. Malformed team and character records are
left out of list results and logged once per id; fetching one by id raises
MalformedRecordError.

Edits never touch ownership. isCaught, caughtByTeam, score and cardsCaught
are written only by catches, reset and restore.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from cardhunt.db.store import (
    Document,
    DocumentExistsError,
    DocumentStore,
    FieldFilter,
    StoreError,
    Transaction,
)
from cardhunt.models.character import (
    CARDS_COLLECTION,
    Character,
    InvalidCharacter,
    check_tier_prefix,
    tier_from_value,
    validate_character,
)
from cardhunt.models.failure import (
    InvalidInputError,
    MalformedRecordError,
    NotFoundError,
    TransientFailureError,
)
from cardhunt.models.team import TEAMS_COLLECTION, Team, team_problems
from cardhunt.services.id_allocator import TEAM_PREFIX, next_id, tier_prefix_for_value

logger = logging.getLogger(__name__)

# Ids already reported as malformed, so a polling client does not flood the log
_reported_ids: set[str] = set()


def _report_invalid(result: InvalidCharacter) -> None:
    if result.record_id in _reported_ids:
        return
    _reported_ids.add(result.record_id)
    logger.warning(
        "Skipping malformed character %s: %s",
        result.record_id,
        "; ".join(result.problems),
    )


def _to_teams(documents: list[Document]) -> list[Team]:
    teams: list[Team] = []
    for document in documents:
        problems = team_problems(document.fields)
        if problems:
            if document.id not in _reported_ids:
                _reported_ids.add(document.id)
                logger.warning(
                    "Skipping malformed team %s: %s", document.id, "; ".join(problems)
                )
            continue
        teams.append(Team.from_record(document.id, document.fields))
    return teams


def _team_from(doc_id: str, fields: dict[str, Any]) -> Team:
    problems = team_problems(fields)
    if problems:
        raise MalformedRecordError(doc_id, problems)
    return Team.from_record(doc_id, fields)


def _to_characters(documents: list[Document]) -> list[Character]:
    characters: list[Character] = []
    for document in documents:
        result = validate_character(document.to_dict())
        if isinstance(result, InvalidCharacter):
            _report_invalid(result)
            continue

        mismatch = check_tier_prefix(result.character)
        if mismatch is not None and result.character.id not in _reported_ids:
            _reported_ids.add(result.character.id)
            logger.warning("Tier prefix mismatch: %s", mismatch)
        characters.append(result.character)
    return characters


async def _query(
    store: DocumentStore,
    collection: str,
    filters: tuple[FieldFilter, ...] = (),
    order_by: str | None = None,
    descending: bool = False,
) -> list[Document]:
    try:
        return await store.query_documents(
            collection, filters, order_by=order_by, descending=descending
        )
    except StoreError as e:
        raise TransientFailureError(f"loading {collection}", detail=str(e)) from e


async def _get(store: DocumentStore, collection: str, doc_id: str) -> Document:
    try:
        document = await store.get_document(collection, doc_id)
    except StoreError as e:
        raise TransientFailureError(f"loading {collection}", detail=str(e)) from e
    if document is None:
        raise NotFoundError(collection, doc_id)
    return document


# =============================================================================
# READS
# =============================================================================


async def list_teams(store: DocumentStore) -> list[Team]:
    """Leaderboard order: score descending, ties by id."""
    documents = await _query(store, TEAMS_COLLECTION, order_by="score", descending=True)
    return _to_teams(documents)


async def get_team(store: DocumentStore, team_id: str) -> Team:
    """
    Raises:
        NotFoundError: If the team does not exist
        MalformedRecordError: If the stored record fails validation
    """
    document = await _get(store, TEAMS_COLLECTION, team_id)
    return _team_from(document.id, document.fields)


async def load_valid_characters(store: DocumentStore) -> list[Character]:
    """Every character that passes validation, in id order."""
    return _to_characters(await _query(store, CARDS_COLLECTION))


async def list_characters(store: DocumentStore) -> list[Character]:
    return await load_valid_characters(store)


async def list_uncaught_characters(store: DocumentStore) -> list[Character]:
    documents = await _query(store, CARDS_COLLECTION, (FieldFilter("isCaught", "==", False),))
    return _to_characters(documents)


async def list_characters_caught_by(store: DocumentStore, team_id: str) -> list[Character]:
    """
    Characters owned by a team.

    Raises:
        InvalidInputError: If team_id is blank (it would match unclaimed characters)
    """
    if not team_id.strip():
        raise InvalidInputError("A team id is required.")
    documents = await _query(
        store, CARDS_COLLECTION, (FieldFilter("caughtByTeam", "==", team_id),)
    )
    return _to_characters(documents)


async def get_character(store: DocumentStore, character_id: str) -> Character:
    """
    Raises:
        NotFoundError: If the character does not exist
        MalformedRecordError: If the stored record fails validation
    """
    document = await _get(store, CARDS_COLLECTION, character_id)
    result = validate_character(document.to_dict())
    if isinstance(result, InvalidCharacter):
        raise MalformedRecordError(character_id, result.problems)
    return result.character


# =============================================================================
# ADMIN EDITS
# =============================================================================


@dataclass
class CharacterDraft:
    """Admin-entered character fields, before an id is assigned."""

    name: str
    question: str
    options: list[str]
    correct_answer: int
    value: int
    image: str = ""
    model_url: str | None = None
    mind_file: str | None = None


def validate_draft(draft: CharacterDraft) -> CharacterDraft:
    """
    Check and normalize a draft. Option text is trimmed.

    Raises:
        InvalidInputError: Listing every problem found
    """
    problems: list[str] = []
    if not draft.name.strip():
        problems.append("Name is required")
    if not draft.question.strip():
        problems.append("Question is required")

    options = [option.strip() for option in draft.options]
    if not options:
        problems.append("At least one option is required")
    elif any(not option for option in options):
        problems.append("All options must be filled")
    elif not 0 <= draft.correct_answer < len(options):
        problems.append("Correct answer must point at one of the options")

    if draft.value < 0:
        problems.append("Value must not be negative")

    if problems:
        raise InvalidInputError(problems[0], detail="; ".join(problems))

    return CharacterDraft(
        name=draft.name.strip(),
        question=draft.question.strip(),
        options=options,
        correct_answer=draft.correct_answer,
        value=draft.value,
        image=draft.image.strip(),
        model_url=draft.model_url or None,
        mind_file=draft.mind_file or None,
    )


def default_mind_file(value: int) -> str:
    """AR target file for a character's tier."""
    return f"/ar-targets/{tier_from_value(value).value.lower()}.mind"


async def _create(
    store: DocumentStore,
    collection: str,
    doc_id: str,
    fields: dict[str, Any],
) -> None:
    try:
        await store.create_document(collection, doc_id, fields)
    except DocumentExistsError as e:
        # The counter was behind existing documents
        logger.error("Allocated id %s/%s is already taken", collection, doc_id)
        raise TransientFailureError(f"creating {doc_id}", detail=str(e)) from e
    except StoreError as e:
        raise TransientFailureError(f"creating {doc_id}", detail=str(e)) from e


async def _edit(
    store: DocumentStore,
    collection: str,
    doc_id: str,
    fields: dict[str, Any],
    check: Callable[[Document], None] | None = None,
) -> dict[str, Any]:
    """
    Merge fields into an existing document. Returns the record after the edit.

    `check` sees the current document inside the transaction and may raise to
    abort the edit.
    """

    async def edit(txn: Transaction) -> dict[str, Any]:
        document = await txn.get(collection, doc_id)
        if document is None:
            raise NotFoundError(collection, doc_id)
        if check is not None:
            check(document)
        txn.update(collection, doc_id, fields)
        return {"id": doc_id, **document.fields, **fields}

    try:
        return await store.run_transaction(edit)
    except StoreError as e:
        raise TransientFailureError(f"updating {doc_id}", detail=str(e)) from e


async def create_team(store: DocumentStore, team_name: str) -> Team:
    """
    Raises:
        InvalidInputError: If the name is blank
        SetupRequiredError: If the teams counter is missing
    """
    name = team_name.strip()
    if not name:
        raise InvalidInputError("Team name is required")

    team_id = await next_id(store, TEAMS_COLLECTION, TEAM_PREFIX)
    team = Team(id=team_id, team_name=name)
    await _create(store, TEAMS_COLLECTION, team_id, team.to_fields())
    logger.info("Created team %s (%s)", team_id, name)
    return team


async def rename_team(store: DocumentStore, team_id: str, team_name: str) -> Team:
    name = team_name.strip()
    if not name:
        raise InvalidInputError("Team name is required")

    record = await _edit(store, TEAMS_COLLECTION, team_id, {"teamName": name})
    return _team_from(team_id, record)


async def create_character(store: DocumentStore, draft: CharacterDraft) -> Character:
    """
    Create an unclaimed character with an id from its value's tier.

    Raises:
        InvalidInputError: If the draft is invalid
        SetupRequiredError: If the tier's counter is missing
    """
    clean = validate_draft(draft)
    character_id = await next_id(store, CARDS_COLLECTION, tier_prefix_for_value(clean.value))

    character = Character(
        id=character_id,
        name=clean.name,
        question=clean.question,
        options=clean.options,
        correct_answer=clean.correct_answer,
        value=clean.value,
        image=clean.image,
        model_url=clean.model_url,
        mind_file=clean.mind_file or default_mind_file(clean.value),
    )
    await _create(store, CARDS_COLLECTION, character_id, character.to_fields())
    logger.info("Created character %s (%s, %s)", character_id, character.name, character.tier.value)
    return character


async def update_character(
    store: DocumentStore,
    character_id: str,
    draft: CharacterDraft,
) -> Character:
    """
    Edit a character's quiz and display fields.

    The value is fixed at creation because it determines the id's tier and
    the score already awarded for past catches.

    Raises:
        InvalidInputError: If the draft is invalid or tries to change the value
        NotFoundError: If the character does not exist
    """
    clean = validate_draft(draft)

    def value_unchanged(document: Document) -> None:
        stored = document.fields.get("value")
        if stored != clean.value:
            raise InvalidInputError(
                "A character's value cannot be changed after creation.",
                detail=f"{character_id} has value {stored}",
            )

    fields: dict[str, Any] = {
        "name": clean.name,
        "question": clean.question,
        "options": clean.options,
        "correctAnswer": clean.correct_answer,
        "image": clean.image,
    }
    if clean.model_url is not None:
        fields["modelUrl"] = clean.model_url
    if clean.mind_file is not None:
        fields["mindFile"] = clean.mind_file

    record = await _edit(store, CARDS_COLLECTION, character_id, fields, check=value_unchanged)
    result = validate_character(record)
    if isinstance(result, InvalidCharacter):
        # The edit fixed the quiz fields but other stored fields are still bad
        raise MalformedRecordError(character_id, result.problems)
    return result.character


async def _delete(store: DocumentStore, collection: str, doc_id: str) -> None:
    try:
        deleted = await store.delete_document(collection, doc_id)
    except StoreError as e:
        raise TransientFailureError(f"deleting {doc_id}", detail=str(e)) from e
    if not deleted:
        raise NotFoundError(collection, doc_id)
    logger.info("Deleted %s/%s", collection, doc_id)


async def delete_team(store: DocumentStore, team_id: str) -> None:
    await _delete(store, TEAMS_COLLECTION, team_id)


async def delete_character(store: DocumentStore, character_id: str) -> None:
    await _delete(store, CARDS_COLLECTION, character_id)
