"""
Character (card) model, tier derivation and record validation.

Tier comes from value alone: value >= 50 is Legendary, value >= 20 is Rare,
anything lower is Common. The id prefix (c1/c2/c3) is allocation metadata.
It is checked against the value-derived tier but never overrides it.

Records arriving from the store are validated before use. Malformed records
are reported, not patched with defaults.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from cardhunt.config import LEGENDARY_MIN_VALUE, RARE_MIN_VALUE

CARDS_COLLECTION = "cards"


class Tier(str, Enum):
    """Character rarity tier."""

    LEGENDARY = "Legendary"
    RARE = "Rare"
    COMMON = "Common"


# Allocation prefix per tier (c1xx Legendary, c2xx Rare, c3xx Common)
TIER_PREFIXES: dict[Tier, str] = {
    Tier.LEGENDARY: "c1",
    Tier.RARE: "c2",
    Tier.COMMON: "c3",
}


def tier_from_value(value: int) -> Tier:
    """Derive the tier of a character from its value."""
    if value >= LEGENDARY_MIN_VALUE:
        return Tier.LEGENDARY
    if value >= RARE_MIN_VALUE:
        return Tier.RARE
    return Tier.COMMON


def tier_from_prefix(character_id: str) -> Tier | None:
    """Tier implied by an id's allocation prefix, or None for unprefixed ids."""
    for tier, prefix in TIER_PREFIXES.items():
        if character_id.startswith(prefix) and character_id[len(prefix) :].isdigit():
            return tier
    return None


@dataclass
class Character:
    """
    A huntable character and its quiz.

    Attributes:
        id: Allocator-issued, tier-prefixed id (e.g., "c101")
        name: Display name
        question: Quiz question shown before a catch
        options: Answer options, at least one
        correct_answer: Index into options
        value: Points awarded to the catching team
        image: Emoji, URL or empty
        model_url: Optional 3D model shown in AR
        mind_file: Optional AR target file
        is_caught: True once a team owns the character
        caught_by_team: Owning team id, "" when unclaimed
    """

    id: str
    name: str
    question: str
    options: list[str]
    correct_answer: int
    value: int
    image: str = ""
    model_url: str | None = None
    mind_file: str | None = None
    is_caught: bool = False
    caught_by_team: str = ""

    @property
    def tier(self) -> Tier:
        return tier_from_value(self.value)

    def is_correct_answer(self, index: int) -> bool:
        return index == self.correct_answer

    @classmethod
    def from_record(cls, doc_id: str, fields: Mapping[str, Any]) -> "Character":
        """
        Build from stored fields.

        Expects a record that passed validate_character; missing required
        fields raise KeyError.
        """
        return cls(
            id=doc_id,
            name=str(fields["name"]),
            question=str(fields["question"]),
            options=[str(option) for option in fields["options"]],
            correct_answer=int(fields["correctAnswer"]),
            value=int(fields["value"]),
            image=str(fields.get("image") or ""),
            model_url=fields.get("modelUrl") or None,
            mind_file=fields.get("mindFile") or None,
            is_caught=bool(fields["isCaught"]),
            caught_by_team=str(fields["caughtByTeam"]),
        )

    def to_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "name": self.name,
            "question": self.question,
            "options": list(self.options),
            "correctAnswer": self.correct_answer,
            "value": self.value,
            "image": self.image,
            "isCaught": self.is_caught,
            "caughtByTeam": self.caught_by_team,
        }
        if self.model_url is not None:
            fields["modelUrl"] = self.model_url
        if self.mind_file is not None:
            fields["mindFile"] = self.mind_file
        return fields

    def to_dict(self) -> dict[str, Any]:
        """Client view: stored fields plus id and derived tier."""
        return {"id": self.id, **self.to_fields(), "tier": self.tier.value}


# =============================================================================
# VALIDATION
# =============================================================================

REQUIRED_FIELDS: tuple[str, ...] = (
    "id",
    "name",
    "question",
    "options",
    "correctAnswer",
    "value",
    "isCaught",
    "caughtByTeam",
)


@dataclass(frozen=True)
class ValidCharacter:
    """A record that passed validation."""

    character: Character
    valid: Literal[True] = True


@dataclass(frozen=True)
class InvalidCharacter:
    """A record that failed validation, with every problem found."""

    record_id: str
    problems: tuple[str, ...]
    valid: Literal[False] = False


CharacterValidation = ValidCharacter | InvalidCharacter


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_character(record: Any) -> CharacterValidation:
    """
    Validate a raw character record (fields plus "id").

    Returns ValidCharacter with the parsed model, or InvalidCharacter listing
    missing or malformed fields. Never fills in defaults for required fields.
    """
    if not isinstance(record, Mapping):
        return InvalidCharacter(record_id="(unknown)", problems=("record is not an object",))

    record_id = str(record.get("id") or record.get("name") or "(unknown)")
    problems: list[str] = []

    for name in REQUIRED_FIELDS:
        if record.get(name) is None:
            problems.append(f"missing {name}")

    options = record.get("options")
    if options is not None:
        if not isinstance(options, list) or not options:
            problems.append("options must be a non-empty list")
        elif not all(isinstance(option, str) and option.strip() for option in options):
            problems.append("options must be non-empty strings")

    correct_answer = record.get("correctAnswer")
    if correct_answer is not None:
        if not _is_int(correct_answer):
            problems.append("correctAnswer must be an integer")
        elif isinstance(options, list) and options and not 0 <= correct_answer < len(options):
            problems.append("correctAnswer is out of range")

    value = record.get("value")
    if value is not None and (not _is_int(value) or value < 0):
        problems.append("value must be a non-negative integer")

    is_caught = record.get("isCaught")
    caught_by_team = record.get("caughtByTeam")
    if is_caught is not None and not isinstance(is_caught, bool):
        problems.append("isCaught must be a boolean")
    if caught_by_team is not None and not isinstance(caught_by_team, str):
        problems.append("caughtByTeam must be a string")
    if isinstance(is_caught, bool) and isinstance(caught_by_team, str):
        if is_caught != (caught_by_team != ""):
            problems.append("isCaught disagrees with caughtByTeam")

    if problems:
        return InvalidCharacter(record_id=record_id, problems=tuple(problems))

    fields = {key: val for key, val in record.items() if key != "id"}
    return ValidCharacter(character=Character.from_record(str(record["id"]), fields))


def check_tier_prefix(character: Character) -> str | None:
    """
    Compare the id's allocation prefix with the value-derived tier.

    Returns a description of the mismatch, or None if they agree or the id
    carries no tier prefix.
    """
    prefix_tier = tier_from_prefix(character.id)
    if prefix_tier is None or prefix_tier == character.tier:
        return None
    return (
        f"{character.id} has a {prefix_tier.value} id prefix "
        f"but value {character.value} makes it {character.tier.value}"
    )
