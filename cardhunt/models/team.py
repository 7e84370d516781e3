from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

TEAMS_COLLECTION = "teams"


def team_problems(fields: Any) -> tuple[str, ...]:
    """
    Problems with a stored team record, or an empty tuple if it is usable.

    cardsCaught may be absent on teams that never caught anything; teamName
    and score are required and never defaulted.
    """
    if not isinstance(fields, Mapping):
        return ("record is not an object",)

    problems: list[str] = []
    name = fields.get("teamName")
    if not isinstance(name, str) or not name.strip():
        problems.append("teamName must be a non-empty string")

    score = fields.get("score")
    if not isinstance(score, int) or isinstance(score, bool):
        problems.append("score must be an integer")
    elif score < 0:
        problems.append("score must not be negative")

    cards = fields.get("cardsCaught")
    if cards is not None and not (
        isinstance(cards, list) and all(isinstance(card_id, str) for card_id in cards)
    ):
        problems.append("cardsCaught must be a list of ids")
    return tuple(problems)


@dataclass
class Team:
    """
    A competing team.

    Attributes:
        id: Allocator-issued id (e.g., "team_001")
        team_name: Display name, expected but not required to be unique
        score: Sum of the values of every character the team has caught
        cards_caught: Ids of caught characters, in catch order, no duplicates
    """

    id: str
    team_name: str
    score: int = 0
    cards_caught: list[str] = field(default_factory=list)

    @classmethod
    def from_record(cls, doc_id: str, fields: Mapping[str, Any]) -> "Team":
        """Build from stored fields that passed team_problems."""
        return cls(
            id=doc_id,
            team_name=fields["teamName"],
            score=fields["score"],
            cards_caught=list(fields.get("cardsCaught") or []),
        )

    def to_fields(self) -> dict[str, Any]:
        """Stored fields (the id is the document key, not a field)."""
        return {
            "teamName": self.team_name,
            "score": self.score,
            "cardsCaught": list(self.cards_caught),
        }

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, **self.to_fields()}

    def has_caught(self, character_id: str) -> bool:
        return character_id in self.cards_caught
