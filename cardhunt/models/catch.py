from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class CatchResult:
    """
    Outcome of a catch attempt.

    Attributes:
        success: True if this attempt committed the catch
        already_caught: True if another catch got there first
        caught_by_team: Current owner when already_caught, else None
    """

    success: bool
    already_caught: bool = False
    caught_by_team: str | None = None

    @classmethod
    def caught(cls) -> "CatchResult":
        return cls(success=True)

    @classmethod
    def taken_by(cls, team_id: str) -> "CatchResult":
        return cls(success=False, already_caught=True, caught_by_team=team_id)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.already_caught:
            data["alreadyCaught"] = True
            data["caughtByTeam"] = self.caught_by_team
        return data
