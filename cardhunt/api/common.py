"""
Shared pieces of the HTTP API: response models and dependencies.

Documents travel in the same camelCase shape they are stored in, so every
model here serializes by alias.
"""

from typing import Annotated

from fastapi import Depends, Header
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cardhunt.config import settings
from cardhunt.db.database import get_store
from cardhunt.models.catch import CatchResult
from cardhunt.models.character import Character
from cardhunt.models.team import Team
from cardhunt.services.admin_session import AdminSession


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TeamResponse(CamelModel):
    """A team and its catches."""

    id: str
    team_name: str
    score: int = 0
    cards_caught: list[str] = Field(default_factory=list)

    @classmethod
    def from_team(cls, team: Team) -> "TeamResponse":
        return cls(
            id=team.id,
            team_name=team.team_name,
            score=team.score,
            cards_caught=list(team.cards_caught),
        )


class CharacterResponse(CamelModel):
    """A character with its derived tier."""

    id: str
    name: str
    question: str
    options: list[str]
    correct_answer: int
    value: int
    tier: str
    image: str = ""
    model_url: str | None = None
    mind_file: str | None = None
    is_caught: bool = False
    caught_by_team: str = ""

    @classmethod
    def from_character(cls, character: Character) -> "CharacterResponse":
        return cls(
            id=character.id,
            name=character.name,
            question=character.question,
            options=list(character.options),
            correct_answer=character.correct_answer,
            value=character.value,
            tier=character.tier.value,
            image=character.image,
            model_url=character.model_url,
            mind_file=character.mind_file,
            is_caught=character.is_caught,
            caught_by_team=character.caught_by_team,
        )


class CatchResponse(CamelModel):
    success: bool
    already_caught: bool = False
    caught_by_team: str | None = None

    @classmethod
    def from_result(cls, result: CatchResult) -> "CatchResponse":
        return cls(
            success=result.success,
            already_caught=result.already_caught,
            caught_by_team=result.caught_by_team,
        )


# =============================================================================
# ADMIN DEPENDENCIES
# =============================================================================

_admin_session: AdminSession | None = None


def get_admin_session() -> AdminSession:
    """
    Dependency that provides the process-wide admin session.

    The undo slot lives here, so there is one session per process.
    """
    global _admin_session
    if _admin_session is None:
        _admin_session = AdminSession(
            get_store(),
            secret=settings.admin_secret,
            undo_window_seconds=settings.undo_window_seconds,
        )
    return _admin_session


async def require_admin(
    admin: Annotated[AdminSession, Depends(get_admin_session)],
    x_admin_secret: Annotated[str | None, Header()] = None,
) -> AdminSession:
    """
    Gate for admin routes.

    Raises:
        AdminAuthError: If the X-Admin-Secret header is missing or wrong
    """
    admin.verify_secret(x_admin_secret)
    return admin
