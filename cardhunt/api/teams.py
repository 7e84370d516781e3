"""
Team API endpoints.

Leaderboard and per-team views for players.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from cardhunt.api.common import CharacterResponse, TeamResponse
from cardhunt.db.database import get_store
from cardhunt.db.store import DocumentStore
from cardhunt.services import roster

router = APIRouter(prefix="/teams", tags=["teams"])


@router.get("", response_model=list[TeamResponse])
async def get_leaderboard(
    store: Annotated[DocumentStore, Depends(get_store)],
) -> list[TeamResponse]:
    """All teams, highest score first."""
    teams = await roster.list_teams(store)
    return [TeamResponse.from_team(team) for team in teams]


@router.get("/{team_id}", response_model=TeamResponse)
async def get_team(
    team_id: str,
    store: Annotated[DocumentStore, Depends(get_store)],
) -> TeamResponse:
    team = await roster.get_team(store, team_id)
    return TeamResponse.from_team(team)


@router.get("/{team_id}/characters", response_model=list[CharacterResponse])
async def get_team_characters(
    team_id: str,
    store: Annotated[DocumentStore, Depends(get_store)],
) -> list[CharacterResponse]:
    """
    Characters the team has caught.

    Returns 404 if the team does not exist.
    """
    await roster.get_team(store, team_id)
    characters = await roster.list_characters_caught_by(store, team_id)
    return [CharacterResponse.from_character(c) for c in characters]
