"""
Character API endpoints.

Character feeds for the AR view and the catch endpoint.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import Field

from cardhunt.api.common import CamelModel, CatchResponse, CharacterResponse
from cardhunt.db.database import get_store
from cardhunt.db.store import DocumentStore
from cardhunt.services import roster
from cardhunt.services.catch_engine import attempt_catch

router = APIRouter(prefix="/characters", tags=["characters"])


class CatchRequest(CamelModel):
    """Request model for a catch attempt."""

    team_id: str = Field(..., min_length=1, description="Team claiming the character")
    value: int = Field(..., ge=0, description="Score increment for the team")


@router.get("", response_model=list[CharacterResponse])
async def get_characters(
    store: Annotated[DocumentStore, Depends(get_store)],
) -> list[CharacterResponse]:
    """Every valid character. Malformed records are left out."""
    characters = await roster.list_characters(store)
    return [CharacterResponse.from_character(c) for c in characters]


@router.get("/uncaught", response_model=list[CharacterResponse])
async def get_uncaught_characters(
    store: Annotated[DocumentStore, Depends(get_store)],
) -> list[CharacterResponse]:
    characters = await roster.list_uncaught_characters(store)
    return [CharacterResponse.from_character(c) for c in characters]


@router.get("/{character_id}", response_model=CharacterResponse)
async def get_character(
    character_id: str,
    store: Annotated[DocumentStore, Depends(get_store)],
) -> CharacterResponse:
    character = await roster.get_character(store, character_id)
    return CharacterResponse.from_character(character)


@router.post("/{character_id}/catch", response_model=CatchResponse)
async def catch_character(
    character_id: str,
    request: CatchRequest,
    store: Annotated[DocumentStore, Depends(get_store)],
) -> CatchResponse:
    """
    Claim a character for a team.

    Losing a race is not an error: the response has success false,
    alreadyCaught true and the owner in caughtByTeam.
    """
    result = await attempt_catch(store, character_id, request.team_id, request.value)
    return CatchResponse.from_result(result)
