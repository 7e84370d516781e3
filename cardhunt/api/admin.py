"""
Admin API endpoints.

Setup, id allocation, team and character management, and reset with undo.
Every route requires the X-Admin-Secret header.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import Field

from cardhunt.api.common import (
    CamelModel,
    CharacterResponse,
    TeamResponse,
    require_admin,
)
from cardhunt.db.database import get_store
from cardhunt.db.store import DocumentStore
from cardhunt.models.failure import InvalidInputError
from cardhunt.services import id_allocator, roster
from cardhunt.services.admin_session import AdminSession

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


class SetupStatusResponse(CamelModel):
    """Which id counters exist."""

    counters: dict[str, bool]
    ready: bool


class SetupResponse(CamelModel):
    created: list[str]
    counters: dict[str, bool]


class IdRequest(CamelModel):
    collection: str = Field(..., examples=["cards"])
    prefix: str = Field(..., examples=["c1"])


class IdResponse(CamelModel):
    id: str


class TeamRequest(CamelModel):
    team_name: str = Field(..., description="Display name")


class CharacterRequest(CamelModel):
    """Admin character form."""

    name: str
    question: str
    options: list[str] = Field(..., min_length=1)
    correct_answer: int = Field(..., ge=0)
    value: int = Field(..., ge=0, examples=[50, 20, 8])
    image: str = ""
    model_url: str | None = None
    mind_file: str | None = None

    def to_draft(self) -> roster.CharacterDraft:
        return roster.CharacterDraft(
            name=self.name,
            question=self.question,
            options=list(self.options),
            correct_answer=self.correct_answer,
            value=self.value,
            image=self.image,
            model_url=self.model_url,
            mind_file=self.mind_file,
        )


class ResetResponse(CamelModel):
    snapshot_taken_at: datetime
    teams: int
    cards: int
    undo_window_seconds: float


class UndoResponse(CamelModel):
    restored_teams: int
    restored_cards: int
    snapshot_taken_at: datetime


class UndoStatusResponse(CamelModel):
    available: bool
    seconds_remaining: float = 0.0
    snapshot_taken_at: datetime | None = None


# =============================================================================
# SETUP
# =============================================================================


@router.get("/setup", response_model=SetupStatusResponse)
async def get_setup_status(
    store: Annotated[DocumentStore, Depends(get_store)],
) -> SetupStatusResponse:
    counters = await id_allocator.check_counters(store)
    return SetupStatusResponse(
        counters=counters,
        ready=all(counters[spec.name] for spec in id_allocator.COUNTER_SPECS),
    )


@router.post("/setup", response_model=SetupResponse)
async def run_setup(
    store: Annotated[DocumentStore, Depends(get_store)],
) -> SetupResponse:
    """Create missing counters. Safe to repeat."""
    created = await id_allocator.initialize_counters(store)
    counters = await id_allocator.check_counters(store)
    return SetupResponse(created=created, counters=counters)


@router.post("/ids", response_model=IdResponse)
async def allocate_id(
    request: IdRequest,
    store: Annotated[DocumentStore, Depends(get_store)],
) -> IdResponse:
    """Allocate the next id for a collection and prefix."""
    try:
        new_id = await id_allocator.next_id(store, request.collection, request.prefix)
    except ValueError as e:
        raise InvalidInputError(str(e)) from e
    return IdResponse(id=new_id)


# =============================================================================
# TEAMS
# =============================================================================


@router.post("/teams", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
async def create_team(
    request: TeamRequest,
    store: Annotated[DocumentStore, Depends(get_store)],
) -> TeamResponse:
    team = await roster.create_team(store, request.team_name)
    return TeamResponse.from_team(team)


@router.patch("/teams/{team_id}", response_model=TeamResponse)
async def rename_team(
    team_id: str,
    request: TeamRequest,
    store: Annotated[DocumentStore, Depends(get_store)],
) -> TeamResponse:
    team = await roster.rename_team(store, team_id, request.team_name)
    return TeamResponse.from_team(team)


@router.delete("/teams/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_team(
    team_id: str,
    store: Annotated[DocumentStore, Depends(get_store)],
) -> None:
    await roster.delete_team(store, team_id)


# =============================================================================
# CHARACTERS
# =============================================================================


@router.post(
    "/characters",
    response_model=CharacterResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_character(
    request: CharacterRequest,
    store: Annotated[DocumentStore, Depends(get_store)],
) -> CharacterResponse:
    """Create an unclaimed character. Its id prefix follows from its value."""
    character = await roster.create_character(store, request.to_draft())
    return CharacterResponse.from_character(character)


@router.put("/characters/{character_id}", response_model=CharacterResponse)
async def update_character(
    character_id: str,
    request: CharacterRequest,
    store: Annotated[DocumentStore, Depends(get_store)],
) -> CharacterResponse:
    character = await roster.update_character(store, character_id, request.to_draft())
    return CharacterResponse.from_character(character)


@router.delete("/characters/{character_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_character(
    character_id: str,
    store: Annotated[DocumentStore, Depends(get_store)],
) -> None:
    await roster.delete_character(store, character_id)


# =============================================================================
# RESET AND UNDO
# =============================================================================


@router.post("/reset", response_model=ResetResponse)
async def reset_game(
    admin: Annotated[AdminSession, Depends(require_admin)],
) -> ResetResponse:
    """Release every character and zero every score. Undoable for a while."""
    snapshot = await admin.reset_with_undo()
    return ResetResponse(
        snapshot_taken_at=snapshot.timestamp,
        teams=len(snapshot.teams),
        cards=len(snapshot.cards),
        undo_window_seconds=admin.undo_window_seconds,
    )


@router.post("/undo", response_model=UndoResponse)
async def undo_reset(
    admin: Annotated[AdminSession, Depends(require_admin)],
) -> UndoResponse:
    snapshot = await admin.undo()
    return UndoResponse(
        restored_teams=len(snapshot.teams),
        restored_cards=len(snapshot.cards),
        snapshot_taken_at=snapshot.timestamp,
    )


@router.get("/undo", response_model=UndoStatusResponse)
async def get_undo_status(
    admin: Annotated[AdminSession, Depends(require_admin)],
) -> UndoStatusResponse:
    undo_status = admin.undo_status()
    return UndoStatusResponse(
        available=undo_status.available,
        seconds_remaining=undo_status.seconds_remaining,
        snapshot_taken_at=undo_status.snapshot_taken_at,
    )
