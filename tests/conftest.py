from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cardhunt.db.store import SqlDocumentStore
from cardhunt.models.db import Base
from cardhunt.services import roster as roster_module
from cardhunt.services.id_allocator import COUNTER_SPECS, COUNTERS_COLLECTION


@pytest.fixture(autouse=True)
def clear_reported_characters():
    roster_module._reported_ids.clear()
    yield
    roster_module._reported_ids.clear()


@pytest.fixture
async def async_engine(tmp_path):
    """Create a file-backed SQLite engine so several stores can share one database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cardhunt.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory) -> SqlDocumentStore:
    return SqlDocumentStore(session_factory, max_attempts=5, backoff_seconds=0.001)


@pytest.fixture
def other_store(session_factory) -> SqlDocumentStore:
    """A second store instance over the same database, as another process would be."""
    return SqlDocumentStore(session_factory, max_attempts=5, backoff_seconds=0.001)


def _character_fields(
    name: str,
    value: int,
    correct_answer: int = 0,
    is_caught: bool = False,
    caught_by_team: str = "",
) -> dict[str, Any]:
    return {
        "name": name,
        "question": f"Who is {name}?",
        "options": [name, "Someone else"],
        "correctAnswer": correct_answer,
        "value": value,
        "image": "",
        "isCaught": is_caught,
        "caughtByTeam": caught_by_team,
    }


@pytest.fixture
def character_fields():
    """Builder for valid character records."""
    return _character_fields


@pytest.fixture
async def game(store: SqlDocumentStore) -> SqlDocumentStore:
    """
    A small game: counters at the seeded ids, two teams, one character per tier.

    team_001 "Red Foxes", team_002 "Blue Owls"
    c101 Pikachu (50), c201 Eevee (20), c301 Magikarp (8)
    """
    counts = {
        "teamsCounter": 2,
        "cardsLegendaryCounter": 1,
        "cardsRareCounter": 1,
        "cardsCommonCounter": 1,
    }
    for spec in COUNTER_SPECS:
        await store.create_document(COUNTERS_COLLECTION, spec.name, {"count": counts[spec.name]})

    await store.create_document(
        "teams", "team_001", {"teamName": "Red Foxes", "score": 0, "cardsCaught": []}
    )
    await store.create_document(
        "teams", "team_002", {"teamName": "Blue Owls", "score": 0, "cardsCaught": []}
    )
    await store.create_document("cards", "c101", _character_fields("Pikachu", 50))
    await store.create_document("cards", "c201", _character_fields("Eevee", 20))
    await store.create_document("cards", "c301", _character_fields("Magikarp", 8))
    return store
