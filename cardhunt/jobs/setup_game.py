"""
One-time game setup.

Creates the database tables and the id counters, and optionally seeds teams
and characters from a JSON file:

    {
        "teams": ["Red Foxes", "Blue Owls"],
        "characters": [
            {"name": "Pikachu", "question": "...", "options": ["a", "b"],
             "correctAnswer": 0, "value": 50, "image": "⚡"}
        ]
    }

Can be run repeatedly; counters that exist are kept. Seeding always adds new
records with fresh ids.
"""

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from cardhunt.db.database import get_store, init_db
from cardhunt.db.store import DocumentStore
from cardhunt.models.failure import InvalidInputError, KnownError
from cardhunt.services.id_allocator import initialize_counters
from cardhunt.services.roster import CharacterDraft, create_character, create_team

logger = logging.getLogger(__name__)


def load_seed(path: Path) -> dict[str, Any]:
    with path.open(encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Seed file {path} must hold a JSON object")
    return data


SEED_REQUIRED_FIELDS = ("name", "question", "options", "correctAnswer", "value")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _optional_str(entry: dict[str, Any], key: str, problems: list[str]) -> str | None:
    value = entry.get(key)
    if value is not None and not isinstance(value, str):
        problems.append(f"{key} must be a string")
        return None
    return value


def draft_from_seed(entry: Any) -> CharacterDraft:
    """
    Build a character draft from a seed entry without guessing missing values.

    Raises:
        InvalidInputError: If the entry is not an object, lacks a required
            field, or holds a field of the wrong type
    """
    if not isinstance(entry, dict):
        raise InvalidInputError("Seed character must be a JSON object")

    problems = [f"{key} is required" for key in SEED_REQUIRED_FIELDS if key not in entry]

    for key in ("name", "question"):
        if key in entry and not isinstance(entry[key], str):
            problems.append(f"{key} must be a string")
    options = entry.get("options")
    if "options" in entry and not (
        isinstance(options, list) and all(isinstance(option, str) for option in options)
    ):
        problems.append("options must be a list of strings")
    for key in ("correctAnswer", "value"):
        if key in entry and not _is_int(entry[key]):
            problems.append(f"{key} must be an integer")

    image = _optional_str(entry, "image", problems)
    model_url = _optional_str(entry, "modelUrl", problems)
    mind_file = _optional_str(entry, "mindFile", problems)

    if problems:
        raise InvalidInputError(problems[0], detail="; ".join(problems))

    return CharacterDraft(
        name=entry["name"],
        question=entry["question"],
        options=list(entry["options"]),
        correct_answer=entry["correctAnswer"],
        value=entry["value"],
        image=image or "",
        model_url=model_url,
        mind_file=mind_file,
    )


async def seed(store: DocumentStore, data: dict[str, Any]) -> dict[str, int]:
    """
    Create the teams and characters listed in seed data.

    Entries that fail validation are logged and skipped.

    Returns:
        Dict with the number of teams and characters created
    """
    created = {"teams": 0, "characters": 0}

    for team_name in data.get("teams", []):
        try:
            if not isinstance(team_name, str):
                raise InvalidInputError("Seed team name must be a string")
            team = await create_team(store, team_name)
        except KnownError as e:
            logger.warning("Skipping team %r: %s", team_name, e.message)
            continue
        logger.info("Seeded team %s (%s)", team.id, team.team_name)
        created["teams"] += 1

    for entry in data.get("characters", []):
        try:
            character = await create_character(store, draft_from_seed(entry))
        except KnownError as e:
            label = entry.get("name") if isinstance(entry, dict) else entry
            logger.warning("Skipping character %r: %s", label, e.message)
            continue
        logger.info("Seeded character %s (%s)", character.id, character.name)
        created["characters"] += 1

    return created


async def run_setup(seed_path: Path | None = None) -> dict[str, int]:
    """
    Create tables and counters, then seed if a file is given.

    Returns:
        Dict with counters, teams and characters created
    """
    await init_db()
    store = get_store()

    counters = await initialize_counters(store)
    results = {"counters": len(counters), "teams": 0, "characters": 0}

    if seed_path is not None:
        results.update(await seed(store, load_seed(seed_path)))

    logger.info(
        "Setup complete. Counters created: %d, teams: %d, characters: %d",
        results["counters"],
        results["teams"],
        results["characters"],
    )
    return results


def main() -> None:
    """CLI entry point for game setup."""
    parser = argparse.ArgumentParser(description="Initialize the CardHunt database.")
    parser.add_argument(
        "--seed",
        type=Path,
        default=None,
        help="JSON file with teams and characters to create",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_setup(args.seed))


if __name__ == "__main__":
    main()
