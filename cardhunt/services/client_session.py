"""
Client session: one player's device.

Holds the selected team, a read-through cache of roster views, the character
currently in front of the camera, and wrong-answer cooldowns. Catch decisions
are always made by the catch engine against the store; cached views only
drive what the player sees and are dropped after every catch attempt.

Marker detection is external. The detector calls on_target_found and
on_target_lost with the character id bound to each marker.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar

from cardhunt.db.store import DocumentStore
from cardhunt.models.catch import CatchResult
from cardhunt.models.character import Character
from cardhunt.models.cooldown import QuizCooldowns
from cardhunt.models.failure import InvalidInputError
from cardhunt.models.team import Team
from cardhunt.services import roster
from cardhunt.services.catch_engine import attempt_catch

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QuizStatus(str, Enum):
    CAUGHT = "caught"
    ALREADY_CAUGHT = "already_caught"
    INCORRECT = "incorrect"
    COOLDOWN = "cooldown"


@dataclass(frozen=True)
class QuizOutcome:
    """
    Result of answering a character's quiz.

    Attributes:
        status: What happened
        catch_result: Catch engine result for CAUGHT and ALREADY_CAUGHT
        cooldown_seconds: Lockout length for INCORRECT, time left for COOLDOWN
    """

    status: QuizStatus
    catch_result: CatchResult | None = None
    cooldown_seconds: int | None = None


class ClientSession:
    def __init__(
        self,
        store: DocumentStore,
        team_id: str | None = None,
        cooldowns: QuizCooldowns | None = None,
    ):
        self.store = store
        self.team_id = team_id
        self.cooldowns = cooldowns if cooldowns is not None else QuizCooldowns()
        self.detected: Character | None = None
        self.quiz_open = False
        self._cache: dict[str, Any] = {}

    # -------------------------------------------------------------------------
    # Cached views
    # -------------------------------------------------------------------------

    async def _cached(self, key: str, load: Callable[[], Awaitable[T]]) -> T:
        if key not in self._cache:
            self._cache[key] = await load()
        value: T = self._cache[key]
        return value

    def invalidate(self) -> None:
        """Drop every cached view. The next read goes to the store."""
        self._cache.clear()

    async def teams(self) -> list[Team]:
        return await self._cached("teams", lambda: roster.list_teams(self.store))

    async def characters(self) -> list[Character]:
        return await self._cached("characters", lambda: roster.load_valid_characters(self.store))

    async def uncaught_characters(self) -> list[Character]:
        return await self._cached(
            "uncaught", lambda: roster.list_uncaught_characters(self.store)
        )

    async def my_characters(self) -> list[Character]:
        """Characters caught by the selected team; empty before a team is chosen."""
        team_id = self.team_id
        if team_id is None:
            return []
        return await self._cached(
            f"caught:{team_id}",
            lambda: roster.list_characters_caught_by(self.store, team_id),
        )

    async def select_team(self, team_id: str) -> Team:
        """
        Raises:
            NotFoundError: If the team does not exist
        """
        team = await roster.get_team(self.store, team_id)
        self.team_id = team.id
        logger.debug("Selected team %s", team.id)
        return team

    # -------------------------------------------------------------------------
    # Marker detection
    # -------------------------------------------------------------------------

    async def on_target_found(self, character_id: str) -> Character | None:
        """Show the detected character. Unknown or malformed ids are ignored."""
        for character in await self.characters():
            if character.id == character_id:
                self.detected = character
                self.quiz_open = False
                return character
        logger.debug("Ignoring marker for unknown character %s", character_id)
        return None

    def on_target_lost(self, character_id: str) -> None:
        """Hide the character unless its quiz is already open."""
        if self.detected is not None and self.detected.id == character_id and not self.quiz_open:
            self.detected = None

    def open_quiz(self) -> Character:
        """
        Raises:
            InvalidInputError: If nothing is detected or it is already caught
        """
        character = self.detected
        if character is None:
            raise InvalidInputError("No character detected.")
        if character.is_caught:
            raise InvalidInputError(f"{character.name} has already been caught.")
        self.quiz_open = True
        return character

    def close_quiz(self) -> None:
        self.quiz_open = False
        self.detected = None

    # -------------------------------------------------------------------------
    # Catching
    # -------------------------------------------------------------------------

    def _require_team(self) -> str:
        if self.team_id is None:
            raise InvalidInputError("Select a team before catching characters.")
        return self.team_id

    async def catch(self, character_id: str, value: int) -> CatchResult:
        """Ask the catch engine for the character, then drop cached views."""
        team_id = self._require_team()
        try:
            return await attempt_catch(self.store, character_id, team_id, value)
        finally:
            self.invalidate()

    async def answer_quiz(
        self,
        character_id: str,
        answer_index: int,
        now: datetime | None = None,
    ) -> QuizOutcome:
        """
        Answer a character's quiz. A correct answer attempts the catch.

        Raises:
            InvalidInputError: If no team is selected
            NotFoundError: If the character does not exist
        """
        self._require_team()
        now = now or datetime.now(UTC)

        remaining = self.cooldowns.remaining(character_id, now)
        if remaining is not None:
            return QuizOutcome(status=QuizStatus.COOLDOWN, cooldown_seconds=remaining)

        character = await roster.get_character(self.store, character_id)
        if not character.is_correct_answer(answer_index):
            seconds = self.cooldowns.record_wrong_answer(character_id, now)
            return QuizOutcome(status=QuizStatus.INCORRECT, cooldown_seconds=seconds)

        self.cooldowns.clear(character_id)
        result = await self.catch(character.id, character.value)

        if self.detected is not None and self.detected.id == character_id:
            self.close_quiz()

        status = QuizStatus.CAUGHT if result.success else QuizStatus.ALREADY_CAUGHT
        return QuizOutcome(status=status, catch_result=result)
